"""
Web Intelligence MCP Server

Model Context Protocol front end of the Web Intelligence engine. Agents get
routed multi-provider web search, retrieval-strategy previews and provider
health through four tools.

Architecture:
- instructions.py: SERVER_INSTRUCTIONS for AI agents
- tools.py: tool implementations
- container: DI container (dependency-injector) for service lifecycle
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from web_intelligence.container import ApplicationContainer, create_container

from .instructions import SERVER_INSTRUCTIONS
from .tools import register_web_intelligence_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from web_intelligence.application.conversation import ConnectionManager, ConversationalDispatcher
    from web_intelligence.application.search import AggregationEngine

logger = logging.getLogger(__name__)

# ── Module-level DI container ──────────────────────────────────────────────
_container: ApplicationContainer | None = None


def get_container() -> ApplicationContainer:
    """Get the application DI container.

    Raises:
        RuntimeError: If ``create_server()`` has not been called yet.
    """
    if _container is None:
        msg = "Container not initialized. Call create_server() first."
        raise RuntimeError(msg)
    return _container


def _make_lifespan(
    container: ApplicationContainer,
) -> Callable[[FastMCP[Any]], AbstractAsyncContextManager[ApplicationContainer]]:
    """Create a FastMCP lifespan handler bound to *container*."""

    @asynccontextmanager
    async def _lifespan(server: FastMCP[Any]) -> AsyncIterator[ApplicationContainer]:
        logger.info("Lifecycle: startup, provider clients ready")
        try:
            yield container
        finally:
            connections = cast("ConnectionManager", container.connections())
            await connections.cancel_all()
            await container.registry().aclose()
            logger.info("Lifecycle: shutdown, provider clients closed")

    return _lifespan


def create_server(
    name: str = "web-intelligence",
    container: ApplicationContainer | None = None,
    disable_security: bool = False,
    json_response: bool = False,
    stateless_http: bool = False,
) -> FastMCP:
    """
    Create and configure the Web Intelligence MCP server.

    Args:
        name: Server name.
        container: DI container (defaults to one configured from the environment).
        disable_security: Disable DNS rebinding protection (needed for remote access).
        json_response: Use JSON responses instead of SSE.
        stateless_http: Use stateless HTTP mode (no session management).

    Returns:
        Configured FastMCP server instance.

    Raises:
        ConfigurationError: no search provider is configured
    """
    global _container
    logger.info("Initializing Web Intelligence MCP Server...")

    _container = container or create_container()
    engine = cast("AggregationEngine", _container.engine())
    dispatcher = cast("ConversationalDispatcher", _container.dispatcher())
    logger.info(f"Providers: {', '.join(engine.registry.names)}")

    if disable_security:
        transport_security = TransportSecuritySettings(enable_dns_rebinding_protection=False)
        logger.info("DNS rebinding protection disabled for remote access")
    else:
        transport_security = None

    mcp = FastMCP(
        name,
        instructions=SERVER_INSTRUCTIONS,
        transport_security=transport_security,
        json_response=json_response,
        stateless_http=stateless_http,
        lifespan=_make_lifespan(_container),
    )

    register_web_intelligence_tools(mcp, engine, dispatcher)

    logger.info("Web Intelligence MCP Server initialized successfully")
    return mcp


def main():
    """Run the MCP server over stdio."""
    # stdout carries the MCP protocol; log to stderr
    logging.basicConfig(
        level=os.environ.get("WEB_INTEL_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    server = create_server()
    server.run()


if __name__ == "__main__":
    main()

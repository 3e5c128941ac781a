#!/usr/bin/env python3
"""
Web Intelligence Server - HTTP Mode

Runs either the FastAPI search API (JSON + Server-Sent Events) or the MCP
server over an HTTP transport (SSE or streamable-http) so that remote
clients can connect.

Usage:
    # HTTP search API (default)
    python run_server.py --mode api --port 8765

    # MCP over SSE
    python run_server.py --mode mcp --transport sse --port 8765

    # MCP over streamable-http
    python run_server.py --mode mcp --transport streamable-http

Environment Variables:
    SERPER_API_KEY / LINKUP_API_KEY / TAVILY_API_KEY: provider credentials
        (at least one is required)
    WEB_INTEL_API_PORT: HTTP API port (default: 8765)
    MCP_PORT: Server port for MCP mode (default: 8765)
    MCP_HOST: Server host (default: 0.0.0.0)
"""

import argparse
import logging
import os

from web_intelligence.presentation.api import DEFAULT_API_PORT, create_api_server
from web_intelligence.presentation.mcp_server import create_server

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Web Intelligence server in HTTP mode")
    parser.add_argument(
        "--mode",
        choices=["api", "mcp"],
        default="api",
        help="Serve the FastAPI search API or the MCP server (default: api)",
    )
    parser.add_argument(
        "--transport",
        choices=["sse", "streamable-http"],
        default="sse",
        help="MCP transport protocol (default: sse)",
    )
    parser.add_argument(
        "--host",
        default=os.environ.get("MCP_HOST", "0.0.0.0"),
        help="Server host (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("MCP_PORT", os.environ.get("WEB_INTEL_API_PORT", str(DEFAULT_API_PORT)))),
        help=f"Server port (default: {DEFAULT_API_PORT})",
    )
    parser.add_argument(
        "--no-security",
        action="store_true",
        help="Disable DNS rebinding protection for MCP mode (needed for remote access)",
    )
    args = parser.parse_args()

    import uvicorn

    logger.info(f"Starting Web Intelligence ({args.mode}) at http://{args.host}:{args.port}")

    if args.mode == "api":
        app = create_api_server()
    else:
        server = create_server(disable_security=args.no_security)
        if args.transport == "sse":
            logger.info("SSE endpoint: /sse, message endpoint: /messages")
            app = server.sse_app()
        else:
            logger.info("Streamable HTTP endpoint: /mcp")
            app = server.streamable_http_app()

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()

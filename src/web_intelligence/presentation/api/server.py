"""
HTTP API Server for the Web Intelligence engine.

Exposes the aggregation engine and the conversational dispatcher over HTTP:
plain JSON search endpoints, Server-Sent Events for streamed conversational
answers, a strategy preview, provider health and stream cancellation.

Endpoints:
    GET    /api/web-search                   API description
    POST   /api/web-search                   aggregated search (JSON)
    POST   /api/web-search/streaming         streamed search (SSE)
    POST   /api/web-search/jobs              job search
    POST   /api/web-search/company           company research
    GET    /api/web-search/health            provider health
    POST   /api/agent/search                 conversational search (SSE)
    GET    /api/agent/search?q=...           strategy preview (no execution)
    POST   /api/providers/{name}/search      single-provider search (debug)
    DELETE /api/streams/{stream_id}          cancel an active stream
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from web_intelligence.container import ApplicationContainer, create_container
from web_intelligence.domain.entities import RetrievalStrategy, SearchIntent, SearchQuery, Urgency
from web_intelligence.shared.async_utils import RequestContext
from web_intelligence.shared.exceptions import (
    ConfigurationError,
    ValidationError,
    WebIntelligenceError,
)

from .schemas import (
    CompanyResearchRequest,
    ErrorResponse,
    JobSearchRequest,
    QuestMetadata,
    StreamCancelResponse,
    WebSearchRequest,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from web_intelligence.application.conversation import ConnectionManager, FragmentStream
    from web_intelligence.domain.entities import AggregatedResponse

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
DEFAULT_API_PORT = 8765

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# =============================================================================
# Helpers
# =============================================================================


def _container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def _with_metadata(response: AggregatedResponse, context: RequestContext) -> dict[str, Any]:
    metadata = QuestMetadata(
        api_version=API_VERSION,
        timestamp=datetime.now(UTC).isoformat(),
        processing_time=response.timing_ms,
        search_id=context.request_id,
    )
    return {**response.to_dict(), "questMetadata": metadata.model_dump(by_alias=True)}


def _sse_response(connections: ConnectionManager, stream: FragmentStream, subscriber_id: str | None):
    """Serve *stream* as Server-Sent Events; a client disconnect cancels it."""
    handle = connections.register(stream, subscriber_id)

    async def events() -> AsyncIterator[str]:
        async with handle:
            async for fragment in stream:
                yield fragment.to_sse()

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Stream-Id": stream.stream_id},
    )


# =============================================================================
# App factory
# =============================================================================


def create_api_server(container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        container: DI container (defaults to one configured from the environment).

    Returns:
        Configured FastAPI instance.

    Raises:
        ConfigurationError: no search provider is configured
    """
    container = container or create_container()
    # Resolve eagerly so a missing configuration fails at startup
    engine = container.engine()
    dispatcher = container.dispatcher()
    connections = container.connections()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"HTTP API ready with providers: {', '.join(engine.registry.names)}")
        try:
            yield
        finally:
            await connections.cancel_all()
            await engine.registry.aclose()
            logger.info("HTTP API shut down; provider clients closed")

    app = FastAPI(
        title="Web Intelligence API",
        description="Multi-provider web search routing, aggregation and conversational streaming.",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "type": "invalid_parameter", "details": exc.errors()},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content=exc.to_dict())

    @app.exception_handler(WebIntelligenceError)
    async def web_intelligence_error_handler(request: Request, exc: WebIntelligenceError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=exc.to_dict())

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @app.get("/api/web-search")
    async def describe_api():
        """API description: endpoints, providers, intents and urgency levels."""
        return {
            "name": "Web Intelligence API",
            "version": API_VERSION,
            "endpoints": {
                "POST /api/web-search": "Aggregated multi-provider search",
                "POST /api/web-search/streaming": "Streamed search (Server-Sent Events)",
                "POST /api/web-search/jobs": "Job search",
                "POST /api/web-search/company": "Company research",
                "GET /api/web-search/health": "Provider health",
                "POST /api/agent/search": "Conversational search (Server-Sent Events)",
                "GET /api/agent/search?q=": "Retrieval strategy preview",
                "POST /api/providers/{name}/search": "Single-provider search",
                "DELETE /api/streams/{stream_id}": "Cancel an active stream",
            },
            "providers": [c.to_dict() for c in engine.registry.capabilities()],
            "intents": [i.value for i in SearchIntent],
            "urgency": [u.value for u in Urgency],
        }

    @app.post("/api/web-search", responses={400: {"model": ErrorResponse}})
    async def web_search(body: WebSearchRequest):
        query = SearchQuery.create(body.query, **body.hints())
        context = RequestContext()
        response = await engine.search(query, context)
        return _with_metadata(response, context)

    @app.post("/api/web-search/streaming", responses={400: {"model": ErrorResponse}})
    async def web_search_streaming(body: WebSearchRequest):
        query = SearchQuery.create(body.query, **body.hints())
        return _sse_response(connections, dispatcher.stream(query), body.subscriber_id)

    @app.post("/api/web-search/jobs", responses={400: {"model": ErrorResponse}})
    async def job_search(body: JobSearchRequest):
        context = RequestContext()
        response = await engine.search_jobs(
            body.query,
            body.location,
            urgency=body.urgency,
            max_results=body.max_results or 10,
            context=context,
        )
        return _with_metadata(response, context)

    @app.post("/api/web-search/company", responses={400: {"model": ErrorResponse}})
    async def company_research(body: CompanyResearchRequest):
        context = RequestContext()
        response = await engine.research_company(
            body.company,
            body.focus,
            urgency=body.urgency,
            max_results=body.max_results or 10,
            context=context,
        )
        return _with_metadata(response, context)

    @app.get("/api/web-search/health")
    async def health():
        report = await engine.health_check()
        return {**report.to_dict(), "activeStreams": connections.active_count}

    # -------------------------------------------------------------------------
    # Conversational
    # -------------------------------------------------------------------------

    @app.post("/api/agent/search", responses={400: {"model": ErrorResponse}})
    async def agent_search(body: WebSearchRequest):
        query = SearchQuery.create(body.query, **body.hints())
        return _sse_response(connections, dispatcher.stream(query), body.subscriber_id)

    @app.get("/api/agent/search", responses={400: {"model": ErrorResponse}})
    async def agent_strategy_preview(q: str | None = Query(default=None, description="Conversational query")):
        """Classify *q* without executing any provider call."""
        query = SearchQuery.create(q)
        analysis = dispatcher.classify_strategy(query.text)
        return {
            **analysis.to_dict(),
            "legs": [leg.name for leg in dispatcher.build_legs(query, analysis)],
            "strategies": {s.value: s.description for s in RetrievalStrategy},
        }

    # -------------------------------------------------------------------------
    # Debug / control
    # -------------------------------------------------------------------------

    @app.post(
        "/api/providers/{name}/search",
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def provider_search(name: str, body: WebSearchRequest):
        if name not in engine.registry:
            raise HTTPException(status_code=404, detail=f"Unknown provider: {name}")
        query = SearchQuery.create(body.query, **body.hints())
        context = RequestContext()
        response = await engine.search_with_provider(name, query, context)
        return _with_metadata(response, context)

    @app.delete("/api/streams/{stream_id}", response_model=StreamCancelResponse, responses={404: {"model": ErrorResponse}})
    async def cancel_stream(stream_id: str):
        if not connections.cancel(stream_id):
            raise HTTPException(status_code=404, detail=f"No active stream: {stream_id}")
        return StreamCancelResponse(stream_id=stream_id, cancelled=True)

    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int | None = None,
    container: ApplicationContainer | None = None,
) -> None:
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for local only)
        port: Port to bind to (default: WEB_INTEL_API_PORT or 8765)
        container: DI container (defaults to one built from the environment)
    """
    import uvicorn

    port = port or int(os.environ.get("WEB_INTEL_API_PORT", str(DEFAULT_API_PORT)))
    app = create_api_server(container)
    logger.info(f"Starting HTTP API server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")

#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the tutor gateway application, its middleware and routes, and
owns the lifecycle of the provider registry and the response cache.

Architectural Decision: components are built once in the lifespan
- The registry is constructed explicitly and handed to the orchestrator
- The durable cache connection is opened once and closed once
- Everything lives on app.state; routes reach it through dependencies.py

Author: Senior Solution Architect
Date: 2025-12-05
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutor_gateway.application.api.routes.cache import router as cache_router
from tutor_gateway.application.api.routes.chat import router as chat_router
from tutor_gateway.application.api.routes.health import router as health_router
from tutor_gateway.application.api.routes.providers import router as providers_router
from tutor_gateway.application.api.routes.topics import router as topics_router
from tutor_gateway.application.api.routes.tutor import router as tutor_router
from tutor_gateway.core.config.constants import HEADER_REQUEST_ID
from tutor_gateway.core.config.settings import Settings, get_settings
from tutor_gateway.core.exceptions import GatewayBaseError, LLMGatewayError
from tutor_gateway.core.interfaces.conversation import ConversationStore
from tutor_gateway.core.logging.logger import clear_request_id, get_logger, set_request_id, setup_logging
from tutor_gateway.infrastructure.cache.response_cache import ResponseCache
from tutor_gateway.llm_stream.providers.registry import ProviderRegistry
from tutor_gateway.llm_stream.services.stream_orchestrator import StreamOrchestrator
from tutor_gateway.llm_stream.services.topic_expansion_service import TopicExpansionService
from tutor_gateway.llm_stream.services.tutor_service import TutorService

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


def build_lifespan(
    settings: Settings,
    registry: ProviderRegistry | None = None,
    cache: ResponseCache | None = None,
    conversation_store: ConversationStore | None = None,
):
    """
    Create the lifespan context for one application instance.

    Pre-built components (tests) are used as given; anything missing is
    built from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

        logger.info(
            "Starting Tutor LLM Gateway",
            stage="0",
            environment=settings.ENVIRONMENT,
            version=settings.APP_VERSION,
        )

        provider_registry = registry or ProviderRegistry().configure(settings)
        response_cache = cache or ResponseCache(settings.cache)

        try:
            await response_cache.initialize()
            logger.info("Response cache ready", stage="C.1", backend=response_cache.backend_name)

            orchestrator = StreamOrchestrator(provider_registry, response_cache, settings)

            app.state.settings = settings
            app.state.registry = provider_registry
            app.state.cache = response_cache
            app.state.orchestrator = orchestrator
            app.state.tutor_service = TutorService(orchestrator, response_cache, conversation_store)
            app.state.topic_service = TopicExpansionService(orchestrator)

            logger.info(
                "Application startup complete",
                stage="0",
                providers=sorted(provider_registry.list_available()),
                default_provider=provider_registry.default_name,
            )

            yield

        finally:
            logger.info("Shutting down application", stage="6")
            await response_cache.close()
            await provider_registry.aclose()
            logger.info("Application shutdown complete", stage="6")

    return lifespan


# ============================================================================
# Exception Handlers
# ============================================================================


async def gateway_exception_handler(request: Request, exc: LLMGatewayError) -> JSONResponse:
    """Classified vendor failures keep their mapped HTTP status."""
    logger.warning(
        "Gateway error",
        kind=exc.kind.value,
        provider=exc.provider,
        http_status=exc.http_status,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.kind.value, "message": exc.message},
    )


async def base_exception_handler(request: Request, exc: GatewayBaseError) -> JSONResponse:
    logger.error("Unhandled gateway exception", error_type=type(exc).__name__, error=exc.message)
    return JSONResponse(
        status_code=500,
        content={"error": type(exc).__name__, "message": exc.message},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    settings: Settings | None = None,
    registry: ProviderRegistry | None = None,
    cache: ResponseCache | None = None,
    conversation_store: ConversationStore | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Multi-provider LLM streaming gateway for the tutor",
        lifespan=build_lifespan(settings, registry, cache, conversation_store),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Propagate X-Request-ID into the logging context and the response."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    app.add_exception_handler(LLMGatewayError, gateway_exception_handler)
    app.add_exception_handler(GatewayBaseError, base_exception_handler)

    base_path = settings.API_BASE_PATH
    app.include_router(health_router, prefix=base_path)
    app.include_router(tutor_router, prefix=base_path)
    app.include_router(topics_router, prefix=base_path)
    app.include_router(chat_router, prefix=base_path)
    app.include_router(providers_router, prefix=base_path)
    app.include_router(cache_router, prefix=base_path)

    return app


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tutor_gateway.application.app:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

"""
FastAPI Dependencies

Accessors for the components the lifespan builds once and stores on
``app.state``. Nothing here constructs components on demand: a missing
component means startup did not complete.
"""

from typing import Annotated, Any

from fastapi import Depends, Request

from tutor_gateway.core.config.settings import Settings, get_settings
from tutor_gateway.infrastructure.cache.response_cache import ResponseCache
from tutor_gateway.llm_stream.providers.registry import ProviderRegistry
from tutor_gateway.llm_stream.services.stream_orchestrator import StreamOrchestrator
from tutor_gateway.llm_stream.services.topic_expansion_service import TopicExpansionService
from tutor_gateway.llm_stream.services.tutor_service import TutorService


def _from_state(request: Request, name: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise RuntimeError(
            f"{name} not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return component


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_orchestrator(request: Request) -> StreamOrchestrator:
    return _from_state(request, "orchestrator")


def get_registry(request: Request) -> ProviderRegistry:
    return _from_state(request, "registry")


def get_response_cache(request: Request) -> ResponseCache:
    return _from_state(request, "cache")


def get_tutor_service(request: Request) -> TutorService:
    return _from_state(request, "tutor_service")


def get_topic_service(request: Request) -> TopicExpansionService:
    return _from_state(request, "topic_service")


# ============================================================================
# TYPE ALIASES FOR ROUTES
# ============================================================================

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
OrchestratorDep = Annotated[StreamOrchestrator, Depends(get_orchestrator)]
RegistryDep = Annotated[ProviderRegistry, Depends(get_registry)]
CacheDep = Annotated[ResponseCache, Depends(get_response_cache)]
TutorServiceDep = Annotated[TutorService, Depends(get_tutor_service)]
TopicServiceDep = Annotated[TopicExpansionService, Depends(get_topic_service)]

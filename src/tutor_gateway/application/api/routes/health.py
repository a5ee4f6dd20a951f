"""
Health Route

Reports which vendors are configured, which one answers by default and
which cache backend is active. The service is healthy with zero vendors:
the deterministic fallback still answers.
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from tutor_gateway.application.api.dependencies import CacheDep, OrchestratorDep, RegistryDep, SettingsDep

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    providers: list[str]
    default_provider: str | None
    cache_backend: str
    cache_degraded: bool
    gateway: dict[str, Any]


@router.get("", response_model=HealthResponse)
async def health(
    settings: SettingsDep,
    registry: RegistryDep,
    cache: CacheDep,
    orchestrator: OrchestratorDep,
) -> HealthResponse:
    providers = sorted(registry.list_available())
    return HealthResponse(
        status="ok" if providers else "degraded",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        providers=providers,
        default_provider=registry.default_name,
        cache_backend=cache.backend_name,
        cache_degraded=cache.degraded,
        gateway=orchestrator.get_stats(),
    )

"""
Providers Route

Lists the vendors that have credentials configured and the one used when
a request names none (or names an unknown one).
"""

from fastapi import APIRouter
from pydantic import BaseModel

from tutor_gateway.application.api.dependencies import RegistryDep

router = APIRouter(prefix="/providers", tags=["Providers"])


class ProvidersResponse(BaseModel):
    providers: list[str]
    default_provider: str | None


@router.get("", response_model=ProvidersResponse)
async def list_providers(registry: RegistryDep) -> ProvidersResponse:
    return ProvidersResponse(providers=sorted(registry.list_available()), default_provider=registry.default_name)

"""
Response Cache Routes

Direct lookup and population of cached answers by fingerprint, for clients
that compute the fingerprint themselves and stream through another path.

Architectural Decision: same rules as the gateway's own writes
- Answers shorter than the minimum length are not stored
- A ``no_cache`` write is acknowledged and skipped
- Store failures degrade the cache silently; they never fail the request
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from tutor_gateway.application.api.dependencies import CacheDep
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.stream_request import Usage

router = APIRouter(prefix="/cache", tags=["Cache"])
logger = get_logger(__name__)


class CachedAnswerResponse(BaseModel):
    fingerprint: str
    answer: str
    usage: Usage | None
    timestamp: datetime


class CacheStoreRequest(BaseModel):
    fingerprint: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    usage: Usage | None = None
    no_cache: bool = False


class CacheStoreResponse(BaseModel):
    cached: bool
    message: str


@router.get(
    "/{fingerprint}",
    response_model=CachedAnswerResponse,
    responses={404: {"description": "No live entry for this fingerprint"}},
)
async def get_cached_answer(fingerprint: str, cache: CacheDep) -> CachedAnswerResponse:
    entry = await cache.get(fingerprint)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cache entry not found")
    return CachedAnswerResponse(
        fingerprint=fingerprint,
        answer=entry.answer,
        usage=entry.usage,
        timestamp=entry.timestamp,
    )


@router.post("", response_model=CacheStoreResponse)
async def store_cached_answer(body: CacheStoreRequest, cache: CacheDep) -> CacheStoreResponse:
    cached = await cache.set(body.fingerprint, body.answer, body.usage, no_cache=body.no_cache)
    logger.info(
        "Cache store requested",
        stage="2.3",
        fingerprint=body.fingerprint,
        no_cache=body.no_cache,
        cached=cached,
    )
    if not cached:
        return CacheStoreResponse(cached=False, message="Response not cached (too short or no_cache flag)")
    return CacheStoreResponse(cached=True, message="Response cached successfully")

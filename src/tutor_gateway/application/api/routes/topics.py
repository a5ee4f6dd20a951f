"""
Topic Expansion Route

Gateway failures other than the ones absorbed by the deterministic
fallback propagate as LLMGatewayError and are rendered by the
application's exception handler as ``{"error": kind, "message": ...}``.
"""

from fastapi import APIRouter

from tutor_gateway.application.api.dependencies import TopicServiceDep
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.topic import ExpandTopicRequest, TopicExpansion

router = APIRouter(prefix="/topics", tags=["Topics"])
logger = get_logger(__name__)


@router.post(
    "/expand",
    response_model=TopicExpansion,
    responses={
        401: {"description": "Provider rejected the API key"},
        404: {"description": "Configured model not found"},
        429: {"description": "Provider rate limit exceeded"},
        502: {"description": "Provider transport failure"},
    },
)
async def expand_topic(body: ExpandTopicRequest, service: TopicServiceDep) -> TopicExpansion:
    logger.info(
        "Topic expansion requested",
        stage="1.0",
        lesson_id=body.context.lesson_id,
        has_question=bool(body.question),
        has_selection=bool(body.context.user_selection),
    )
    return await service.expand(body)

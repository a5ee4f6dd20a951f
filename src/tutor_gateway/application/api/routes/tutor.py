"""
Tutor Streaming Route

Relays one tutor turn to the client as server-sent events:

    event: start
    data: {"type":"start"}

    event: token
    data: {"type":"token","delta":"La PEEP"}

    ...

A client disconnect sets the turn's cancel event, so the gateway stops
forwarding, cancels the in-flight vendor call and writes nothing.
"""

from functools import partial

from fastapi import APIRouter, Request, status

from tutor_gateway.application.api.dependencies import TutorServiceDep
from tutor_gateway.application.api.sse import sse_response
from tutor_gateway.core.logging.logger import get_logger
from tutor_gateway.llm_stream.models.tutor import TutorTurnRequest

router = APIRouter(prefix="/tutor", tags=["Tutor"])
logger = get_logger(__name__)


@router.post(
    "/stream",
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Tutor event stream", "content": {"text/event-stream": {}}},
        422: {"description": "Validation error - invalid request format"},
    },
)
async def stream_tutor_turn(request: Request, body: TutorTurnRequest, service: TutorServiceDep):
    """Stream ``start, token*, end, suggestions`` (or ``start, error``) for one learner message."""
    logger.info(
        "Tutor turn received",
        stage="1.0",
        lesson_id=body.lesson_context.lesson_id,
        provider=body.provider_name,
        message_length=len(body.user_message),
        history_length=len(body.history),
    )

    return sse_response(partial(service.stream_turn, body), request)

"""
Server-Sent Events Relay

Shared by every streaming route. Events are produced by a callable that
receives the request's cancel event; a watcher task sets that event once
the client disconnects, so the gateway stops forwarding and writes nothing.

The watcher is always stopped by setting the cancel event first. Starlette
polls for disconnects inside a cancelled scope, which can absorb a task
cancellation, so cancelling the task alone may leave it polling forever
and keep the response open.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing, suppress

from fastapi import Request
from fastapi.responses import StreamingResponse

from tutor_gateway.core.config.constants import HEADER_REQUEST_ID
from tutor_gateway.core.logging.logger import get_logger, get_request_id
from tutor_gateway.llm_stream.models.stream_request import TutorEvent

logger = get_logger(__name__)

DISCONNECT_POLL_SECONDS = 0.5

EventSource = Callable[[asyncio.Event], AsyncGenerator[TutorEvent, None]]


async def watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set ``cancel_event`` once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, aborting stream", stage="6.1")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def relay_events(events_for: EventSource, request: Request) -> AsyncGenerator[str, None]:
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(request, cancel_event))
    try:
        async with aclosing(events_for(cancel_event)) as events:
            async for event in events:
                yield event.format()
    finally:
        cancel_event.set()
        watcher.cancel()
        with suppress(asyncio.CancelledError):
            await watcher


def sse_response(events_for: EventSource, request: Request) -> StreamingResponse:
    return StreamingResponse(
        relay_events(events_for, request),
        media_type="text/event-stream",
        headers={
            HEADER_REQUEST_ID: get_request_id() or "",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

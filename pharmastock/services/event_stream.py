"""Server-sent event forwarding for narrative token streams.

The channel keeps exactly one token request in flight. While it waits, a keep-alive
comment goes out every ``heartbeat_seconds`` so proxies do not drop an idle connection.
Once a disconnect is observed nothing else is forwarded: the pending request is cancelled
and the upstream iterator is closed before the generator returns.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi.responses import StreamingResponse

from pharmastock.exceptions import Cancelled, UpstreamFailure

logger = logging.getLogger(__name__)

HEARTBEAT = ": keep-alive\n\n"
DONE = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_END = object()


def format_event(data: str, event: str | None = None) -> str:
    # One data: line per text line so embedded newlines survive framing
    head = f"event: {event}\n" if event else ""
    return head + "".join(f"data: {line}\n" for line in data.split("\n")) + "\n"


async def _next_token(iterator: AsyncIterator[str]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def forward_tokens(
    tokens: AsyncIterator[str],
    heartbeat_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``tokens``, ending with the ``[DONE]`` sentinel.

    Raises :class:`Cancelled` when ``is_disconnected`` reports the client has gone.
    """

    async def check_cancelled():
        if is_disconnected is not None and await is_disconnected():
            raise Cancelled("Client disconnected")

    pending: asyncio.Task | None = None
    try:
        while True:
            await check_cancelled()
            if pending is None:
                pending = asyncio.ensure_future(_next_token(tokens))
            done, _ = await asyncio.wait({pending}, timeout=heartbeat_seconds)
            if not done:
                yield HEARTBEAT
                continue
            task, pending = pending, None
            token = task.result()
            if token is _END:
                break
            await check_cancelled()
            yield format_event(token)
        yield DONE
    finally:
        if pending is not None:
            pending.cancel()
            await asyncio.wait({pending})
        aclose = getattr(tokens, "aclose", None)
        if aclose is not None:
            await aclose()


async def narrative_events(
    tokens: AsyncIterator[str],
    heartbeat_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Wrap :func:`forward_tokens`: upstream failures become an ``error`` event, disconnects end quietly."""
    try:
        async for frame in forward_tokens(tokens, heartbeat_seconds, is_disconnected):
            yield frame
    except Cancelled:
        logger.info("Narrative stream cancelled by client")
    except UpstreamFailure as e:
        logger.error("Narrative stream failed: %s", e)
        yield format_event(str(e), event="error")
    except Exception:
        logger.exception("Unexpected error while streaming narrative")
        yield format_event("Internal server error", event="error")


async def error_events(message: str) -> AsyncIterator[str]:
    yield format_event(message, event="error")


def sse_response(frames: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(frames, media_type="text/event-stream", headers=SSE_HEADERS)

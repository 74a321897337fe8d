"""UI message stream encoding for streamed model output."""

from __future__ import annotations

import json
import logging
from typing import AsyncGenerator, AsyncIterator
from uuid import uuid4

from ..services.llm import UpstreamFailure

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "x-vercel-ai-ui-message-stream": "v1",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}
UPSTREAM_ERROR = "The model service failed to respond. Please try again."


def encode_event(payload: dict | str) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n"


async def ui_message_stream(
    first: str | None, chunks: AsyncGenerator[str, None]
) -> AsyncIterator[str]:
    """Relay text deltas, ``first`` having already been pulled from ``chunks``."""

    text_id = uuid4().hex
    yield encode_event({"type": "start", "messageId": f"msg-{uuid4().hex}"})
    yield encode_event({"type": "text-start", "id": text_id})
    try:
        if first:
            yield encode_event({"type": "text-delta", "id": text_id, "delta": first})
        async for delta in chunks:
            yield encode_event({"type": "text-delta", "id": text_id, "delta": delta})
    except UpstreamFailure as exc:
        logger.error("Upstream stream broke off: %s", exc)
        yield encode_event({"type": "error", "errorText": UPSTREAM_ERROR})
    except Exception:
        logger.exception("Relaying model output failed")
        yield encode_event({"type": "error", "errorText": UPSTREAM_ERROR})
    else:
        yield encode_event({"type": "text-end", "id": text_id})
        yield encode_event({"type": "finish"})
    finally:
        await chunks.aclose()
    yield encode_event("[DONE]")


__all__ = ["STREAM_HEADERS", "UPSTREAM_ERROR", "encode_event", "ui_message_stream"]

"""FastAPI application serving the guarded chat endpoint."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..config import Settings, get_settings
from ..models import ChatRequest
from ..services.admission import AdmissionError, ChatGate, InvalidChatRequest
from ..services.identity import resolve_client_identifier
from ..services.llm import LLMService, UpstreamFailure
from ..services.rate_limit import RateLimiter
from .stream import STREAM_HEADERS, UPSTREAM_ERROR, ui_message_stream

logger = logging.getLogger(__name__)

app = FastAPI(title="Demo Chat Gate API")


@app.on_event("startup")
async def startup() -> None:
    settings = get_settings()
    app.state.rate_limiter = RateLimiter()
    app.state.rate_limiter.start_sweeper(settings.limits.sweep_interval)
    app.state.llm = LLMService(settings.llm, api_key=settings.api_key)


@app.on_event("shutdown")
async def shutdown() -> None:
    await app.state.rate_limiter.stop_sweeper()
    await app.state.llm.close()


def error_response(message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    return error_response(exc.message, exc.status_code, exc.headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    return error_response("An unexpected error occurred", 500)


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_llm(request: Request) -> LLMService:
    return request.app.state.llm


def get_gate(
    settings: Settings = Depends(get_settings),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> ChatGate:
    return ChatGate(settings, rate_limiter)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/limits")
async def limits(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return {
        "max_messages_per_session": settings.limits.max_messages_per_session,
        "max_message_length": settings.limits.max_message_length,
        "rate_limit": {
            "max_requests": settings.limits.rate_limit_max_requests,
            "window_seconds": settings.limits.rate_limit_window_seconds,
        },
        "models": [
            {"value": option.value, "name": option.name, "served_as": settings.llm.economy_model}
            for option in settings.llm.model_options
        ],
    }


async def _parse_chat_request(request: Request) -> ChatRequest:
    try:
        payload = await request.json()
        return ChatRequest.model_validate(payload)
    except ValueError as exc:
        raise InvalidChatRequest("Invalid request body.") from exc


@app.post("/api/chat")
async def chat(
    request: Request,
    gate: ChatGate = Depends(get_gate),
    llm: LLMService = Depends(get_llm),
):
    # Quota is taken before the body is read, so malformed requests still count
    identifier = resolve_client_identifier(request.headers)
    rate_limit = gate.check_rate_limit(identifier)
    admission = gate.admit_body(await _parse_chat_request(request), rate_limit)

    chunks = llm.stream(admission.model, admission.messages)
    try:
        first = await anext(chunks, None)
    except UpstreamFailure:
        await chunks.aclose()
        return error_response(UPSTREAM_ERROR, 500)
    except Exception:
        logger.exception("Chat request failed")
        await chunks.aclose()
        return error_response("An unexpected error occurred", 500)

    return StreamingResponse(
        ui_message_stream(first, chunks),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


__all__ = ["app", "get_gate", "get_llm", "get_rate_limiter"]

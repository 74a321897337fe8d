"""Admission checks that run before a chat request reaches the model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..config import Settings
from ..models import ChatMessage, ChatRequest
from .rate_limit import RateLimitResult, RateLimitRule, RateLimiter

logger = logging.getLogger(__name__)


class AdmissionError(Exception):
    """A request rejected before any upstream call."""

    status_code = 500

    def __init__(self, message: str, *, headers: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class InvalidChatRequest(AdmissionError):
    status_code = 400


class RateLimited(AdmissionError):
    status_code = 429

    def __init__(self, result: RateLimitResult) -> None:
        reset = datetime.fromtimestamp(result.reset_at).strftime("%H:%M:%S")
        super().__init__(
            f"Rate limit exceeded. Try again after {reset}.",
            headers={
                "X-RateLimit-Remaining": str(result.remaining),
                "X-RateLimit-Reset": str(int(result.reset_at * 1000)),
            },
        )
        self.result = result


class SessionLimitExceeded(AdmissionError):
    status_code = 429


class MessageTooLong(AdmissionError):
    status_code = 400


class MissingCredential(AdmissionError):
    status_code = 500


@dataclass(frozen=True, slots=True)
class Admission:
    model: str
    messages: list[ChatMessage]
    rate_limit: RateLimitResult


class ChatGate:
    """Applies the demo cost guards in order, failing on the first one hit."""

    def __init__(self, settings: Settings, rate_limiter: RateLimiter) -> None:
        self.settings = settings
        self.rate_limiter = rate_limiter
        limits = settings.limits
        self.rule = RateLimitRule(
            max_requests=limits.rate_limit_max_requests,
            window_seconds=limits.rate_limit_window_seconds,
        )

    def check_rate_limit(self, identifier: str) -> RateLimitResult:
        result = self.rate_limiter.check(identifier, self.rule)
        if not result.allowed:
            logger.info("Rate limit hit for %s", identifier)
            raise RateLimited(result)
        return result

    def check_session(self, request: ChatRequest) -> None:
        limit = self.settings.limits.max_messages_per_session
        if len(request.user_messages()) > limit:
            raise SessionLimitExceeded(
                f"Demo limit reached. You can send up to {limit} messages per session. "
                "Please refresh to start a new session."
            )

    def check_length(self, request: ChatRequest) -> None:
        limit = self.settings.limits.max_message_length
        user_messages = request.user_messages()
        # Every text part of the latest user turn is held to the ceiling
        if user_messages and any(len(text) > limit for text in user_messages[-1].text_parts):
            raise MessageTooLong(f"Message too long. Please keep messages under {limit} characters.")

    def check_credentials(self) -> None:
        if not self.settings.api_key:
            logger.error("Upstream API key is not configured")
            raise MissingCredential("OpenAI API key not configured")

    def select_model(self, requested: str | None) -> str:
        economy = self.settings.llm.economy_model
        if requested == self.settings.llm.premium_model:
            logger.info("Downgrading %s to %s", requested, economy)
        elif requested and requested != economy:
            logger.info("Unsupported model %s, serving %s", requested, economy)
        return economy

    def admit(self, identifier: str, request: ChatRequest) -> Admission:
        rate_limit = self.check_rate_limit(identifier)
        return self.admit_body(request, rate_limit)

    def admit_body(self, request: ChatRequest, rate_limit: RateLimitResult) -> Admission:
        """Run the checks that follow an already passed rate limit."""

        self.check_session(request)
        self.check_length(request)
        self.check_credentials()
        return Admission(
            model=self.select_model(request.model),
            messages=list(request.messages),
            rate_limit=rate_limit,
        )


__all__ = [
    "Admission",
    "AdmissionError",
    "ChatGate",
    "InvalidChatRequest",
    "MessageTooLong",
    "MissingCredential",
    "RateLimited",
    "SessionLimitExceeded",
]

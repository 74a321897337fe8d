"""Streaming client for an OpenAI-compatible chat completions API."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Iterable

import httpx

from ..config import LLMConfig
from ..models import ChatMessage

logger = logging.getLogger(__name__)


class UpstreamFailure(Exception):
    """The model service failed or returned something unusable."""


def convert_messages(messages: Iterable[ChatMessage]) -> list[dict[str, str]]:
    converted = []
    for message in messages:
        text = message.text
        if not text:
            continue
        converted.append({"role": message.role, "content": text})
    return converted


class LLMService:
    def __init__(
        self,
        config: LLMConfig,
        *,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )
        self._config = config

    def build_payload(self, model: str, messages: Iterable[ChatMessage]) -> dict:
        payload = {
            "model": model,
            "stream": True,
            "messages": [{"role": "system", "content": self._config.system_prompt}]
            + convert_messages(messages),
        }
        if self._config.temperature is not None:
            payload["temperature"] = self._config.temperature
        return payload

    async def stream(self, model: str, messages: Iterable[ChatMessage]) -> AsyncIterator[str]:
        """Yield text deltas as the upstream produces them."""

        payload = self.build_payload(model, messages)
        try:
            async with self._client.stream("POST", "/chat/completions", json=payload) as response:
                if response.is_error:
                    await response.aread()
                    logger.error("LLM request failed: %s %s", response.status_code, response.text[:200])
                    raise UpstreamFailure(f"upstream returned {response.status_code}")
                async for line in response.aiter_lines():
                    delta = self._parse_line(line)
                    if delta is None:
                        break
                    if delta:
                        yield delta
        except httpx.HTTPError as exc:
            logger.error("LLM request failed: %s", exc)
            raise UpstreamFailure(str(exc)) from exc

    @staticmethod
    def _parse_line(line: str) -> str | None:
        """Return the text delta of one SSE line, '' if none, None at end of stream."""

        if not line.startswith("data:"):
            return ""
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            return None
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise UpstreamFailure("malformed stream chunk") from exc
        if not isinstance(chunk, dict):
            raise UpstreamFailure("malformed stream chunk")
        if chunk.get("error"):
            raise UpstreamFailure(str(chunk["error"]))
        choices = chunk.get("choices")
        # Usage-only chunks carry no choices
        if choices is None or choices == []:
            return ""
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise UpstreamFailure("malformed stream chunk")
        delta = choices[0].get("delta") or {}
        if not isinstance(delta, dict):
            raise UpstreamFailure("malformed stream chunk")
        content = delta.get("content")
        if content is not None and not isinstance(content, str):
            raise UpstreamFailure("malformed stream chunk")
        return content or ""

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["LLMService", "UpstreamFailure", "convert_messages"]

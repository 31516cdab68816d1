"""Async chat completion client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, cast

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import RequestFailure

__all__ = ["ClientSettings", "TokenUsage", "ChatReply", "AIClient"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> "ClientSettings":
        """Build client settings from a stored :class:`Settings` snapshot."""

        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers or {}),
            debug_logging=settings.debug_logging,
        )


@dataclass(slots=True, frozen=True)
class TokenUsage:
    """Token accounting reported with a completion."""

    completion_tokens: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_response(cls, usage: Any) -> "TokenUsage":
        if usage is None:
            return cls()
        return cls(
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
        )


@dataclass(slots=True, frozen=True)
class ChatReply:
    """Content of the first completion choice plus its usage."""

    content: str
    usage: TokenUsage
    model: str | None = None
    finish_reason: str | None = None


class AIClient:
    """Async client issuing chat completions with retry semantics."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete_chat(
        self,
        messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam],
        params: Mapping[str, Any] | None = None,
    ) -> ChatReply:
        """Request a single chat completion and return its first choice.

        ``params`` holds request parameters such as ``model`` or ``temperature``;
        entries set to ``None`` are omitted. Transport and HTTP errors surface as
        :class:`RequestFailure`.
        """

        payload = self._build_chat_payload(self._coerce_messages(messages), params or {})
        LOGGER.debug(
            "Requesting chat completion via %s with %s message(s)",
            payload["model"],
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.chat.completions.create(**payload)
        except APIStatusError as exc:
            raise RequestFailure(
                f"Chat completion failed with status {exc.status_code}: {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except (APIError, httpx.HTTPError) as exc:
            raise RequestFailure(f"Chat completion request failed: {exc}") from exc

        return self._parse_response(response)

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIError,
                    APIStatusError,
                    APIConnectionError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _coerce_messages(
        self, messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam]
    ) -> List[ChatCompletionMessageParam]:
        normalized: List[ChatCompletionMessageParam] = []
        for message in messages:
            try:
                normalized.append(cast(ChatCompletionMessageParam, dict(message)))
            except (TypeError, ValueError) as exc:
                raise TypeError("Messages must be mapping-like objects") from exc
        if not normalized:
            raise ValueError("At least one message is required to request a completion")
        return normalized

    def _build_chat_payload(
        self,
        messages: List[ChatCompletionMessageParam],
        params: Mapping[str, Any],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self._settings.model}
        for key, value in params.items():
            if value is not None:
                payload[key] = value
        payload["messages"] = messages
        return payload

    def _parse_response(self, response: Any) -> ChatReply:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise RequestFailure("Chat completion returned no choices")
        first = choices[0]
        message = getattr(first, "message", None)
        content = getattr(message, "content", None) or ""
        reply = ChatReply(
            content=str(content),
            usage=TokenUsage.from_response(getattr(response, "usage", None)),
            model=getattr(response, "model", None),
            finish_reason=getattr(first, "finish_reason", None),
        )
        LOGGER.debug(
            "Chat completion returned %s char(s); usage=%s",
            len(reply.content),
            reply.usage,
        )
        return reply

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

"""Shared test helpers and stub classes."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Mapping, Sequence

from aissist.ai.client import ChatReply, TokenUsage
from aissist.errors import RequestFailure

TIMESTAMP = "2024-05-01T09:30"


def make_completion(
    content: str,
    *,
    usage: tuple[int, int, int] | None = (1, 5, 6),
    model: str = "gpt-4o",
) -> SimpleNamespace:
    """Build an object shaped like an OpenAI ``ChatCompletion``."""

    usage_payload = None
    if usage is not None:
        completion, prompt, total = usage
        usage_payload = SimpleNamespace(
            completion_tokens=completion, prompt_tokens=prompt, total_tokens=total
        )
    message = SimpleNamespace(role="assistant", content=content)
    choice = SimpleNamespace(index=0, message=message, finish_reason="stop")
    return SimpleNamespace(choices=[choice], usage=usage_payload, model=model)


class FakeChatClient:
    """Records chat requests and replays queued replies or failures."""

    def __init__(self, *replies: ChatReply | Exception) -> None:
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def complete_chat(
        self, messages: Sequence[Mapping[str, Any]], params: Mapping[str, Any] | None = None
    ) -> ChatReply:
        self.calls.append({"messages": [dict(item) for item in messages], "params": dict(params or {})})
        if not self._replies:
            raise RequestFailure("No reply queued")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def reply(content: str, completion: int = 1, prompt: int = 5, total: int = 6) -> ChatReply:
    return ChatReply(content=content, usage=TokenUsage(completion, prompt, total))

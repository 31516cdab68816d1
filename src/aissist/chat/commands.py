"""Editor commands that run a chat completion against the active note.

Each command resolves configuration, captures the prompt, optionally decodes
the conversation, awaits the request and finally writes the reply and usage
counters back into the note. Failures before the request leave the note as
the failing step found it; failures from the request onward keep every
earlier edit and only surface a notice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Protocol, Sequence

from ..ai.client import ChatReply, TokenUsage
from ..ai.prompts import TITLE_GENERATION, sanitize_title
from ..documents.conversation import decode_conversation
from ..documents.markers import Role, Turn, encode_reply, format_timestamp
from ..documents.metadata import read_metadata, strip_metadata, upsert_property
from ..documents.prompt import CapturedPrompt, extract_prompt
from ..editor.buffer import EditorSurface, Position
from ..errors import AIssistError, NoActiveDocument, RequestFailure
from ..services.request_config import METADATA_PREFIX, EffectiveConfig, resolve_request_config
from ..services.settings import Settings
from ..utils.logging import command_scope

__all__ = [
    "Notifier",
    "LoggingNotifier",
    "ChatBackend",
    "CommandPhase",
    "CommandOutcome",
    "ChatCommandRunner",
    "USAGE_KEYS",
    "COMMANDS",
    "merge_usage",
]

LOGGER = logging.getLogger(__name__)

USAGE_KEYS: Mapping[str, str] = {
    "completion_tokens": f"{METADATA_PREFIX}chat_completion_tokens",
    "prompt_tokens": f"{METADATA_PREFIX}chat_prompt_tokens",
    "total_tokens": f"{METADATA_PREFIX}chat_total_tokens",
}


class Notifier(Protocol):
    """Channel for short user-facing notices."""

    def notify(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that logs each notice and keeps it for later inspection."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        LOGGER.warning("Notice: %s", message)


class ChatBackend(Protocol):
    async def complete_chat(
        self, messages: Sequence[Mapping[str, Any]], params: Mapping[str, Any] | None = None
    ) -> ChatReply:
        ...


class CommandPhase(str, Enum):
    """Steps a command passes through, in order."""

    IDLE = "idle"
    CONFIG_RESOLVED = "config_resolved"
    PROMPT_CAPTURED = "prompt_captured"
    REQUEST_PENDING = "request_pending"
    REPLY_INSERTED = "reply_inserted"
    METADATA_UPDATED = "metadata_updated"


@dataclass(slots=True)
class CommandOutcome:
    """What a command reached before it finished or stopped."""

    command: str
    phases: list[CommandPhase] = field(default_factory=list)
    config: EffectiveConfig | None = None
    prompt: CapturedPrompt | None = None
    messages: list[Dict[str, str]] = field(default_factory=list)
    reply: ChatReply | None = None
    error: AIssistError | None = None

    @property
    def phase(self) -> CommandPhase:
        return self.phases[-1] if self.phases else CommandPhase.IDLE

    @property
    def ok(self) -> bool:
        return self.error is None and self.phase is CommandPhase.METADATA_UPDATED


def merge_usage(metadata: Mapping[str, Any], usage: TokenUsage) -> Dict[str, int]:
    """Return the accumulated counters: prior value plus this request's usage."""

    merged: Dict[str, int] = {}
    for attribute, key in USAGE_KEYS.items():
        increment = int(getattr(usage, attribute))
        prior = metadata.get(key)
        try:
            merged[key] = int(prior) + increment if prior not in (None, "") else increment
        except (TypeError, ValueError):
            LOGGER.warning("Usage counter %s=%r is not a number; restarting it", key, prior)
            merged[key] = increment
    return merged


class ChatCommandRunner:
    """Runs the prompt, chat and title commands against an editor surface."""

    def __init__(
        self,
        client: ChatBackend,
        settings: Settings,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock or datetime.now
        self.phase = CommandPhase.IDLE

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    async def run_prompt(self, editor: EditorSurface | None) -> CommandOutcome:
        """Send only the captured prompt."""

        return await self._run("prompt-completion-request", editor, contextual=False)

    async def run_chat(self, editor: EditorSurface | None) -> CommandOutcome:
        """Send the captured prompt with the windowed conversation before it."""

        return await self._run("chat-completion-request", editor, contextual=True)

    async def generate_title(self, editor: EditorSurface | None) -> str | None:
        """Ask the model for a note title; the note itself is left untouched."""

        with command_scope("generate-note-title"):
            return await self._suggest_title(editor)

    async def _suggest_title(self, editor: EditorSurface | None) -> str | None:
        try:
            if editor is None:
                raise NoActiveDocument()
            config = resolve_request_config(editor, self._settings, persist=False)
        except AIssistError as exc:
            self._notifier.notify(exc.user_message())
            return None
        body = strip_metadata(editor.get_value()).strip()
        if not body:
            self._notifier.notify("[AIssist] Note is empty; nothing to title.")
            return None

        messages = [
            Turn(Role.SYSTEM, TITLE_GENERATION).as_message(),
            Turn(Role.USER, body).as_message(),
        ]
        params = dict(config.request_params(), n=1)
        try:
            reply = await self._client.complete_chat(messages, params)
        except RequestFailure as exc:
            LOGGER.error("Title generation failed: %s", exc)
            self._notifier.notify(exc.user_message())
            return None
        title = sanitize_title(reply.content)
        if not title:
            self._notifier.notify("[AIssist] The model returned no usable title.")
            return None
        LOGGER.debug("Suggested title: %s", title)
        return title

    async def _run(
        self, command: str, editor: EditorSurface | None, *, contextual: bool
    ) -> CommandOutcome:
        outcome = CommandOutcome(command=command)
        with command_scope(command):
            try:
                await self._execute(outcome, editor, contextual=contextual)
            except AIssistError as exc:
                outcome.error = exc
                if outcome.phase in (CommandPhase.IDLE, CommandPhase.CONFIG_RESOLVED):
                    LOGGER.info("Aborted: %s", exc)
                else:
                    LOGGER.error("Failed after %s: %s", outcome.phase.value, exc)
                self._notifier.notify(exc.user_message())
            finally:
                self.phase = CommandPhase.IDLE
        return outcome

    async def _execute(
        self, outcome: CommandOutcome, editor: EditorSurface | None, *, contextual: bool
    ) -> None:
        if editor is None:
            raise NoActiveDocument()
        config = resolve_request_config(editor, self._settings)
        outcome.config = config
        self._advance(outcome, CommandPhase.CONFIG_RESOLVED)

        timestamp = format_timestamp(self._clock())
        outcome.prompt = extract_prompt(editor, self._settings.prompt_head, timestamp=timestamp)
        self._advance(outcome, CommandPhase.PROMPT_CAPTURED)

        if contextual:
            turns = decode_conversation(editor.get_value(), self._settings.max_previous_messages)
        else:
            turns = [Turn(Role.USER, outcome.prompt.content)]
        if config.system_message:
            turns = [Turn(Role.SYSTEM, config.system_message), *turns]
        outcome.messages = [dict(turn.as_message()) for turn in turns]

        self._advance(outcome, CommandPhase.REQUEST_PENDING)
        reply = await self._client.complete_chat(outcome.messages, config.request_params())
        outcome.reply = reply

        self._insert_reply(editor, reply.content, timestamp=format_timestamp(self._clock()))
        self._advance(outcome, CommandPhase.REPLY_INSERTED)

        metadata = read_metadata(editor.get_value())
        for key, value in merge_usage(metadata, reply.usage).items():
            upsert_property(editor, key, value)
        self._advance(outcome, CommandPhase.METADATA_UPDATED)

    def _insert_reply(self, editor: EditorSurface, content: str, *, timestamp: str) -> None:
        block = encode_reply(content, timestamp=timestamp)
        cursor = editor.get_cursor()
        editor.replace_range(block, cursor)
        editor.set_cursor(Position(line=cursor.line + block.count("\n"), ch=0))

    def _advance(self, outcome: CommandOutcome, phase: CommandPhase) -> None:
        outcome.phases.append(phase)
        self.phase = phase
        LOGGER.debug("Phase -> %s", phase.value)


CommandHandler = Callable[[ChatCommandRunner, "EditorSurface | None"], Awaitable[Any]]

COMMANDS: Mapping[str, tuple[str, CommandHandler]] = {
    "prompt-completion-request": ("Prompt", ChatCommandRunner.run_prompt),
    "chat-completion-request": ("Chat", ChatCommandRunner.run_chat),
    "generate-note-title": ("Generate note title", ChatCommandRunner.generate_title),
}

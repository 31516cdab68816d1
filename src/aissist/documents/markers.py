"""Marker syntax and the turn encoder.

A user turn looks like this once written into a note::

    > %% AIssist; role:user; 2024-05-01T09:30 %%:technologist:
    > What is the capital of France?

Assistant replies keep their content unquoted::

    %% AIssist; role:assistant; 2024-05-01T09:30 %% Paris.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping

__all__ = [
    "MARKER_START",
    "MARKER_END",
    "QUOTE_PREFIX",
    "USER_GLYPH",
    "TIMESTAMP_FORMAT",
    "Role",
    "Turn",
    "format_timestamp",
    "encode_header",
    "encode_turn",
    "encode_reply",
]

MARKER_START = "%% AIssist"
MARKER_END = "%%"
QUOTE_PREFIX = "> "
USER_GLYPH = ":technologist:"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M"


class Role(str, Enum):
    """Chat roles that may appear in a turn header."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: "Role | str") -> "Role":
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())


@dataclass(slots=True, frozen=True)
class Turn:
    """One role-tagged message recovered from, or destined for, a document."""

    role: Role
    content: str

    def as_message(self) -> Mapping[str, str]:
        """Return the turn as a chat completion message mapping."""

        return {"role": self.role.value, "content": self.content}


def format_timestamp(moment: datetime | None = None) -> str:
    """Render the cosmetic header timestamp in local wall-clock time."""

    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def encode_header(role: Role | str, *, timestamp: str | None = None) -> str:
    """Return ``%% AIssist; role:<role>; <timestamp> %%`` for ``role``."""

    resolved = Role.parse(role)
    stamp = timestamp if timestamp is not None else format_timestamp()
    return f"{MARKER_START}; role:{resolved.value}; {stamp} {MARKER_END}"


def encode_turn(role: Role | str, content: str, *, timestamp: str | None = None) -> str:
    """Encode a quoted turn block terminated by a newline.

    User turns carry the glyph right after the end marker. Every line of the
    block, header included, is quoted so the turn renders as a blockquote.
    """

    resolved = Role.parse(role)
    header = encode_header(resolved, timestamp=timestamp)
    if resolved is Role.USER:
        header += USER_GLYPH
    lines = [header, *content.split("\n")]
    return "\n".join(f"{QUOTE_PREFIX}{line}" for line in lines) + "\n"


def encode_reply(content: str, *, timestamp: str | None = None) -> str:
    """Encode an assistant reply: header on a fresh line, then the raw content."""

    header = encode_header(Role.ASSISTANT, timestamp=timestamp)
    body = content if content.endswith("\n") else content + "\n"
    return f"\n{header} {body}"

"""Conversation decoder: recover encoded turns from a note and window them."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..errors import MalformedTurnBlock
from .markers import USER_GLYPH, Role, Turn
from .scanner import MarkerToken, scan

__all__ = ["decode_turns", "apply_window", "decode_conversation", "clean_content", "turn_from_token"]

LOGGER = logging.getLogger(__name__)


def decode_conversation(text: str, max_turns: int | None) -> list[Turn]:
    """Return the windowed turn history encoded in ``text``."""

    turns = decode_turns(text)
    windowed = apply_window(turns, max_turns)
    if len(windowed) != len(turns):
        LOGGER.debug("Window policy kept %s of %s turn(s)", len(windowed), len(turns))
    return windowed


def decode_turns(text: str) -> list[Turn]:
    """Decode every well-formed turn block in document order."""

    if not text:
        return []
    markers = scan(text).markers
    turns: list[Turn] = []
    for index, token in enumerate(markers):
        end = markers[index + 1].start if index + 1 < len(markers) else len(text)
        try:
            role = turn_from_token(token)
        except MalformedTurnBlock as exc:
            LOGGER.debug("Skipping marker at offset %s: %s", exc.offset, exc)
            continue
        turns.append(Turn(role=role, content=clean_content(text[token.body_start : end])))
    return turns


def turn_from_token(token: MarkerToken) -> Role:
    """Return the role named by ``token`` or raise :class:`MalformedTurnBlock`."""

    if not token.role:
        raise MalformedTurnBlock("Marker header has no role field", offset=token.marker_start)
    try:
        return Role.parse(token.role)
    except ValueError:
        raise MalformedTurnBlock(
            f"Unknown role {token.role!r}", offset=token.marker_start, role=token.role
        ) from None


def clean_content(raw: str) -> str:
    """Strip the role glyph, quote prefixes and surrounding whitespace."""

    body = raw
    if body.startswith(USER_GLYPH):
        body = body[len(USER_GLYPH) :]
    body = body.strip()
    return _strip_quoting(body).strip()


def apply_window(turns: Sequence[Turn], max_turns: int | None) -> list[Turn]:
    """Keep every system turn plus the most recent non-system turns.

    When system turns alone reach ``max_turns`` only the first ``max_turns``
    of them survive.
    """

    if max_turns is None or len(turns) <= max_turns:
        return list(turns)
    limit = max(0, int(max_turns))
    system = [turn for turn in turns if turn.role is Role.SYSTEM]
    remaining = limit - len(system)
    # The turn budget outranks system retention once system turns alone fill it.
    if remaining <= 0:
        return system[:limit]
    others = [turn for turn in turns if turn.role is not Role.SYSTEM]
    return system + others[-remaining:]


def _strip_quoting(body: str) -> str:
    """Drop a trailing ``>`` and unquote the leading run of quoted lines.

    A fully quoted body is unquoted line by line. Otherwise only the quoted
    lines that open the body lose their prefix; text written below them is
    kept as typed.
    """

    lines = body.split("\n")
    if len(lines) > 1 and lines[-1].strip() == ">":
        lines.pop()
    elif lines and lines[-1].endswith(">"):
        lines[-1] = lines[-1][:-1]
    if not lines or not lines[0].startswith(">"):
        return "\n".join(lines)
    if _all_quoted(lines):
        return "\n".join(_unquote_line(line) for line in lines)
    quoted = 0
    while quoted < len(lines) and lines[quoted].startswith(">"):
        quoted += 1
    return "\n".join([_unquote_line(line) for line in lines[:quoted]] + lines[quoted:])


def _all_quoted(lines: Iterable[str]) -> bool:
    return all(line.startswith(">") or not line.strip() for line in lines)


def _unquote_line(line: str) -> str:
    if line.startswith("> "):
        return line[2:]
    if line.startswith(">"):
        return line[1:]
    return line

"""Prompt extractor: find the pending user input and encode it in place."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..editor.buffer import EditorSurface, Position
from ..errors import MissingPromptDelimiter
from .markers import Role, encode_turn
from .scanner import mask_fences, scan

__all__ = ["CapturedPrompt", "find_prompt_start", "locate_prompt", "extract_prompt"]

LOGGER = logging.getLogger(__name__)
_FENCE_FILLER = "\0"


@dataclass(slots=True, frozen=True)
class CapturedPrompt:
    """Result of capturing a prompt.

    ``end`` is where the cursor was left: the first line after the encoded
    user block.
    """

    content: str
    block: str
    end: Position
    from_selection: bool = False


def find_prompt_start(text: str, delimiter: str) -> int:
    """Return the offset of the last ``delimiter`` outside fenced code, or ``-1``.

    Occurrences are matched left to right without overlap, so ``///`` holds a
    single ``//`` delimiter at its first character.
    """

    if not delimiter:
        return -1
    searchable = mask_fences(text, scan(text).fences, _FENCE_FILLER)
    last = -1
    position = searchable.find(delimiter)
    while position != -1:
        last = position
        position = searchable.find(delimiter, position + len(delimiter))
    return last


def locate_prompt(text: str, cursor: int, delimiter: str) -> tuple[int, str]:
    """Return ``(delimiter offset, trimmed prompt)`` for the text before ``cursor``.

    Raises :class:`MissingPromptDelimiter` when no delimiter precedes the cursor
    outside of fenced code.
    """

    before_cursor = text[:cursor]
    start = find_prompt_start(before_cursor, delimiter)
    if start == -1:
        raise MissingPromptDelimiter(delimiter)
    return start, before_cursor[start + len(delimiter) :].strip()


def extract_prompt(
    editor: EditorSurface,
    delimiter: str,
    *,
    timestamp: str | None = None,
) -> CapturedPrompt:
    """Capture the prompt from the selection or the last delimiter and encode it.

    All offsets are computed from the editor's current text, so this must run
    after any metadata write-back that precedes it.
    """

    selection = editor.get_selection()
    if selection:
        content = selection.strip()
        block = encode_turn(Role.USER, content, timestamp=timestamp)
        if editor.get_cursor("from").ch != 0:
            block = "\n" + block
        editor.replace_selection(block)
        end = editor.get_cursor()
        LOGGER.debug("Captured %s-char prompt from selection", len(content))
        return CapturedPrompt(content=content, block=block, end=end, from_selection=True)

    text = editor.get_value()
    cursor = editor.pos_to_offset(editor.get_cursor())
    start, content = locate_prompt(text, cursor, delimiter)
    block = encode_turn(Role.USER, content, timestamp=timestamp)
    if start > 0 and text[start - 1] != "\n":
        block = "\n" + block
    start_pos = editor.offset_to_pos(start)
    editor.replace_range(block, start_pos, editor.offset_to_pos(cursor))
    end = Position(line=start_pos.line + block.count("\n"), ch=0)
    editor.set_cursor(end)
    LOGGER.debug("Captured %s-char prompt after delimiter at offset %s", len(content), start)
    return CapturedPrompt(content=content, block=block, end=end)


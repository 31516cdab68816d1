"""Editing-surface contract and an in-memory text buffer implementing it."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

__all__ = ["Position", "EditorSurface", "TextBuffer"]


@dataclass(slots=True, frozen=True, order=True)
class Position:
    """Zero-based line/column pair, mirroring editor cursor coordinates."""

    line: int
    ch: int = 0


@runtime_checkable
class EditorSurface(Protocol):
    """Minimal editor interface consumed by the chat commands.

    Implementations own the text. Callers must re-read positions before each
    mutation because any edit invalidates offsets computed earlier.
    """

    def get_value(self) -> str:
        ...

    def set_value(self, text: str) -> None:
        ...

    def get_selection(self) -> str:
        ...

    def replace_selection(self, text: str) -> None:
        ...

    def get_cursor(self, which: str = "head") -> Position:
        ...

    def set_cursor(self, position: Position) -> None:
        ...

    def get_range(self, start: Position, end: Position) -> str:
        ...

    def replace_range(self, text: str, start: Position, end: Position | None = None) -> None:
        ...

    def offset_to_pos(self, offset: int) -> Position:
        ...

    def pos_to_offset(self, position: Position) -> int:
        ...


class TextBuffer(EditorSurface):
    """Plain-text editor buffer with a cursor and an optional selection.

    Edits remap the cursor and selection the way interactive editors do, so a
    metadata insertion above the cursor keeps the caret on the same text.
    """

    def __init__(self, text: str = "", *, cursor: int | None = None) -> None:
        self._text = text
        self._line_starts = _line_starts(text)
        end = len(text) if cursor is None else cursor
        self._anchor = self._clamp(end)
        self._head = self._anchor

    # ------------------------------------------------------------------
    # Whole-buffer access
    # ------------------------------------------------------------------
    def get_value(self) -> str:
        return self._text

    def set_value(self, text: str) -> None:
        self._set_text(text)
        self._anchor = self._clamp(self._anchor)
        self._head = self._clamp(self._head)

    # ------------------------------------------------------------------
    # Selection and cursor
    # ------------------------------------------------------------------
    def select(self, start: int, end: int) -> None:
        """Select the text between two absolute offsets; the head ends at ``end``."""

        self._anchor = self._clamp(start)
        self._head = self._clamp(end)

    def selection_span(self) -> tuple[int, int]:
        start, end = self._anchor, self._head
        return (start, end) if start <= end else (end, start)

    def get_selection(self) -> str:
        start, end = self.selection_span()
        return self._text[start:end]

    def replace_selection(self, text: str) -> None:
        start, end = self.selection_span()
        self._splice(start, end, text)
        caret = start + len(text)
        self._anchor = self._head = caret

    def get_cursor(self, which: str = "head") -> Position:
        """Return the caret (``head``), ``anchor``, or the ``from``/``to`` selection edge."""

        start, end = self.selection_span()
        offsets = {"head": self._head, "anchor": self._anchor, "from": start, "to": end}
        if which not in offsets:
            raise ValueError(f"Unknown cursor reference: {which!r}")
        return self.offset_to_pos(offsets[which])

    def set_cursor(self, position: Position) -> None:
        offset = self.pos_to_offset(position)
        self._anchor = self._head = offset

    @property
    def cursor_offset(self) -> int:
        return self._head

    # ------------------------------------------------------------------
    # Range edits
    # ------------------------------------------------------------------
    def get_range(self, start: Position, end: Position) -> str:
        first = self.pos_to_offset(start)
        last = self.pos_to_offset(end)
        if last < first:
            first, last = last, first
        return self._text[first:last]

    def replace_range(self, text: str, start: Position, end: Position | None = None) -> None:
        first = self.pos_to_offset(start)
        last = first if end is None else self.pos_to_offset(end)
        if last < first:
            first, last = last, first
        self._splice(first, last, text)

    # ------------------------------------------------------------------
    # Coordinate conversion
    # ------------------------------------------------------------------
    def offset_to_pos(self, offset: int) -> Position:
        offset = self._clamp(offset)
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line=line, ch=offset - self._line_starts[line])

    def pos_to_offset(self, position: Position) -> int:
        if position.line < 0:
            return 0
        if position.line >= len(self._line_starts):
            return len(self._text)
        line_start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            line_end = self._line_starts[position.line + 1] - 1
        else:
            line_end = len(self._text)
        return line_start + max(0, min(position.ch, line_end - line_start))

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _splice(self, start: int, end: int, replacement: str) -> None:
        self._set_text(self._text[:start] + replacement + self._text[end:])
        self._anchor = _map_offset(self._anchor, start, end, len(replacement))
        self._head = _map_offset(self._head, start, end, len(replacement))

    def _set_text(self, text: str) -> None:
        self._text = text
        self._line_starts = _line_starts(text)

    def _clamp(self, offset: int) -> int:
        return max(0, min(int(offset), len(self._text)))

    def __repr__(self) -> str:
        return f"TextBuffer(length={len(self._text)}, cursor={self.get_cursor()!r})"


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


def _map_offset(offset: int, start: int, end: int, inserted: int) -> int:
    """Map ``offset`` through the replacement of ``[start, end)`` by ``inserted`` chars."""

    if offset < start or (offset == start and start == end):
        return offset
    if offset >= end:
        return offset + inserted - (end - start)
    return start + inserted

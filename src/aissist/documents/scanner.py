"""Single-pass tokenizer for turn markers and fenced code regions.

The scanner walks the text once, left to right. At each step it looks for the
nearest code fence or marker start. A fence opener consumes everything up to
its matching closer, so markers written inside code samples are never seen.
A marker start followed by an end marker on the same line becomes a header
token; anything else stays ordinary text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping

from .markers import MARKER_END, MARKER_START

__all__ = ["CODE_FENCE", "Span", "MarkerToken", "ScanResult", "scan", "mask_fences"]

CODE_FENCE = "```"


@dataclass(slots=True, frozen=True)
class Span:
    """Half-open ``[start, end)`` offset range."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass(slots=True, frozen=True)
class MarkerToken:
    """A marker header found in the text.

    ``start`` includes a quote prefix when the header sits on a quoted line;
    ``body_start`` is the first offset after the end marker.
    """

    start: int
    marker_start: int
    body_start: int
    role: str | None
    timestamp: str | None
    fields: Mapping[str, str]

    @property
    def span(self) -> Span:
        return Span(self.start, self.body_start)


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Tokens recovered from one pass over a document."""

    text: str
    fences: tuple[Span, ...]
    markers: tuple[MarkerToken, ...]

    def in_fence(self, offset: int) -> bool:
        return any(span.contains(offset) for span in self.fences)


def scan(text: str) -> ScanResult:
    """Tokenize ``text`` into fenced regions and marker headers."""

    fences: list[Span] = []
    markers: list[MarkerToken] = []
    for token in _iter_tokens(text):
        if isinstance(token, Span):
            fences.append(token)
        else:
            markers.append(token)
    return ScanResult(text=text, fences=tuple(fences), markers=tuple(markers))


def mask_fences(text: str, fences: tuple[Span, ...] | list[Span], filler: str = " ") -> str:
    """Replace every fenced region with same-length filler so offsets stay valid."""

    if not fences:
        return text
    pieces: list[str] = []
    cursor = 0
    for span in fences:
        pieces.append(text[cursor : span.start])
        pieces.append(filler * span.length)
        cursor = span.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _iter_tokens(text: str) -> Iterator[Span | MarkerToken]:
    position = 0
    fences_open = True
    length = len(text)
    while position < length:
        next_fence = text.find(CODE_FENCE, position) if fences_open else -1
        next_marker = text.find(MARKER_START, position)
        if next_fence == -1 and next_marker == -1:
            return

        if next_fence != -1 and (next_marker == -1 or next_fence < next_marker):
            closer = text.find(CODE_FENCE, next_fence + len(CODE_FENCE))
            if closer == -1:
                # An unterminated fence is plain text; no later fence can pair either.
                fences_open = False
                continue
            end = closer + len(CODE_FENCE)
            yield Span(next_fence, end)
            position = end
            continue

        token = _read_marker(text, next_marker)
        if token is None:
            position = next_marker + len(MARKER_START)
            continue
        yield token
        position = token.body_start


def _read_marker(text: str, offset: int) -> MarkerToken | None:
    header_start = offset + len(MARKER_START)
    line_end = text.find("\n", header_start)
    if line_end == -1:
        line_end = len(text)
    closer = text.find(MARKER_END, header_start, line_end)
    if closer == -1:
        return None

    role: str | None = None
    timestamp: str | None = None
    fields: dict[str, str] = {}
    for piece in text[header_start:closer].split(";"):
        piece = piece.strip()
        if not piece:
            continue
        name, sep, value = piece.partition(":")
        if sep and name.isidentifier():
            fields[name] = value.strip()
            if name == "role":
                role = value.strip()
        elif timestamp is None:
            timestamp = piece

    return MarkerToken(
        start=_quoted_line_start(text, offset),
        marker_start=offset,
        body_start=closer + len(MARKER_END),
        role=role,
        timestamp=timestamp,
        fields=fields,
    )


def _quoted_line_start(text: str, offset: int) -> int:
    """Extend ``offset`` back over a ``>`` quote prefix that opens the line."""

    probe = offset
    while probe > 0 and text[probe - 1] == " ":
        probe -= 1
    if probe > 0 and text[probe - 1] == ">":
        probe -= 1
        if probe == 0 or text[probe - 1] == "\n":
            return probe
    return offset

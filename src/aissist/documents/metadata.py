"""Metadata block codec: the ``---`` fenced key/value header at offset 0.

Entries are read line by line so that repeated keys are legal and the last
occurrence wins; usage counters rely on that, since every update appends a
new line rather than rewriting the old one. Each entry's value is typed with
the ``ruamel.yaml`` safe loader, which also copes with indented continuation
lines such as tag lists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..editor.buffer import EditorSurface, Position
from ..errors import MalformedMetadataBlock

__all__ = [
    "METADATA_FENCE",
    "MetadataEntry",
    "MetadataBlock",
    "locate_block",
    "parse_metadata",
    "read_metadata",
    "render_value",
    "render_block",
    "strip_metadata",
    "upsert_property",
]

LOGGER = logging.getLogger(__name__)
METADATA_FENCE = "---"
_SCALAR_TYPES = (str, int, float, bool)


@dataclass(slots=True, frozen=True)
class MetadataEntry:
    """One ``key: value`` entry plus its zero-based line inside the block."""

    key: str
    value: Any
    line: int


@dataclass(slots=True, frozen=True)
class MetadataBlock:
    """Location and contents of a metadata block.

    ``close_offset`` is the offset of the closing fence line; new entries are
    inserted there. ``end`` is the first offset after the closing fence line.
    """

    end: int
    close_offset: int
    body: str
    entries: tuple[MetadataEntry, ...] = ()

    @property
    def start(self) -> int:
        return 0

    def values(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for entry in self.entries:
            result[entry.key] = entry.value
        return result

    def get(self, key: str, default: Any = None) -> Any:
        for entry in reversed(self.entries):
            if entry.key == key:
                return entry.value
        return default


def locate_block(text: str) -> MetadataBlock | None:
    """Find the fenced block at offset 0 without interpreting its entries."""

    if not text.startswith(METADATA_FENCE):
        return None
    first_break = text.find("\n")
    if first_break == -1 or text[:first_break].rstrip() != METADATA_FENCE:
        return None

    line_start = first_break + 1
    while line_start <= len(text):
        line_end = text.find("\n", line_start)
        if line_end == -1:
            line_end = len(text)
        if text[line_start:line_end].rstrip() == METADATA_FENCE:
            end = min(line_end + 1, len(text))
            return MetadataBlock(
                end=end,
                close_offset=line_start,
                body=text[first_break + 1 : line_start],
            )
        if line_end == len(text):
            break
        line_start = line_end + 1
    return None


def parse_metadata(text: str) -> MetadataBlock | None:
    """Parse the metadata block strictly.

    Returns ``None`` when the document has no block and raises
    :class:`MalformedMetadataBlock` when a block exists but cannot be read.
    """

    block = locate_block(text)
    if block is None:
        return None
    parser = _create_parser()
    entries: list[MetadataEntry] = []
    for line_number, chunk in _iter_entry_chunks(block.body):
        try:
            loaded = parser.load(chunk)
        except YAMLError as exc:
            raise MalformedMetadataBlock(
                f"Metadata line {line_number + 1} is not valid YAML: {exc}", line=line_number
            ) from exc
        if not isinstance(loaded, dict) or len(loaded) != 1:
            raise MalformedMetadataBlock(
                f"Metadata line {line_number + 1} is not a key: value entry", line=line_number
            )
        key, value = next(iter(loaded.items()))
        entries.append(MetadataEntry(key=str(key), value=value, line=line_number))
    return MetadataBlock(
        end=block.end,
        close_offset=block.close_offset,
        body=block.body,
        entries=tuple(entries),
    )


def read_metadata(text: str) -> Dict[str, Any]:
    """Return the metadata mapping, treating an unreadable block as absent."""

    try:
        block = parse_metadata(text)
    except MalformedMetadataBlock as exc:
        LOGGER.warning("Ignoring malformed metadata block: %s", exc)
        return {}
    return block.values() if block is not None else {}


def strip_metadata(text: str) -> str:
    """Return ``text`` without its leading metadata block."""

    block = locate_block(text)
    return text if block is None else text[block.end :]


def render_value(value: Any) -> str:
    """Render a scalar so that reading it back yields the same value."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if "\n" not in text and _load_scalar(text) == text:
        return text
    return json.dumps(text, ensure_ascii=False)


def render_block(values: Mapping[str, Any]) -> str:
    lines = [f"{key}: {render_value(value)}" for key, value in values.items()]
    return "\n".join([METADATA_FENCE, *lines, METADATA_FENCE]) + "\n"


def upsert_property(editor: EditorSurface, key: str, value: Any) -> None:
    """Append ``key: value`` to the metadata block, creating the block if needed.

    Existing lines for ``key`` are left untouched; readers take the last one.
    """

    text = editor.get_value()
    block = locate_block(text)
    if block is None:
        editor.replace_range(render_block({key: value}), Position(0, 0))
    else:
        line = f"{key}: {render_value(value)}\n"
        editor.replace_range(line, editor.offset_to_pos(block.close_offset))
    LOGGER.debug("Metadata property %s set to %r", key, value)


def _iter_entry_chunks(body: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, chunk)`` per top-level entry.

    Indented lines and ``- item`` lines belong to the entry above them; blank
    lines and comments are skipped.
    """

    chunk: list[str] = []
    chunk_line = 0
    for number, line in enumerate(body.split("\n")):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        continuation = line[:1].isspace() or stripped.startswith("- ")
        if continuation and chunk:
            chunk.append(line)
            continue
        if chunk:
            yield chunk_line, "\n".join(chunk)
        chunk = [line]
        chunk_line = number
    if chunk:
        yield chunk_line, "\n".join(chunk)


def _create_parser() -> YAML:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    return parser


def _load_scalar(text: str) -> Any:
    try:
        loaded = _create_parser().load(text)
    except YAMLError:
        return None
    return loaded if isinstance(loaded, _SCALAR_TYPES) else None

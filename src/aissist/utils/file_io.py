"""Note file helpers: encoding-aware reads and atomic writes."""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

__all__ = ["NoteText", "read_text", "write_text"]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}


@dataclass(slots=True, frozen=True)
class NoteText:
    """Decoded note contents plus what is needed to write them back unchanged."""

    text: str
    encoding: str = "utf-8"
    newline: str = "\n"


def read_text(path: Path | str) -> NoteText:
    """Read a note, strip any BOM and normalize newlines to ``\\n``."""

    raw = Path(path).read_bytes()
    encoding = _detect_encoding(raw)
    text = raw.decode(encoding)
    if text.startswith("\ufeff"):
        text = text[1:]
    newline = "\r\n" if "\r\n" in text else "\n"
    return NoteText(text=text.replace("\r\n", "\n"), encoding=encoding, newline=newline)


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    newline: str = "\n",
) -> Path:
    """Replace ``path`` atomically with ``content`` using the given newline style."""

    if newline not in ("\n", "\r\n"):
        raise ValueError(f"Unsupported newline policy: {newline!r}")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    body = content.replace("\r\n", "\n")
    if newline != "\n":
        body = body.replace("\n", newline)

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(body)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            os.unlink(tmp_name)
    return target


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError:
        return "latin-1"
    return "utf-8"

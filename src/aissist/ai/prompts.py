"""System prompts and helpers for shaping model output."""

from __future__ import annotations

__all__ = [
    "DEFAULT_SYSTEM_MESSAGE",
    "TITLE_GENERATION",
    "TITLE_MAX_LENGTH",
    "sanitize_title",
]

DEFAULT_SYSTEM_MESSAGE = "You are a helpful assistant"
TITLE_MAX_LENGTH = 60
_FORBIDDEN_TITLE_CHARS = frozenset('/\\:*?"<>|')
_QUOTE_CHARS = "\"'`“”‘’"

TITLE_GENERATION = """You are tasked with creating a concise, descriptive title for a note based on its content.

Requirements for the title:
- Maximum 60 characters
- Clear and descriptive of the main topic
- No special characters that are invalid in filenames (/, \\, :, *, ?, ", <, >, |)
- No leading or trailing spaces
- Capitalize appropriately (sentence case preferred)
- Single line only

Respond with ONLY the title text, nothing else. Do not include quotes, prefixes, or explanations."""


def sanitize_title(raw: str, *, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Coerce a model reply into a filename-safe single-line title."""

    first_line = next((line for line in (raw or "").splitlines() if line.strip()), "")
    title = first_line.strip().strip(_QUOTE_CHARS).strip()
    title = "".join(char for char in title if char not in _FORBIDDEN_TITLE_CHARS)
    title = " ".join(title.split())
    if len(title) > max_length:
        title = title[:max_length].rstrip()
    return title

"""Document codec: markers, scanning, conversations, metadata and prompts."""

from .conversation import apply_window, decode_conversation, decode_turns
from .markers import Role, Turn, encode_reply, encode_turn
from .metadata import parse_metadata, read_metadata, upsert_property
from .prompt import CapturedPrompt, extract_prompt

__all__ = [
    "Role",
    "Turn",
    "encode_turn",
    "encode_reply",
    "decode_turns",
    "decode_conversation",
    "apply_window",
    "parse_metadata",
    "read_metadata",
    "upsert_property",
    "CapturedPrompt",
    "extract_prompt",
]

"""Chat completion client and prompt catalogue."""

from .client import AIClient, ChatReply, ClientSettings, TokenUsage

__all__ = ["AIClient", "ClientSettings", "ChatReply", "TokenUsage"]

"""Chat commands bound to the active note."""

from .commands import COMMANDS, ChatCommandRunner, CommandOutcome, CommandPhase, LoggingNotifier

__all__ = ["COMMANDS", "ChatCommandRunner", "CommandOutcome", "CommandPhase", "LoggingNotifier"]

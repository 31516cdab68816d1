"""Exception hierarchy shared by the document codec and the chat commands."""

from __future__ import annotations

__all__ = [
    "AIssistError",
    "MissingPromptDelimiter",
    "NoActiveDocument",
    "MalformedMetadataBlock",
    "MalformedTurnBlock",
    "RequestFailure",
]


class AIssistError(RuntimeError):
    """Base class for errors raised while running an AIssist command."""

    #: Text surfaced to the user through the notice channel.
    notice: str = "AIssist command failed."

    def user_message(self) -> str:
        return self.notice


class MissingPromptDelimiter(AIssistError):
    """Raised when there is no selection and no prompt delimiter before the cursor."""

    def __init__(self, delimiter: str) -> None:
        super().__init__(f"No prompt delimiter {delimiter!r} found outside code blocks")
        self.delimiter = delimiter

    def user_message(self) -> str:
        return f'No prompt found! Either select the prompt, or prepend it with "{self.delimiter}"'


class NoActiveDocument(AIssistError):
    """Raised when a command runs without a document to read metadata from."""

    notice = "[AIssist] No active note."

    def __init__(self, message: str = "No active document") -> None:
        super().__init__(message)


class MalformedMetadataBlock(AIssistError, ValueError):
    """Raised by the strict metadata parser when a fenced header cannot be read."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class MalformedTurnBlock(AIssistError, ValueError):
    """Raised when a marker header does not describe a known role."""

    def __init__(self, message: str, *, offset: int, role: str | None = None) -> None:
        super().__init__(message)
        self.offset = offset
        self.role = role


class RequestFailure(AIssistError):
    """Raised when the chat completion request fails or returns no usable reply."""

    notice = "[AIssist] Error inserting chat completion."

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

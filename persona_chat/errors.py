"""Error taxonomy shared by the engine and the HTTP layer.

All errors are scoped to a single request; none is fatal to the process.
"""


class ChatError(Exception):
    """Base class for every error raised by the conversation engine."""


class NotFoundError(ChatError):
    """Raised when a character id does not resolve to a persona."""


class ValidationError(ChatError):
    """Raised for malformed caller input (empty text, bad ids, unknown backend)."""


class GenerationFailure(ChatError):
    """Raised when a backend call fails, times out or returns garbage.

    The message stays generic; `backend` and `cause` go to the logs.
    """

    def __init__(self, backend: str, cause: str) -> None:
        super().__init__(f"Failed to generate response from {backend}")
        self.backend = backend
        self.cause = cause


class StorageFailure(ChatError):
    """Raised when the message log or character registry cannot be read or written."""


class PromptError(ChatError):
    """Raised when a persona template fails to compile or render."""

"""Error taxonomy for the chat relay."""


class ChatRelayError(Exception):
    """Base error; ``message`` is safe to show to the connection that caused it."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatRelayError):
    """Malformed or incomplete inbound payload. No state was mutated."""


class AuthorizationError(ChatRelayError):
    """The connection's role may not perform the requested action."""


class NotFoundError(ChatRelayError):
    """The target student or session does not exist."""


class StorageError(ChatRelayError):
    """A persistence call failed."""


class SessionCodeExhaustedError(StorageError):
    """No free session code was found within the configured number of attempts."""

# util/errors.py
from typing import Optional


class BootstrapError(Exception):
    # Flow: every client raises a subclass; the orchestrator decides whether it is fatal.
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(BootstrapError):
    """Malformed discovery-store address or port. Fatal at process start."""


class TransportError(BootstrapError):
    """Request failed, returned a non-2xx status, or the body had the wrong shape."""


class DecodeError(BootstrapError):
    """A KV value was not valid base64 or not valid UTF-8."""


class AuthError(BootstrapError):
    """The secret-store token cannot be sent as an HTTP header value."""


class ObjectStoreError(BootstrapError):
    """A listing, fetch or local write failed during the tree walk."""

    def __init__(self, key: str, cause: Optional[BaseException] = None, action: str = "fetch") -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown"
        super().__init__(f"Error during {action} of {key!r}: {detail}")
        self.key = key
        self.action = action
        self.cause = cause

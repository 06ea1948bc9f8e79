"""Error taxonomy shared by the sync engines and the view surface."""

from __future__ import annotations

# purpose: name every recoverable failure so recovery sites can log and count them
# status: pilot


class SyncError(Exception):
    """Base class for failures raised by remote collaborators."""

    kind = "sync"


class ConfigMissing(SyncError):
    """No document store configuration was supplied at startup."""

    kind = "config_missing"


class AuthFailure(SyncError):
    """Token or anonymous sign-in was rejected or unreachable."""

    kind = "auth_failure"


class ListenerError(SyncError):
    """A subscription stream reported an error and stopped delivering."""

    kind = "listener_error"

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class WriteFailure(SyncError):
    """A merge-write or seed write was not applied by the store."""

    kind = "write_failure"

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class AccessDenied(Exception):
    """The current role may not open the requested destination."""

    def __init__(self, destination: str, message: str) -> None:
        super().__init__(message)
        self.destination = destination
        self.message = message


class MalformedDocument(ListenerError):
    """A stored document could not be decoded."""

    kind = "malformed_document"

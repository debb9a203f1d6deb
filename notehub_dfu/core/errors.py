"""Domain-specific errors for notehub-dfu."""

from __future__ import annotations


class NotehubDfuError(Exception):
    """Base error for notehub-dfu."""


class ConfigError(NotehubDfuError):
    """Raised when a deployment configuration is missing required values or is malformed."""


class FirmwareReadError(NotehubDfuError):
    """Raised when the local firmware file cannot be opened or read."""


class AuthenticationError(NotehubDfuError):
    """Raised when the OAuth2 client-credentials exchange fails."""


class SessionStateError(NotehubDfuError):
    """Raised when a deployment step is attempted out of order."""


class TransportError(NotehubDfuError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the backend cannot be reached."""


class TransportTimeoutError(TransportError):
    """Raised when a request exceeds its client-side timeout."""


class DeadlineExceededError(TransportTimeoutError):
    """Raised when the deployment context deadline passes."""


class RequestCancelledError(TransportError):
    """Raised when the deployment context is cancelled."""


class BackendError(NotehubDfuError):
    """Raised on a non-2xx response from the Notehub API."""

    def __init__(self, operation: str, status_code: int, body: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"{operation} failed: HTTP {status_code}: {body}")


class AuthorizationError(BackendError):
    """Raised when the backend rejects the bearer token (HTTP 401/403)."""

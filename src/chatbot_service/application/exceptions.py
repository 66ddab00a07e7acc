from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    """Rejected input: history import with a foreign chat id or a malformed blob."""


class ConfigurationError(AppError):
    """Missing credential or model at startup. Fatal."""


class TransportUnavailableError(AppError):
    """The messaging transport is not ready to send."""


class GenerationError(AppError):
    """The generation backend failed or returned a malformed payload."""


class InternalStoreError(AppError):
    """Unexpected fault inside the history store. Logged, never surfaced."""

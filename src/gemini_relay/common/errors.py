"""Error taxonomy shared by the upload layer, the upstream invoker and the HTTP handlers."""
from __future__ import annotations
from typing import Any


class ConfigurationError(RuntimeError):
    """Fatal startup problem (e.g. no API keys configured)."""


class RelayError(Exception):
    """Base class for errors that map onto an HTTP status and a JSON error body."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(RelayError):
    status_code = 400


class UploadRejected(RelayError):
    status_code = 400


class UpstreamError(RelayError):
    """Failure talking to the generation backend.

    ``details["sdkError"]`` holds the raw upstream message; it is only shown
    to clients outside production.
    """

    status_code = 502


class UpstreamAuthFailure(UpstreamError):
    status_code = 401


class UpstreamQuotaExceeded(UpstreamError):
    status_code = 429


class UpstreamBlocked(UpstreamError):
    """The request itself was refused before generation."""

    status_code = 400


class UpstreamUnavailable(UpstreamError):
    status_code = 502


class UpstreamTimeout(UpstreamError):
    status_code = 504

"""Error taxonomy shared by the pipeline, the stores, the CLI and the service."""

from __future__ import annotations

from typing import Any


class LifestreamError(Exception):
    """Base class for errors that callers are expected to present.

    ``status_code`` and ``error_code`` let the HTTP layer render any subclass
    without knowing about it.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(LifestreamError):
    """Client-fixable input problem (bad date, unknown type, DAILY range mismatch)."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(LifestreamError):
    """Nothing to work on: no logs in the period, or an unknown id."""

    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(LifestreamError):
    """A report id is already taken by a different period key."""

    status_code = 409
    error_code = "CONFLICT"


class UpstreamUnavailable(LifestreamError):
    """The LLM backend could not produce a usable completion.

    Covers unreachable servers, timeouts, non-2xx responses and malformed or
    empty bodies. The pipeline never retries; callers may resubmit.
    """

    status_code = 503
    error_code = "UPSTREAM_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        backend: str,
        url: str,
        status: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"backend": backend, "url": url}
        if status is not None:
            details["status"] = status
        super().__init__(message, details)
        self.backend = backend
        self.url = url
        self.status = status


class ConfigError(ValueError):
    """Invalid configuration file contents."""

"""Error taxonomy for the ingestion and chat orchestration layer."""

from __future__ import annotations

from typing import Any

TRANSIENT_STATUSES = {429}

RATE_LIMIT_MESSAGE = (
    "The Gemini API rate limit was reached. Wait a moment and send your message again."
)
SESSION_EXPIRED_MESSAGE = "Session context expired. Please try sending your message again."
PERMISSION_DENIED_MESSAGE = "Permission denied. Check API key."


class InsightError(Exception):
    pass


class ConfigurationError(InsightError):
    """Missing or invalid configuration, raised before any network call."""


class FileValidationError(InsightError):
    """A file was rejected locally (type, size or missing content)."""


class IndexingTimeoutError(InsightError):
    """Indexing did not finish before the deadline; the server may still complete it."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            f"Indexing is still in progress after {timeout:g}s. "
            "The file may become searchable shortly; check again later."
        )


class IndexingFailedError(InsightError):
    """The import operation finished with a server-side error."""


class SessionExpiredError(InsightError):
    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message)


class RateLimitError(InsightError):
    def __init__(self, message: str = RATE_LIMIT_MESSAGE) -> None:
        super().__init__(message)


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def error_status(err: BaseException | None) -> int:
    """Extract an HTTP status from SDK, httpx or dict-shaped errors. 0 when unknown."""
    if err is None:
        return 0
    for attr in ("code", "status", "status_code"):
        status = _as_status(getattr(err, attr, None))
        if status:
            return status
    response = getattr(err, "response", None)
    status = _as_status(getattr(response, "status_code", None))
    if status:
        return status
    nested = getattr(err, "error", None)
    if isinstance(nested, dict):
        for key in ("code", "status"):
            status = _as_status(nested.get(key))
            if status:
                return status
    return 0


def is_transient(err: BaseException) -> bool:
    status = error_status(err)
    return status in TRANSIENT_STATUSES or status >= 500


def is_not_found(err: BaseException) -> bool:
    return error_status(err) == 404


def describe(err: BaseException) -> str:
    """Message shown on a failed file."""
    if error_status(err) == 403:
        return PERMISSION_DENIED_MESSAGE
    message = getattr(err, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(err) or err.__class__.__name__

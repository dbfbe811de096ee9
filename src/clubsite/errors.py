"""Sync failure taxonomy.

Every failure a sync run can surface is a ``SyncError`` subclass carrying a
stable ``code`` and the HTTP status the API layer answers with.  Handlers in
``clubsite.api.middleware`` translate them into ``{"success": false, ...}``
bodies; the CLI prints them and exits non-zero.

Status code mapping:
- ``ConfigError`` → 500 (missing or malformed credentials/config)
- ``UpstreamError`` → 500 (fetch collaborator failed)
- ``AuthRejectedError`` → 401 (upstream refused the credentials)
- ``NotFoundError`` → 404 (calendar or folder missing)
- ``RateLimited`` → 429 (cooldown window not elapsed)
- ``CatalogError`` → 500 (persisted catalog unreadable)
"""

from __future__ import annotations

import re


class SyncError(Exception):
    """Base class for failures surfaced by a sync run."""

    code = "SYNC_FAILED"
    http_status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def details(self) -> str | None:
        return None


class ConfigError(SyncError):
    """Raised when configuration or credentials are missing, malformed, or invalid."""

    code = "CONFIG_ERROR"


class UpstreamError(SyncError):
    """Raised when an external fetch (Calendar, Drive) fails."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def details(self) -> str | None:
        if self.status_code is None:
            return None
        return f"upstream status {self.status_code}"


class AuthRejectedError(UpstreamError):
    """Raised when the upstream service refuses the configured credentials."""

    code = "AUTH_REJECTED"
    http_status = 401


class NotFoundError(SyncError):
    """Raised when the target calendar or Drive folder does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class RateLimited(SyncError):
    """Raised when a sync is requested before the cooldown window elapsed."""

    code = "RATE_LIMITED"
    http_status = 429

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limit: Please wait {retry_after} seconds before syncing again")


class CatalogError(SyncError):
    """Raised when a persisted catalog exists but cannot be parsed."""

    code = "CATALOG_ERROR"


_SECRET_PATTERNS = (
    re.compile(r"(?i)\b(key|api_key|access_token|token|client_secret)=([^\s&,;]+)"),
    re.compile(r"""(?i)(['"]?(?:private_key|access_token|client_secret)['"]?\s*:\s*)(['"]).*?\2"""),
)


def redact_secrets(message: str) -> str:
    """Redact credential values (query keys, tokens, private keys) from *message*."""
    redacted = _SECRET_PATTERNS[0].sub(r"\1=[REDACTED]", message)
    return _SECRET_PATTERNS[1].sub(r'\1"[REDACTED]"', redacted)


def sanitize_error_message(message: str, limit: int = 300) -> str:
    """Redact, collapse whitespace and truncate an error message for API output."""
    return " ".join(redact_secrets(message).split())[:limit]

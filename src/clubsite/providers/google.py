"""Helpers shared by the Google API fetch collaborators."""

from __future__ import annotations

import httpx

from clubsite.errors import AuthRejectedError, NotFoundError, UpstreamError, sanitize_error_message

DEFAULT_TIMEOUT_SECONDS = 30.0


def safe_google_error_message(response: httpx.Response) -> str:
    """Extract a short, credential-free message from a Google error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return sanitize_error_message(message, limit=200)
        if isinstance(error_payload, str) and error_payload.strip():
            return sanitize_error_message(error_payload, limit=200)

    raw_text = response.text.strip()
    if raw_text:
        return sanitize_error_message(raw_text, limit=200)
    return "Request failed without an error payload"


def raise_for_google_status(response: httpx.Response, *, service: str, target: str) -> None:
    """Translate a non-2xx Google API response into the sync error taxonomy."""
    if 200 <= response.status_code < 300:
        return
    message = safe_google_error_message(response)
    if response.status_code == 404:
        raise NotFoundError(f"{service} {target} not found: {message}")
    if response.status_code in (401, 403) and "invalid_grant" in message:
        raise AuthRejectedError(
            f"{service} authentication failed: {message}", status_code=response.status_code
        )
    raise UpstreamError(
        f"{service} API error: {response.status_code} {message}",
        status_code=response.status_code,
    )


def decode_json_object(response: httpx.Response, *, service: str) -> dict:
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError(
            f"{service} API returned invalid JSON", status_code=response.status_code
        ) from exc
    if not isinstance(payload, dict):
        raise UpstreamError(
            f"{service} API returned an unexpected JSON payload shape",
            status_code=response.status_code,
        )
    return payload

"""Google Drive fetch collaborator.

Lists the files in one watched Drive folder using a service account.  The
service account JSON key is exchanged for a short-lived ``drive.readonly``
access token with ``google-auth``; the listing itself goes through httpx.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from pydantic import ValidationError

from clubsite.errors import (
    AuthRejectedError,
    ConfigError,
    NotFoundError,
    UpstreamError,
    sanitize_error_message,
)
from clubsite.models import DriveFile
from clubsite.providers.google import (
    DEFAULT_TIMEOUT_SECONDS,
    decode_json_object,
    raise_for_google_status,
)

logger = logging.getLogger(__name__)

GOOGLE_DRIVE_API_BASE_URL = "https://www.googleapis.com/drive/v3"
DRIVE_READONLY_SCOPES = ("https://www.googleapis.com/auth/drive.readonly",)
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id, name, mimeType, size, modifiedTime, webViewLink, webContentLink, description"
PAGE_SIZE = 1000
MAX_PAGES = 20

TokenProvider = Callable[[dict[str, Any]], Awaitable[str]]


class DriveFetcher(Protocol):
    """Anything that can list the files of a Drive folder."""

    async def list_folder(
        self, *, folder_id: str, service_account_info: dict[str, Any]
    ) -> list[DriveFile]: ...


def _mint_service_account_token(info: dict[str, Any]) -> str:
    try:
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=list(DRIVE_READONLY_SCOPES)
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise ConfigError(
            f"Invalid service account credentials: {sanitize_error_message(str(exc), 200)}"
        ) from exc

    try:
        credentials.refresh(Request())
    except RefreshError as exc:
        raise AuthRejectedError(
            "Service account authentication failed. Please check credentials.",
            status_code=401,
        ) from exc
    except (TransportError, GoogleAuthError) as exc:
        raise UpstreamError(f"Google token exchange failed: {type(exc).__name__}") from exc

    if not credentials.token:
        raise AuthRejectedError("Google token exchange returned no access token")
    return credentials.token


async def service_account_token(info: dict[str, Any]) -> str:
    """Exchange a service account key for a ``drive.readonly`` access token.

    Raises:
        ConfigError: If the key payload is not a usable service account key
        AuthRejectedError: If Google refuses the key (e.g. ``invalid_grant``)
        UpstreamError: If the token endpoint cannot be reached
    """
    return await asyncio.to_thread(_mint_service_account_token, info)


class GoogleDriveLister:
    """Read-only Drive API v3 client for a single folder."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        token_provider: TokenProvider = service_account_token,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._token_provider = token_provider

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def _get(self, path: str, *, token: str, params: dict[str, Any]) -> httpx.Response:
        try:
            return await self._http_client.get(
                f"{GOOGLE_DRIVE_API_BASE_URL}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Google Drive request failed: {type(exc).__name__}") from exc

    async def _ensure_folder(self, folder_id: str, *, token: str) -> None:
        response = await self._get(
            f"/files/{folder_id}",
            token=token,
            params={"fields": "id, name, mimeType, trashed", "supportsAllDrives": "true"},
        )
        raise_for_google_status(response, service="Google Drive", target=f"folder {folder_id}")
        payload = decode_json_object(response, service="Google Drive")
        if payload.get("mimeType") != FOLDER_MIME_TYPE or payload.get("trashed"):
            raise NotFoundError(f"Google Drive folder not found: {folder_id} is not a live folder")

    async def list_folder(
        self, *, folder_id: str, service_account_info: dict[str, Any]
    ) -> list[DriveFile]:
        """Return every non-trashed file directly inside *folder_id*.

        Raises:
            ConfigError: If the service account key is malformed
            AuthRejectedError: If Google refuses the service account
            NotFoundError: If the folder is missing or not shared with the account
            UpstreamError: On any other API or transport failure
        """
        token = await self._token_provider(service_account_info)
        await self._ensure_folder(folder_id, token=token)

        files: list[DriveFile] = []
        page_token: str | None = None
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {
                "q": f"'{folder_id}' in parents and trashed = false",
                "fields": f"nextPageToken, files({FILE_FIELDS})",
                "orderBy": "modifiedTime desc",
                "pageSize": PAGE_SIZE,
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
            }
            if page_token:
                params["pageToken"] = page_token

            response = await self._get("/files", token=token, params=params)
            raise_for_google_status(response, service="Google Drive", target=f"folder {folder_id}")
            payload = decode_json_object(response, service="Google Drive")

            for item in payload.get("files") or []:
                try:
                    files.append(DriveFile.model_validate(item))
                except ValidationError:
                    logger.warning("Skipping malformed Drive file entry in folder %s", folder_id)

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
        else:
            logger.warning(
                "Drive folder %s listing stopped after %d pages; results may be truncated",
                folder_id,
                MAX_PAGES,
            )

        logger.info("Listed %d file(s) in Drive folder %s", len(files), folder_id)
        return files

"""Google Drive v3 client for listing, downloading and saving markdown notes."""

import json
import logging
import secrets
import time
from typing import Any

import httpx

from notemirror.core.config import DriveConfig
from notemirror.core.exceptions import RemoteStoreError
from notemirror.core.models import RemoteItem, SavedNote
from notemirror.utils.converters import parse_remote_time
from notemirror.utils.validation import sanitize_for_drive_query

from .base import RemoteStore

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_URL = "https://www.googleapis.com/drive/v3"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
NOTE_MIME_TYPE = "text/markdown"

# Refresh the access token this many seconds before Google expires it.
_EXPIRY_MARGIN = 60


class DriveClient(RemoteStore):
    """
    Drive REST client authenticated with an OAuth2 refresh token.

    The access token is fetched lazily and refreshed when it expires or when
    Drive answers 401. All listings follow ``nextPageToken``.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        page_size: int = 100,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the Drive client.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            refresh_token: Long-lived refresh token for the Drive account
            page_size: Items requested per listing page
            http_client: Optional preconfigured httpx client (used by tests)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.page_size = page_size
        self.access_token: str | None = None
        self._expires_at = 0.0
        self._client = http_client or httpx.AsyncClient(timeout=30.0)

    @classmethod
    def from_config(cls, config: DriveConfig) -> "DriveClient":
        refresh_token = config.get_refresh_token()
        if not (config.client_id and config.client_secret and refresh_token):
            raise ValueError("Drive credentials are not configured")
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            refresh_token=refresh_token,
            page_size=config.page_size,
        )

    async def authenticate(self) -> None:
        """
        Exchange the refresh token for an access token.

        Raises:
            RemoteStoreError: If Google rejects the credentials
        """
        logger.debug("Refreshing Google Drive access token")
        try:
            response = await self._client.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Drive token refresh failed: HTTP {e.response.status_code}")
            raise RemoteStoreError(
                "Failed to refresh Google Drive access token", e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Failed to refresh Google Drive access token: {e}") from e

        payload = response.json()
        self.access_token = payload["access_token"]
        self._expires_at = time.monotonic() + float(payload.get("expires_in", 3600)) - _EXPIRY_MARGIN

    async def _headers(self) -> dict[str, str]:
        if not self.access_token or time.monotonic() >= self._expires_at:
            await self.authenticate()
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        extra_headers = kwargs.pop("headers", {})
        for attempt in range(2):
            headers = {**await self._headers(), **extra_headers}
            try:
                response = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.HTTPError as e:
                raise RemoteStoreError(f"Drive request {method} {url} failed: {e}") from e

            if response.status_code == 401 and attempt == 0:
                # Token revoked or expired early; refresh once.
                self.access_token = None
                continue
            if response.is_error:
                raise RemoteStoreError(
                    f"Drive request {method} {url} failed: HTTP {response.status_code} {response.text[:200]}",
                    response.status_code,
                )
            return response
        raise RemoteStoreError(f"Drive request {method} {url} unauthorized", 401)

    async def _list_files(self, query: str, fields: str) -> list[dict[str, Any]]:
        files: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "q": query,
                "fields": f"nextPageToken, files({fields})",
                "pageSize": self.page_size,
            }
            if page_token:
                params["pageToken"] = page_token
            response = await self._request("GET", f"{API_URL}/files", params=params)
            data = response.json()
            files.extend(data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return files

    async def list_child_folders(self, parent_id: str) -> list[RemoteItem]:
        parent = sanitize_for_drive_query(parent_id)
        query = f"'{parent}' in parents and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        files = await self._list_files(query, "id, name")
        return [RemoteItem(id=f["id"], name=f["name"]) for f in files]

    async def list_child_notes(self, parent_id: str) -> list[RemoteItem]:
        parent = sanitize_for_drive_query(parent_id)
        query = f"'{parent}' in parents and mimeType='{NOTE_MIME_TYPE}' and trashed=false"
        files = await self._list_files(query, "id, name, createdTime, modifiedTime")
        return [
            RemoteItem(
                id=f["id"],
                name=f["name"],
                created_at=parse_remote_time(f.get("createdTime")),
                modified_at=parse_remote_time(f.get("modifiedTime")),
            )
            for f in files
        ]

    async def get_content(self, file_id: str) -> str:
        response = await self._request("GET", f"{API_URL}/files/{file_id}", params={"alt": "media"})
        return response.content.decode("utf-8")

    async def get_or_create_folder(self, parent_id: str, name: str) -> str:
        query = (
            f"name='{sanitize_for_drive_query(name)}' and '{sanitize_for_drive_query(parent_id)}' in parents "
            f"and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        )
        existing = await self._list_files(query, "id, name")
        if existing:
            return existing[0]["id"]

        response = await self._request(
            "POST",
            f"{API_URL}/files",
            params={"fields": "id"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
        )
        folder_id = response.json()["id"]
        logger.info(f"Created new category folder: {name}")
        return folder_id

    async def create_or_update_note(self, parent_id: str, filename: str, text: str) -> SavedNote:
        query = (
            f"name='{sanitize_for_drive_query(filename)}' and '{sanitize_for_drive_query(parent_id)}' in parents "
            "and trashed=false"
        )
        existing = await self._list_files(query, "id, name")

        if existing:
            file_id = existing[0]["id"]
            response = await self._request(
                "PATCH",
                f"{UPLOAD_URL}/files/{file_id}",
                params={"uploadType": "media", "fields": "id, webViewLink"},
                content=text.encode("utf-8"),
                headers={"Content-Type": NOTE_MIME_TYPE},
            )
            logger.info(f"Updated existing note: {filename}")
        else:
            boundary = f"notemirror-{secrets.token_hex(8)}"
            metadata = {"name": filename, "parents": [parent_id], "mimeType": NOTE_MIME_TYPE}
            body = (
                f"--{boundary}\r\n"
                "Content-Type: application/json; charset=UTF-8\r\n\r\n"
                f"{json.dumps(metadata)}\r\n"
                f"--{boundary}\r\n"
                f"Content-Type: {NOTE_MIME_TYPE}\r\n\r\n"
                f"{text}\r\n"
                f"--{boundary}--\r\n"
            )
            response = await self._request(
                "POST",
                f"{UPLOAD_URL}/files",
                params={"uploadType": "multipart", "fields": "id, webViewLink"},
                content=body.encode("utf-8"),
                headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            )
            logger.info(f"Created new note: {filename}")

        data = response.json()
        return SavedNote(id=data["id"], view_link=data.get("webViewLink"))

    async def close(self) -> None:
        await self._client.aclose()

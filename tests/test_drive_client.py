"""
Unit tests for the Google Drive client.

HTTP traffic is served by ``httpx.MockTransport`` handlers.
"""

import json

import httpx
import pytest

from notemirror.core.exceptions import RemoteStoreError
from notemirror.sources.drive.client import FOLDER_MIME_TYPE, DriveClient


class FakeDrive:
    """Request handler imitating the Drive endpoints the client uses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.unauthorized_once = False
        self.pages: list[dict] = [{"files": []}]
        self.created_folder_id = "new-folder"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "oauth2.googleapis.com":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_calls}", "expires_in": 3600})

        if self.unauthorized_once:
            self.unauthorized_once = False
            return httpx.Response(401, json={"error": "invalid_credentials"})

        if request.method == "GET" and path == "/drive/v3/files":
            token = request.url.params.get("pageToken")
            index = int(token) if token else 0
            return httpx.Response(200, json=self.pages[index])

        if request.method == "GET" and path.startswith("/drive/v3/files/"):
            return httpx.Response(200, content="# Note\nbody".encode("utf-8"))

        if request.method == "POST" and path == "/drive/v3/files":
            return httpx.Response(200, json={"id": self.created_folder_id})

        if path.startswith("/upload/drive/v3/files"):
            return httpx.Response(200, json={"id": "note-1", "webViewLink": "https://drive.google.com/file/d/note-1"})

        return httpx.Response(404)


@pytest.fixture
def drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def client(drive) -> DriveClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(drive))
    return DriveClient("client-id", "client-secret", "refresh-token", page_size=2, http_client=http_client)


def listing_requests(drive: FakeDrive) -> list[httpx.Request]:
    return [r for r in drive.requests if r.method == "GET" and r.url.path == "/drive/v3/files"]


@pytest.mark.asyncio
async def test_listing_follows_every_page(client, drive):
    drive.pages = [
        {"files": [{"id": "1", "name": "a.md"}, {"id": "2", "name": "b.md"}], "nextPageToken": "1"},
        {"files": [{"id": "3", "name": "c.md"}], "nextPageToken": "2"},
        {"files": [{"id": "4", "name": "d.md", "createdTime": "2024-01-01T00:00:00.000Z",
                    "modifiedTime": "2024-02-01T10:00:00.000Z"}]},
    ]

    notes = await client.list_child_notes("root")

    assert [n.name for n in notes] == ["a.md", "b.md", "c.md", "d.md"]
    assert notes[3].modified_at.isoformat() == "2024-02-01T10:00:00+00:00"
    assert len(listing_requests(drive)) == 3
    assert drive.token_calls == 1


@pytest.mark.asyncio
async def test_folder_query_filters_mime_type_and_trash(client, drive):
    drive.pages = [{"files": [{"id": "f1", "name": "Work"}]}]

    folders = await client.list_child_folders("root'id")

    assert folders[0].name == "Work"
    query = listing_requests(drive)[0].url.params["q"]
    assert "'root\\'id' in parents" in query
    assert f"mimeType='{FOLDER_MIME_TYPE}'" in query
    assert "trashed=false" in query


@pytest.mark.asyncio
async def test_unauthorized_response_refreshes_token_once(client, drive):
    await client.authenticate()
    drive.unauthorized_once = True

    content = await client.get_content("file-1")

    assert content == "# Note\nbody"
    assert drive.token_calls == 2
    assert drive.requests[-1].headers["Authorization"] == "Bearer token-2"


@pytest.mark.asyncio
async def test_server_error_raises_remote_store_error(drive):
    def failing(request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        return httpx.Response(500, text="backend error")

    client = DriveClient("id", "secret", "refresh", http_client=httpx.AsyncClient(transport=httpx.MockTransport(failing)))

    with pytest.raises(RemoteStoreError) as exc_info:
        await client.list_child_folders("root")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_rejected_refresh_token_raises(drive):
    def rejecting(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    client = DriveClient("id", "secret", "bad", http_client=httpx.AsyncClient(transport=httpx.MockTransport(rejecting)))

    with pytest.raises(RemoteStoreError):
        await client.get_content("file-1")


@pytest.mark.asyncio
async def test_get_or_create_folder_reuses_existing(client, drive):
    drive.pages = [{"files": [{"id": "existing", "name": "Work"}]}]

    assert await client.get_or_create_folder("root", "Work") == "existing"
    assert not [r for r in drive.requests if r.method == "POST" and r.url.path == "/drive/v3/files"]


@pytest.mark.asyncio
async def test_get_or_create_folder_creates_missing(client, drive):
    folder_id = await client.get_or_create_folder("root", "Work")

    assert folder_id == "new-folder"
    create = [r for r in drive.requests if r.method == "POST" and r.url.path == "/drive/v3/files"][0]
    assert json.loads(create.content) == {"name": "Work", "mimeType": FOLDER_MIME_TYPE, "parents": ["root"]}


@pytest.mark.asyncio
async def test_create_note_uses_multipart_upload(client, drive):
    saved = await client.create_or_update_note("folder", "idea.md", "# Idea")

    upload = drive.requests[-1]
    assert upload.method == "POST"
    assert upload.url.params["uploadType"] == "multipart"
    assert b'"name": "idea.md"' in upload.content
    assert b"# Idea" in upload.content
    assert saved.view_link == "https://drive.google.com/file/d/note-1"


@pytest.mark.asyncio
async def test_update_note_patches_existing_file(client, drive):
    drive.pages = [{"files": [{"id": "note-1", "name": "idea.md"}]}]

    saved = await client.create_or_update_note("folder", "idea.md", "# Idea v2")

    upload = drive.requests[-1]
    assert upload.method == "PATCH"
    assert upload.url.path == "/upload/drive/v3/files/note-1"
    assert upload.url.params["uploadType"] == "media"
    assert upload.content == b"# Idea v2"
    assert saved.id == "note-1"

"""Tests for the drive HTTP client."""

from __future__ import annotations

import json
import zlib
from datetime import datetime, timezone
from pathlib import Path

import pytest

from drivesync.client.api import (
    APIError,
    AuthenticationError,
    DriveClient,
    DriveInfo,
    NotFoundError,
    ReadOnlyDriveClient,
    RemoteNode,
    UploadSession,
    format_crc32,
    format_timestamp,
    parse_crc32,
    parse_timestamp,
)
from drivesync.client.auth import StaticTokenAuth

API = "https://graph.test/v1.0"


def make_client(read_only: bool = False) -> DriveClient:
    """Create a client against the test API URL."""
    cls = ReadOnlyDriveClient if read_only else DriveClient
    return cls(auth=StaticTokenAuth("token123"), api_url=API)


FILE_ITEM = {
    "id": "F1",
    "name": "report.pdf",
    "size": 2048,
    "file": {"hashes": {"crc32Hash": "78563412", "sha1Hash": "abcdef0123"}},
    "fileSystemInfo": {
        "createdDateTime": "2024-03-01T12:00:00Z",
        "lastModifiedDateTime": "2024-03-02T08:30:00.5Z",
    },
    "parentReference": {"id": "D1", "path": "/drive/root:/Documents/My%20Stuff"},
}


class TestHelpers:
    """Tests for value conversions."""

    def test_crc32_is_little_endian(self) -> None:
        """The published CRC32 hex string is little-endian."""
        assert parse_crc32("78563412") == 0x12345678
        assert format_crc32(0x12345678) == "78563412"

    def test_crc32_matches_zlib(self) -> None:
        """A value computed locally formats like the drive publishes it."""
        value = zlib.crc32(b"hello") & 0xFFFFFFFF
        assert parse_crc32(format_crc32(value)) == value

    def test_parse_timestamp(self) -> None:
        """Z suffix means UTC; missing values fall back to the epoch."""
        assert parse_timestamp("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert parse_timestamp(None) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_format_timestamp(self) -> None:
        """Timestamps are sent as UTC with a Z suffix."""
        value = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-03-01T12:00:00.000000Z"


class TestRemoteNode:
    """Tests for RemoteNode.from_dict()."""

    def test_file(self) -> None:
        """Should parse a file with hashes, timestamps and parent path."""
        node = RemoteNode.from_dict(FILE_ITEM)

        assert node.id == "F1"
        assert node.full_name == "/Documents/My Stuff/report.pdf"
        assert not node.is_directory
        assert node.size == 2048
        assert node.crc32 == 0x12345678
        assert node.sha1 == "ABCDEF0123"
        assert node.has_hashes
        assert node.created == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert node.parent_id == "D1"
        assert node.parent_path == "/Documents/My Stuff/"

    def test_folder(self) -> None:
        """Folder full names end with a slash."""
        node = RemoteNode.from_dict({
            "id": "D2",
            "name": "Sub",
            "folder": {"childCount": 0},
            "parentReference": {"id": "root", "path": "/drive/root:"},
        })

        assert node.is_directory
        assert node.full_name == "/Sub/"
        assert not node.has_hashes

    def test_root(self) -> None:
        """The drive root has no parent path."""
        node = RemoteNode.from_dict({"id": "root", "name": "root", "root": {}, "folder": {}})

        assert node.is_directory
        assert node.full_name == "/"
        with pytest.raises(ValueError):
            node.parent()

    def test_parent(self) -> None:
        """parent() builds the enclosing folder from the reference."""
        parent = RemoteNode.from_dict(FILE_ITEM).parent()

        assert parent.id == "D1"
        assert parent.name == "My Stuff"
        assert parent.full_name == "/Documents/My Stuff/"
        assert parent.is_directory


class TestDriveInfo:
    """Tests for DriveInfo."""

    def test_usage(self) -> None:
        """Should parse the quota."""
        info = DriveInfo.from_dict({"id": "d", "driveType": "personal", "quota": {"used": 25, "total": 100}})
        assert info.usage_percent == 25.0


class TestDriveClient:
    """Tests for DriveClient requests."""

    def test_get_default_drive(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should fetch /me/drive with the bearer token."""
        httpx_mock.add_response(
            url=f"{API}/me/drive",
            json={"id": "d1", "driveType": "personal", "quota": {"used": 1, "total": 4}},
        )

        with make_client() as client:
            info = client.get_default_drive()

        assert info.id == "d1"
        assert info.drive_type == "personal"
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer token123"

    def test_get_path(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Paths are addressed relative to the drive root."""
        httpx_mock.add_response(json={
            "id": "D1",
            "name": "My Stuff",
            "folder": {},
            "parentReference": {"id": "D0", "path": "/drive/root:/Documents"},
        })

        with make_client() as client:
            node = client.get_path("/Documents/My Stuff")

        assert node.full_name == "/Documents/My Stuff/"
        request = httpx_mock.get_request()
        assert request.url.path == "/v1.0/me/drive/root:/Documents/My Stuff"

    def test_get_children_follows_next_link(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """All pages of a listing are collected."""
        httpx_mock.add_response(json={
            "value": [dict(FILE_ITEM, id="A", name="a.txt")],
            "@odata.nextLink": f"{API}/me/drive/items/D1/children?$skiptoken=abc",
        })
        httpx_mock.add_response(json={"value": [dict(FILE_ITEM, id="B", name="b.txt")]})

        folder = RemoteNode(id="D1", name="My Stuff", full_name="/Documents/My Stuff/", is_directory=True)
        with make_client() as client:
            children = client.get_children(folder)

        assert [c.name for c in children] == ["a.txt", "b.txt"]
        requests = httpx_mock.get_requests()
        assert len(requests) == 2
        assert requests[0].url.params["$top"] == "1000"
        assert requests[1].url.params["$skiptoken"] == "abc"

    def test_not_found(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """404 raises NotFoundError."""
        httpx_mock.add_response(status_code=404, json={"error": {"code": "itemNotFound", "message": "Item does not exist"}})

        with make_client() as client, pytest.raises(NotFoundError) as exc_info:
            client.get_path("/missing")

        assert exc_info.value.status_code == 404
        assert "Item does not exist" in str(exc_info.value)

    def test_unauthorized(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """401 raises AuthenticationError."""
        httpx_mock.add_response(status_code=401)

        with make_client() as client, pytest.raises(AuthenticationError):
            client.get_root()

    def test_server_error_carries_status(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Other failures raise APIError with the status code."""
        httpx_mock.add_response(status_code=503, text="busy")

        with make_client() as client, pytest.raises(APIError) as exc_info:
            client.get_root()

        assert exc_info.value.status_code == 503

    def test_create_folder(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Folders are created with conflictBehavior fail."""
        httpx_mock.add_response(status_code=201, json={
            "id": "N1",
            "name": "new",
            "folder": {},
            "parentReference": {"id": "root", "path": "/drive/root:"},
        })

        root = RemoteNode(id="root", name="", full_name="/", is_directory=True)
        with make_client() as client:
            node = client.create_folder(root, "new")

        assert node.full_name == "/new/"
        body = json.loads(httpx_mock.get_request().content)
        assert body == {"name": "new", "folder": {}, "@microsoft.graph.conflictBehavior": "fail"}

    def test_replace_file(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Simple uploads PUT the content with the conflict behaviour."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"hello")
        httpx_mock.add_response(status_code=200, json=dict(FILE_ITEM, name="a.txt", size=5))

        parent = RemoteNode(id="D1", name="d", full_name="/d/", is_directory=True)
        with make_client() as client:
            client.replace_file(parent, local)

        request = httpx_mock.get_request()
        assert request.method == "PUT"
        assert request.url.path == "/v1.0/me/drive/items/D1:/a.txt:/content"
        assert request.url.params["@microsoft.graph.conflictBehavior"] == "replace"
        assert request.content == b"hello"

    def test_update_properties(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Timestamps are PATCHed as fileSystemInfo."""
        httpx_mock.add_response(json=FILE_ITEM)

        node = RemoteNode.from_dict(FILE_ITEM)
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        modified = datetime(2024, 1, 2, tzinfo=timezone.utc)
        with make_client() as client:
            client.update_properties(node, created, modified)

        request = httpx_mock.get_request()
        assert request.method == "PATCH"
        assert json.loads(request.content) == {
            "fileSystemInfo": {
                "createdDateTime": "2024-01-01T00:00:00.000000Z",
                "lastModifiedDateTime": "2024-01-02T00:00:00.000000Z",
            }
        }

    def test_download(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Content is streamed into the destination file."""
        httpx_mock.add_response(content=b"payload")
        dest = tmp_path / "out.bin"
        progress: list[tuple[int, int]] = []

        node = RemoteNode(id="F1", name="f", full_name="/f", is_directory=False, size=7)
        with make_client() as client:
            client.download(node, dest, lambda done, total: progress.append((done, total)))

        assert dest.read_bytes() == b"payload"
        assert progress[-1] == (7, 7)

    def test_download_error(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A failed download raises before anything is written."""
        httpx_mock.add_response(status_code=404)

        node = RemoteNode(id="F1", name="f", full_name="/f", is_directory=False, size=7)
        with make_client() as client, pytest.raises(NotFoundError):
            client.download(node, tmp_path / "out.bin")


class TestUploadSession:
    """Tests for chunked uploads."""

    def test_start_session(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Opening a session returns the upload URL."""
        local = tmp_path / "big.bin"
        local.write_bytes(b"x" * 10)
        httpx_mock.add_response(json={"uploadUrl": "https://upload.test/session/1"})

        parent = RemoteNode(id="D1", name="d", full_name="/d/", is_directory=True)
        with make_client() as client:
            session = client.start_upload_session(parent, local)

        assert session.upload_url == "https://upload.test/session/1"
        assert session.size == 10
        assert not session.is_complete

    def test_final_chunk_completes_session(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """The last chunk returns the item; no bearer token is sent."""
        local = tmp_path / "big.bin"
        local.write_bytes(b"x" * 10)
        httpx_mock.add_response(
            url="https://upload.test/session/1",
            status_code=201,
            json=dict(FILE_ITEM, name="big.bin", size=10),
        )

        session = UploadSession(upload_url="https://upload.test/session/1", file=local, size=10)
        with make_client() as client:
            client.upload_chunk(session)

        assert session.is_complete
        assert session.item is not None and session.item.name == "big.bin"
        assert session.progress == 100.0
        request = httpx_mock.get_request()
        assert request.headers["Content-Range"] == "bytes 0-9/10"
        assert "Authorization" not in request.headers

    def test_partial_chunk_moves_offset(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A 202 response moves the offset to the next expected range."""
        local = tmp_path / "big.bin"
        local.write_bytes(b"x" * 10)
        httpx_mock.add_response(status_code=202, json={"nextExpectedRanges": ["4-"]})

        session = UploadSession(upload_url="https://upload.test/session/1", file=local, size=10)
        with make_client() as client:
            client.upload_chunk(session)

        assert not session.is_complete
        assert session.total_uploaded == 4
        assert session.progress == 40.0


class TestReadOnlyDriveClient:
    """Tests for the dry-run client."""

    def test_mutations_send_nothing(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Mutations return synthesized nodes without any request."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"hello")
        root = RemoteNode(id="root", name="", full_name="/", is_directory=True)

        with make_client(read_only=True) as client:
            folder = client.create_folder(root, "new")
            uploaded = client.upload_file(folder, local)
            session = client.start_upload_session(folder, local)
            client.delete(uploaded)
            client.download(uploaded, tmp_path / "out")
            children = client.get_children(folder)

        assert folder.id is None and folder.full_name == "/new/"
        assert uploaded.full_name == "/new/a.txt"
        assert uploaded.size == 5
        assert session.is_complete
        assert children == []
        assert not (tmp_path / "out").exists()
        assert httpx_mock.get_requests() == []

    def test_reads_hit_api(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Lookups are still performed in a dry run."""
        httpx_mock.add_response(json={"id": "root", "name": "root", "root": {}, "folder": {}})

        with make_client(read_only=True) as client:
            node = client.get_root()

        assert node.full_name == "/"

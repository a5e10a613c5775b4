"""HTTP client for the cloud drive REST API.

This module provides:
- RemoteNode: Immutable snapshot of a drive item from a listing call
- DriveInfo: Drive id, type and quota
- UploadSession: State of a resumable (chunked) upload
- DriveClient: httpx client for the drive API
- ReadOnlyDriveClient: Dry-run variant that never mutates the drive

The endpoints follow the Microsoft Graph drive API (items addressed by
id, paths addressed as "root:/<path>").
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://graph.microsoft.com/v1.0"

# Upload session chunks must be a multiple of 320 KiB
CHUNK_UNIT = 320 * 1024
CHUNK_SIZE = CHUNK_UNIT * 16

PAGE_SIZE = 1000
DOWNLOAD_BLOCK = 64 * 1024

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


def parse_crc32(value: str) -> int:
    """Parse a CRC32 hash as published by the drive (little-endian hex)."""
    return int.from_bytes(bytes.fromhex(value), "little")


def format_crc32(value: int) -> str:
    """Format a CRC32 value the way the drive publishes it."""
    return value.to_bytes(4, "little").hex().upper()


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO 8601 timestamp from the API into an aware UTC datetime."""
    if not value:
        return EPOCH
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime for the API (UTC, 'Z' suffix)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parent_full_name(parent_path: str | None) -> str | None:
    """Convert a parentReference path ('/drive/root:/A%20B') into '/A B/'."""
    if parent_path is None:
        return None
    index = parent_path.find(":")
    path = parent_path[index + 1:] if index >= 0 else parent_path
    return unquote(path).rstrip("/") + "/"


@dataclass(frozen=True)
class RemoteNode:
    """Drive item metadata from the server.

    The node does not own its parent: it only carries the parent's id and
    full path, from which parent() builds a minimal folder node.

    Attributes:
        id: Item id (None for nodes synthesized during a dry run).
        name: Item name ("" for the drive root).
        full_name: Absolute path; "/" for the root, folders end with "/".
        is_directory: Whether the item is a folder.
        size: Size in bytes.
        crc32: CRC32 of the content, if published.
        sha1: Upper-case hex SHA-1 of the content, if published.
        created: Creation time (UTC).
        modified: Last modification time (UTC).
        parent_id: Id of the enclosing folder.
        parent_path: Full path of the enclosing folder (ends with "/").
    """

    id: str | None
    name: str
    full_name: str
    is_directory: bool
    size: int = 0
    crc32: int | None = None
    sha1: str | None = None
    created: datetime = EPOCH
    modified: datetime = EPOCH
    parent_id: str | None = None
    parent_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteNode:
        """Create from an API item dictionary."""
        parent_ref = data.get("parentReference") or {}
        parent_path = _parent_full_name(parent_ref.get("path"))
        is_directory = "folder" in data or "root" in data
        name = data.get("name", "")

        if parent_path is None:
            full_name = "/"
        else:
            full_name = parent_path + name + ("/" if is_directory else "")

        hashes = (data.get("file") or {}).get("hashes") or {}
        fs_info = data.get("fileSystemInfo") or {}

        return cls(
            id=data.get("id"),
            name=name,
            full_name=full_name,
            is_directory=is_directory,
            size=int(data.get("size", 0)),
            crc32=parse_crc32(hashes["crc32Hash"]) if hashes.get("crc32Hash") else None,
            sha1=hashes["sha1Hash"].upper() if hashes.get("sha1Hash") else None,
            created=parse_timestamp(fs_info.get("createdDateTime") or data.get("createdDateTime")),
            modified=parse_timestamp(
                fs_info.get("lastModifiedDateTime") or data.get("lastModifiedDateTime")
            ),
            parent_id=parent_ref.get("id"),
            parent_path=parent_path,
        )

    @property
    def has_hashes(self) -> bool:
        """Whether the drive published a content hash for this item."""
        return self.crc32 is not None or self.sha1 is not None

    def parent(self) -> RemoteNode:
        """Build a minimal folder node for the enclosing folder."""
        if self.parent_path is None:
            raise ValueError(f"{self.full_name} has no parent")
        stripped = self.parent_path.rstrip("/")
        return RemoteNode(
            id=self.parent_id,
            name=stripped.rsplit("/", 1)[-1],
            full_name=self.parent_path,
            is_directory=True,
        )

    def child_full_name(self, name: str, is_directory: bool) -> str:
        """Full path a child called `name` would have inside this folder."""
        return self.full_name + name + ("/" if is_directory else "")


@dataclass
class DriveInfo:
    """Drive id, type and quota."""

    id: str
    drive_type: str
    used: int
    total: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DriveInfo:
        """Create from API response dictionary."""
        quota = data.get("quota") or {}
        return cls(
            id=data.get("id", ""),
            drive_type=data.get("driveType", ""),
            used=int(quota.get("used", 0)),
            total=int(quota.get("total", 0)),
        )

    @property
    def usage_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used / self.total * 100


@dataclass
class UploadSession:
    """Resumable upload of one local file.

    Attributes:
        upload_url: Absolute URL chunks are PUT to.
        file: Local file being uploaded.
        size: Total size in bytes.
        total_uploaded: Bytes acknowledged by the server.
        last_uploaded: Size of the last chunk sent.
        item: The resulting item once the upload has completed.
    """

    upload_url: str
    file: Path
    size: int
    total_uploaded: int = 0
    last_uploaded: int = 0
    item: RemoteNode | None = field(default=None)

    @property
    def is_complete(self) -> bool:
        return self.item is not None

    @property
    def progress(self) -> float:
        """Percentage of the file acknowledged so far."""
        if self.size == 0:
            return 100.0
        return self.total_uploaded / self.size * 100


ProgressListener = Callable[[int, int], None]


class DriveClient:
    """HTTP client for the drive API."""

    def __init__(
        self,
        auth: httpx.Auth | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the drive client.

        Args:
            auth: httpx auth flow adding the bearer token (see client.auth).
            api_url: Base URL of the API.
            timeout: Request timeout in seconds.
        """
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = httpx.Client(
            base_url=self._api_url,
            auth=auth,
            timeout=timeout,
            follow_redirects=True,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> DriveClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        detail = response.reason_phrase or "Unknown error"
        try:
            error = response.json().get("error")
            if isinstance(error, dict):
                detail = error.get("message") or error.get("code") or detail
        except ValueError:
            pass

        message = f"{response.status_code} {detail}"
        if response.status_code == 401:
            raise AuthenticationError(message, 401)
        if response.status_code == 404:
            raise NotFoundError(message, 404)
        raise APIError(message, response.status_code)

    # === Drive and item lookup ===

    def get_default_drive(self) -> DriveInfo:
        """Get the user's default drive with its quota."""
        response = self._handle_response(self._client.get("/me/drive"))
        return DriveInfo.from_dict(response.json())

    def get_root(self) -> RemoteNode:
        """Get the root folder of the drive."""
        response = self._handle_response(self._client.get("/me/drive/root"))
        return RemoteNode.from_dict(response.json())

    def get_path(self, path: str) -> RemoteNode:
        """Get an item by its absolute path.

        Raises:
            NotFoundError: If no item exists at that path.
        """
        stripped = path.strip("/")
        if not stripped:
            return self.get_root()
        response = self._handle_response(
            self._client.get(f"/me/drive/root:/{quote(stripped)}")
        )
        return RemoteNode.from_dict(response.json())

    def get_children(self, node: RemoteNode) -> list[RemoteNode]:
        """List the children of a folder, following pagination."""
        children: list[RemoteNode] = []
        url: str | None = f"/me/drive/items/{node.id}/children"
        params: dict[str, str] | None = {"$top": str(PAGE_SIZE)}

        while url:
            response = self._handle_response(self._client.get(url, params=params))
            data = response.json()
            children.extend(RemoteNode.from_dict(item) for item in data.get("value", []))
            url = data.get("@odata.nextLink")
            params = None  # nextLink already carries the query

        return children

    # === Mutations ===

    def delete(self, node: RemoteNode) -> None:
        """Delete an item; folders are removed with their content."""
        self._handle_response(self._client.delete(f"/me/drive/items/{node.id}"))

    def create_folder(self, parent: RemoteNode, name: str) -> RemoteNode:
        """Create a folder inside `parent`."""
        response = self._handle_response(
            self._client.post(
                f"/me/drive/items/{parent.id}/children",
                json={
                    "name": name,
                    "folder": {},
                    "@microsoft.graph.conflictBehavior": "fail",
                },
            )
        )
        return RemoteNode.from_dict(response.json())

    def upload_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        """Upload a new file in one request."""
        return self._put_content(parent, file, "fail")

    def replace_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        """Upload a file in one request, replacing any existing item."""
        return self._put_content(parent, file, "replace")

    def _put_content(self, parent: RemoteNode, file: Path, conflict: str) -> RemoteNode:
        response = self._handle_response(
            self._client.put(
                f"/me/drive/items/{parent.id}:/{quote(file.name)}:/content",
                params={"@microsoft.graph.conflictBehavior": conflict},
                content=file.read_bytes(),
                headers={"Content-Type": "application/octet-stream"},
            )
        )
        return RemoteNode.from_dict(response.json())

    def start_upload_session(self, parent: RemoteNode, file: Path) -> UploadSession:
        """Open a resumable upload session for a large file."""
        response = self._handle_response(
            self._client.post(
                f"/me/drive/items/{parent.id}:/{quote(file.name)}:/createUploadSession",
                json={"item": {"@microsoft.graph.conflictBehavior": "replace"}},
            )
        )
        return UploadSession(
            upload_url=response.json()["uploadUrl"],
            file=file,
            size=file.stat().st_size,
        )

    def upload_chunk(self, session: UploadSession) -> None:
        """Send the next chunk of an upload session.

        Updates the session with the acknowledged offset, or with the
        resulting item once the last chunk has been accepted.
        """
        start = session.total_uploaded
        with open(session.file, "rb") as f:
            f.seek(start)
            data = f.read(CHUNK_SIZE)

        end = start + len(data) - 1
        # The upload URL is pre-authenticated; no bearer header
        response = self._handle_response(
            self._client.put(
                session.upload_url,
                content=data,
                headers={
                    "Content-Length": str(len(data)),
                    "Content-Range": f"bytes {start}-{end}/{session.size}",
                },
                auth=None,
            )
        )

        session.last_uploaded = len(data)
        payload = response.json()

        if response.status_code in (200, 201):
            session.total_uploaded = session.size
            session.item = RemoteNode.from_dict(payload)
            return

        ranges = payload.get("nextExpectedRanges") or []
        if ranges:
            session.total_uploaded = int(ranges[0].split("-")[0])
        else:
            session.total_uploaded = end + 1

    def update_properties(
        self,
        node: RemoteNode,
        created: datetime,
        modified: datetime,
    ) -> RemoteNode:
        """Set the created/modified timestamps of an item."""
        response = self._handle_response(
            self._client.patch(
                f"/me/drive/items/{node.id}",
                json={
                    "fileSystemInfo": {
                        "createdDateTime": format_timestamp(created),
                        "lastModifiedDateTime": format_timestamp(modified),
                    }
                },
            )
        )
        return RemoteNode.from_dict(response.json())

    def download(
        self,
        node: RemoteNode,
        dest: Path,
        progress: ProgressListener | None = None,
    ) -> None:
        """Stream the content of a file into `dest`.

        Args:
            node: Remote file to download.
            dest: Local file to write (created or truncated).
            progress: Optional callback (bytes_so_far, total_bytes).
        """
        with self._client.stream("GET", f"/me/drive/items/{node.id}/content") as response:
            if response.status_code >= 400:
                response.read()
                self._handle_response(response)

            received = 0
            with open(dest, "wb") as f:
                for block in response.iter_bytes(DOWNLOAD_BLOCK):
                    f.write(block)
                    received += len(block)
                    if progress:
                        progress(received, node.size)


class ReadOnlyDriveClient(DriveClient):
    """Drive client for dry runs.

    Lookups hit the API; every mutation is logged and skipped. Created
    items are synthesized (id None) so the run can carry on as if they
    existed.
    """

    def get_children(self, node: RemoteNode) -> list[RemoteNode]:
        if node.id is None:
            return []
        return super().get_children(node)

    def delete(self, node: RemoteNode) -> None:
        logger.debug("Dry run: not deleting %s", node.full_name)

    def create_folder(self, parent: RemoteNode, name: str) -> RemoteNode:
        logger.debug("Dry run: not creating folder %s", parent.child_full_name(name, True))
        return RemoteNode(
            id=None,
            name=name,
            full_name=parent.child_full_name(name, True),
            is_directory=True,
            parent_id=parent.id,
            parent_path=parent.full_name,
        )

    def upload_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        return self._synthesize(parent, file)

    def replace_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        return self._synthesize(parent, file)

    def start_upload_session(self, parent: RemoteNode, file: Path) -> UploadSession:
        size = file.stat().st_size
        return UploadSession(
            upload_url="",
            file=file,
            size=size,
            total_uploaded=size,
            item=self._synthesize(parent, file),
        )

    def upload_chunk(self, session: UploadSession) -> None:
        pass

    def update_properties(
        self,
        node: RemoteNode,
        created: datetime,
        modified: datetime,
    ) -> RemoteNode:
        return node

    def download(
        self,
        node: RemoteNode,
        dest: Path,
        progress: ProgressListener | None = None,
    ) -> None:
        logger.debug("Dry run: not downloading %s", node.full_name)

    def _synthesize(self, parent: RemoteNode, file: Path) -> RemoteNode:
        logger.debug("Dry run: not uploading %s", parent.child_full_name(file.name, False))
        return RemoteNode(
            id=None,
            name=file.name,
            full_name=parent.child_full_name(file.name, False),
            is_directory=False,
            size=file.stat().st_size,
            parent_id=parent.id,
            parent_path=parent.full_name,
        )

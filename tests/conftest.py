"""Shared fixtures: an in-memory drive and helpers for building local trees."""

from __future__ import annotations

import dataclasses
import hashlib
import itertools
import os
import threading
import zlib
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from drivesync.client.api import CHUNK_SIZE, APIError, DriveInfo, NotFoundError, RemoteNode, UploadSession
from drivesync.client.filesystem import FileSystemProvider
from drivesync.client.sync.filters import SyncFilters
from drivesync.client.sync.queue import TaskQueue
from drivesync.client.sync.reporter import TaskReporter
from drivesync.client.sync.tasks import TaskContext
from drivesync.core.config import SyncConfig, SyncDirection

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 3, 2, 8, 30, 0, tzinfo=timezone.utc)


class FakeDrive:
    """In-memory stand-in for DriveClient.

    Items are stored by id; folder contents are the items whose parent_id
    matches. Every method the sync tasks call is implemented, and failures
    can be injected per method with fail().
    """

    def __init__(self, publish_hashes: bool = True) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._nodes: dict[str, RemoteNode] = {}
        self._content: dict[str, bytes] = {}
        self._sessions: dict[str, bytearray] = {}
        self._failures: dict[str, list[Exception]] = {}
        self.publish_hashes = publish_hashes
        self.calls: list[str] = []

        self.root = RemoteNode(id="root", name="", full_name="/", is_directory=True)
        self._nodes["root"] = self.root

    # === Test helpers ===

    def add_folder(self, parent: RemoteNode, name: str) -> RemoteNode:
        with self._lock:
            return self._store_folder(parent, name)

    def add_file(
        self,
        parent: RemoteNode,
        name: str,
        content: bytes,
        modified: datetime = T0,
        hashes: bool = True,
    ) -> RemoteNode:
        with self._lock:
            return self._store_file(parent, name, content, modified, None, hashes)

    def fail(self, method: str, *errors: Exception) -> None:
        """Make the next calls of `method` raise the given errors in turn."""
        self._failures.setdefault(method, []).extend(errors)

    def find(self, full_name: str) -> RemoteNode | None:
        with self._lock:
            for node in self._nodes.values():
                if node.full_name == full_name:
                    return node
        return None

    def content(self, full_name: str) -> bytes:
        node = self.find(full_name)
        assert node is not None and node.id is not None
        return self._content[node.id]

    def _check(self, method: str) -> None:
        with self._lock:
            self.calls.append(method)
            pending = self._failures.get(method)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    def _child(self, parent_id: str | None, name: str) -> RemoteNode | None:
        for node in self._nodes.values():
            if node.parent_id == parent_id and node.name == name and node.id != "root":
                return node
        return None

    def _store_folder(self, parent: RemoteNode, name: str) -> RemoteNode:
        node = RemoteNode(
            id=f"item{next(self._ids)}",
            name=name,
            full_name=parent.child_full_name(name, True),
            is_directory=True,
            created=T0,
            modified=T0,
            parent_id=parent.id,
            parent_path=parent.full_name,
        )
        self._nodes[node.id] = node
        return node

    def _store_file(
        self,
        parent: RemoteNode,
        name: str,
        content: bytes,
        modified: datetime,
        existing: RemoteNode | None,
        hashes: bool = True,
    ) -> RemoteNode:
        hashes = hashes and self.publish_hashes
        node = RemoteNode(
            id=existing.id if existing else f"item{next(self._ids)}",
            name=name,
            full_name=parent.child_full_name(name, False),
            is_directory=False,
            size=len(content),
            crc32=zlib.crc32(content) & 0xFFFFFFFF if hashes else None,
            sha1=hashlib.sha1(content).hexdigest().upper() if hashes else None,
            created=modified,
            modified=modified,
            parent_id=parent.id,
            parent_path=parent.full_name,
        )
        assert node.id is not None
        self._nodes[node.id] = node
        self._content[node.id] = content
        return node

    def _remove(self, item_id: str) -> None:
        for child in [n for n in self._nodes.values() if n.parent_id == item_id]:
            assert child.id is not None
            self._remove(child.id)
        self._nodes.pop(item_id, None)
        self._content.pop(item_id, None)

    # === DriveClient interface ===

    def get_default_drive(self) -> DriveInfo:
        self._check("get_default_drive")
        used = sum(len(c) for c in self._content.values())
        return DriveInfo(id="fake-drive", drive_type="personal", used=used, total=1024 * 1024 * 1024)

    def get_root(self) -> RemoteNode:
        self._check("get_root")
        return self.root

    def get_path(self, path: str) -> RemoteNode:
        self._check("get_path")
        wanted = "/" + path.strip("/")
        for node in list(self._nodes.values()):
            if node.full_name.rstrip("/") == wanted.rstrip("/") or node.full_name == wanted:
                return node
        raise NotFoundError(f"404 {path} not found", 404)

    def get_children(self, node: RemoteNode) -> list[RemoteNode]:
        self._check("get_children")
        with self._lock:
            return sorted(
                (n for n in self._nodes.values() if n.parent_id == node.id and n.id != "root"),
                key=lambda n: n.name,
            )

    def delete(self, node: RemoteNode) -> None:
        self._check("delete")
        with self._lock:
            assert node.id is not None
            self._remove(node.id)

    def create_folder(self, parent: RemoteNode, name: str) -> RemoteNode:
        self._check("create_folder")
        with self._lock:
            if self._child(parent.id, name) is not None:
                raise APIError("409 nameAlreadyExists", 409)
            return self._store_folder(parent, name)

    def upload_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        self._check("upload_file")
        with self._lock:
            if self._child(parent.id, file.name) is not None:
                raise APIError("409 nameAlreadyExists", 409)
            return self._store_file(parent, file.name, file.read_bytes(), T1, None)

    def replace_file(self, parent: RemoteNode, file: Path) -> RemoteNode:
        self._check("replace_file")
        with self._lock:
            existing = self._child(parent.id, file.name)
            return self._store_file(parent, file.name, file.read_bytes(), T1, existing)

    def start_upload_session(self, parent: RemoteNode, file: Path) -> UploadSession:
        self._check("start_upload_session")
        url = f"fake://{parent.id}/{file.name}"
        with self._lock:
            self._sessions[url] = bytearray()
        return UploadSession(upload_url=url, file=file, size=file.stat().st_size)

    def upload_chunk(self, session: UploadSession) -> None:
        self._check("upload_chunk")
        with open(session.file, "rb") as f:
            f.seek(session.total_uploaded)
            data = f.read(CHUNK_SIZE)

        with self._lock:
            buffer = self._sessions[session.upload_url]
            buffer.extend(data)
            session.last_uploaded = len(data)
            session.total_uploaded = len(buffer)
            if session.total_uploaded < session.size:
                return

            parent_id = session.upload_url[len("fake://"):].split("/", 1)[0]
            parent = self._nodes[parent_id]
            existing = self._child(parent.id, session.file.name)
            session.item = self._store_file(parent, session.file.name, bytes(buffer), T1, existing)

    def update_properties(self, node: RemoteNode, created: datetime, modified: datetime) -> RemoteNode:
        self._check("update_properties")
        with self._lock:
            assert node.id is not None
            updated = dataclasses.replace(self._nodes[node.id], created=created, modified=modified)
            self._nodes[node.id] = updated
            return updated

    def download(self, node: RemoteNode, dest: Path, progress=None) -> None:  # type: ignore[no-untyped-def]
        self._check("download")
        assert node.id is not None
        dest.write_bytes(self._content[node.id])


def write_file(path: Path, content: bytes, modified: datetime = T0) -> Path:
    """Create a local file with a given modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    ts = modified.timestamp()
    os.utime(path, (ts, ts))
    return path


def make_config(local_path: Path, direction: SyncDirection = SyncDirection.UP, **kwargs) -> SyncConfig:  # type: ignore[no-untyped-def]
    """Create a SyncConfig for testing."""
    kwargs.setdefault("threads", 2)
    return SyncConfig(direction=direction, local_path=local_path, remote_path="/", **kwargs)


def make_context(config: SyncConfig, api=None, filesystem=None) -> TaskContext:  # type: ignore[no-untyped-def]
    """Create a TaskContext with a real queue and reporter."""
    return TaskContext(
        queue=TaskQueue(),
        api=api if api is not None else MagicMock(),
        filesystem=filesystem if filesystem is not None else FileSystemProvider(use_hash=config.use_hash),
        reporter=TaskReporter(),
        filters=SyncFilters(config),
        config=config,
    )


@pytest.fixture
def drive() -> FakeDrive:
    """Empty in-memory drive."""
    return FakeDrive()


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    """Empty local sync root."""
    root = tmp_path / "local"
    root.mkdir()
    return root

"""
SceneCast Blob Store

Flat key/value storage for generated images, backed by a local directory
or a Supabase Storage bucket.

Key convention:
    <project>-<n>.<ext>               images that belong to a project
    generated_<timestamp>_<seed>.png  images generated without one
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Tuple

from supabase import create_client

from scenecast.core.config import Settings
from scenecast.core.exceptions import (
    BlobExistsError,
    BlobNotFoundError,
    InvalidBlobKeyError,
    InvalidConfigError,
    StorageError,
)
from scenecast.core.logging_config import get_logger

logger = get_logger("storage.blob_store")

PROJECT_KEY_PATTERN = re.compile(r"^(?P<project>.+)-(?P<seq>\d+)\.\w+$")
UNKNOWN_PROJECT = "unknown"


@dataclass
class BlobInfo:
    """Metadata for a stored blob."""
    key: str
    url: str
    size: int
    uploaded_at: datetime
    content_type: str = "application/octet-stream"

    @property
    def timestamp_ms(self) -> int:
        return int(self.uploaded_at.timestamp() * 1000)


def validate_blob_key(key: str) -> str:
    """Keys are flat names: no separators, no dot segments, no control chars."""
    if (
        not key
        or key in (".", "..")
        or "/" in key
        or "\\" in key
        or any(ord(char) < 32 for char in key)
    ):
        raise InvalidBlobKeyError(key)
    return key


def project_blob_key(project_name: str, sequence_number: int, extension: str = "png") -> str:
    return validate_blob_key(f"{project_name}-{sequence_number}.{extension}")


def unprojected_blob_key(timestamp_ms: int, seed: Any) -> str:
    return f"generated_{timestamp_ms}_{seed}.png"


def parse_blob_key(key: str) -> Tuple[str, int]:
    """
    Split a key into (project name, sequence number).

    Keys outside the project convention give ("unknown", 0).
    """
    match = PROJECT_KEY_PATTERN.match(key)
    if not match:
        return UNKNOWN_PROJECT, 0
    return match.group("project"), int(match.group("seq"))


class BlobStore(ABC):
    """Abstract blob store."""

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/png",
        overwrite: bool = False,
    ) -> BlobInfo:
        """Store bytes under key."""

    @abstractmethod
    async def list(self, prefix: str = "") -> List[BlobInfo]:
        """List blobs whose key starts with prefix."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read a blob's bytes."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete one blob."""

    async def clear(self) -> int:
        """Delete every blob. Returns how many were deleted."""
        blobs = await self.list()
        await asyncio.gather(*(self.delete(blob.key) for blob in blobs))
        logger.info(f"Cleared {len(blobs)} blobs")
        return len(blobs)


async def next_sequence_number(store: BlobStore, project_name: str) -> int:
    """One past the highest sequence number stored for a project, or 1."""
    pattern = re.compile(rf"^{re.escape(project_name)}-(\d+)\.")
    numbers = []
    for blob in await store.list(prefix=f"{project_name}-"):
        match = pattern.match(blob.key)
        if match:
            numbers.append(int(match.group(1)))
    return max(numbers) + 1 if numbers else 1


# =============================================================================
# LOCAL DIRECTORY
# =============================================================================

_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


def content_type_for(key: str) -> str:
    return _CONTENT_TYPES.get(Path(key).suffix.lower(), "application/octet-stream")


class LocalBlobStore(BlobStore):
    """
    Blobs as files in one directory, served back by the API.

    Args:
        root: Directory holding the blobs (created if missing)
        public_base_url: URL prefix the API serves blobs under
    """

    def __init__(self, root: Path, public_base_url: str = "/api/blobs"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        validate_blob_key(key)
        path = (self.root / key).resolve()
        if path.parent != self.root.resolve():
            raise InvalidBlobKeyError(key)
        return path

    def _info(self, path: Path) -> BlobInfo:
        stat = path.stat()
        return BlobInfo(
            key=path.name,
            url=f"{self.public_base_url}/{path.name}",
            size=stat.st_size,
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_type=content_type_for(path.name),
        )

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/png",
        overwrite: bool = False,
    ) -> BlobInfo:
        path = self._path(key)

        def _write() -> BlobInfo:
            mode = "wb" if overwrite else "xb"
            try:
                with open(path, mode) as f:
                    f.write(data)
            except FileExistsError:
                raise BlobExistsError(key)
            return self._info(path)

        info = await asyncio.to_thread(_write)
        logger.info(f"Stored blob {key} ({len(data)} bytes)")
        return info

    async def list(self, prefix: str = "") -> List[BlobInfo]:
        def _scan() -> List[BlobInfo]:
            return [
                self._info(path)
                for path in sorted(self.root.iterdir())
                if path.is_file() and path.name.startswith(prefix)
            ]

        return await asyncio.to_thread(_scan)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise BlobNotFoundError(key)
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            raise BlobNotFoundError(key)
        logger.info(f"Deleted blob {key}")


# =============================================================================
# SUPABASE STORAGE
# =============================================================================

def _parse_supabase_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SupabaseBlobStore(BlobStore):
    """
    Blobs in a Supabase Storage bucket.

    The supabase client is synchronous, so every call runs in a worker thread.
    """

    LIST_PAGE_SIZE = 1000

    def __init__(self, client: Any, bucket: str):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def _to_info(self, item: dict) -> BlobInfo:
        metadata = item.get("metadata") or {}
        return BlobInfo(
            key=item["name"],
            url=self._bucket().get_public_url(item["name"]),
            size=int(metadata.get("size") or 0),
            uploaded_at=_parse_supabase_time(item.get("created_at") or item.get("updated_at")),
            content_type=metadata.get("mimetype") or "application/octet-stream",
        )

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/png",
        overwrite: bool = False,
    ) -> BlobInfo:
        validate_blob_key(key)
        if not overwrite and any(blob.key == key for blob in await self.list(prefix=key)):
            raise BlobExistsError(key)

        def _upload() -> None:
            self._bucket().upload(
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "true" if overwrite else "false"},
            )

        try:
            await asyncio.to_thread(_upload)
        except Exception as e:
            logger.error(f"Supabase upload failed for {key}: {e}")
            raise StorageError(f"Failed to upload blob '{key}'", {"reason": str(e)}) from e

        logger.info(f"Stored blob {key} in bucket {self.bucket} ({len(data)} bytes)")
        return BlobInfo(
            key=key,
            url=self._bucket().get_public_url(key),
            size=len(data),
            uploaded_at=datetime.now(timezone.utc),
            content_type=content_type,
        )

    async def list(self, prefix: str = "") -> List[BlobInfo]:
        def _list() -> list:
            options = {"limit": self.LIST_PAGE_SIZE, "offset": 0}
            if prefix:
                options["search"] = prefix
            return self._bucket().list("", options)

        try:
            items = await asyncio.to_thread(_list)
        except Exception as e:
            logger.error(f"Supabase list failed: {e}")
            raise StorageError("Failed to list blobs", {"reason": str(e)}) from e

        # search is a substring match; keep true prefix matches only
        return [
            self._to_info(item)
            for item in items
            if item.get("name") and item["name"].startswith(prefix)
        ]

    async def get(self, key: str) -> bytes:
        validate_blob_key(key)
        try:
            return await asyncio.to_thread(self._bucket().download, key)
        except Exception as e:
            raise BlobNotFoundError(key) from e

    async def delete(self, key: str) -> None:
        validate_blob_key(key)
        try:
            removed = await asyncio.to_thread(self._bucket().remove, [key])
        except Exception as e:
            logger.error(f"Supabase delete failed for {key}: {e}")
            raise StorageError(f"Failed to delete blob '{key}'", {"reason": str(e)}) from e
        if not removed:
            raise BlobNotFoundError(key)
        logger.info(f"Deleted blob {key} from bucket {self.bucket}")


def create_blob_store(settings: Settings) -> BlobStore:
    """Build the configured blob store backend."""
    if settings.blob_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise InvalidConfigError("Supabase blob backend needs SUPABASE_URL and SUPABASE_SERVICE_KEY")
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseBlobStore(client, settings.supabase_bucket)

    if settings.blob_backend == "local":
        return LocalBlobStore(Path(settings.blob_dir))

    raise InvalidConfigError(f"Unknown blob backend: {settings.blob_backend}")

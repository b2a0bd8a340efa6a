"""Local media bookkeeping: sync history, photo library sink and thumbnail cache."""

from __future__ import annotations

__all__ = [
    "DirectoryPhotoLibrary",
    "MediaRecord",
    "MediaSource",
    "MediaStatus",
    "MediaStore",
    "PhotoLibrarySink",
    "ThumbnailCache",
    "TinyDBMediaStore",
]

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from tinydb import Query, TinyDB

logger = logging.getLogger(__name__)


class MediaStatus(Enum):
    AVAILABLE = "available"  # only on the camera
    SYNCED = "synced"  # saved to the photo library
    DELETED = "deleted"  # removed by the user, never download again


class MediaSource(Enum):
    AUTO_SHARE = "auto_share"
    MOBILE_LINK = "mobile_link"


@dataclass
class MediaRecord:
    """Local metadata of one camera file, keyed by filename."""

    filename: str
    source: MediaSource = MediaSource.MOBILE_LINK
    status: MediaStatus = MediaStatus.AVAILABLE
    capture_date: float = field(default_factory=time.time)
    thumbnail_path: str | None = None
    file_size: int = 0
    is_video: bool = False
    content_url: str | None = None
    thumbnail_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "filename": self.filename,
            "source": self.source.value,
            "status": self.status.value,
            "capture_date": self.capture_date,
            "thumbnail_path": self.thumbnail_path,
            "file_size": self.file_size,
            "is_video": self.is_video,
            "content_url": self.content_url,
            "thumbnail_url": self.thumbnail_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaRecord:
        """Create from dictionary. Unknown enum values fall back to defaults."""
        try:
            source = MediaSource(data.get("source", MediaSource.MOBILE_LINK.value))
        except ValueError:
            source = MediaSource.MOBILE_LINK
        try:
            status = MediaStatus(data.get("status", MediaStatus.AVAILABLE.value))
        except ValueError:
            status = MediaStatus.AVAILABLE

        return cls(
            filename=data["filename"],
            source=source,
            status=status,
            capture_date=data.get("capture_date", 0.0),
            thumbnail_path=data.get("thumbnail_path"),
            file_size=data.get("file_size", 0),
            is_video=data.get("is_video", False),
            content_url=data.get("content_url"),
            thumbnail_url=data.get("thumbnail_url"),
        )


class MediaStore(Protocol):
    """Sync history, upsert-by-filename."""

    def get(self, filename: str) -> MediaRecord | None: ...

    def upsert(self, record: MediaRecord) -> None: ...

    def set_status(self, filename: str, status: MediaStatus) -> bool: ...

    def all(self) -> list[MediaRecord]: ...

    def reset(self) -> None: ...


class PhotoLibrarySink(Protocol):
    """Final destination of downloaded or pushed files."""

    async def save(self, data: bytes, filename: str, is_video: bool) -> None: ...


class TinyDBMediaStore:
    """TinyDB-backed media store.

    Supports context manager protocol for automatic resource cleanup:
        with TinyDBMediaStore(path) as store:
            store.upsert(record)
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize media store.

        Args:
            db_path: Database file path, defaults to media_records.json in current directory
        """
        if db_path is None:
            db_path = Path("media_records.json")

        self._db_path = db_path
        self._db = TinyDB(str(db_path))
        self._table = self._db.table("media")
        logger.info(f"Media database initialized: {db_path}")

    def __enter__(self) -> TinyDBMediaStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get(self, filename: str) -> MediaRecord | None:
        query = Query()
        result = self._table.search(query.filename == filename)
        if not result:
            return None
        return MediaRecord.from_dict(result[0])

    def upsert(self, record: MediaRecord) -> None:
        query = Query()
        self._table.upsert(record.to_dict(), query.filename == record.filename)
        logger.debug(f"Saved media record {record.filename} ({record.status.value})")

    def set_status(self, filename: str, status: MediaStatus) -> bool:
        """Update the status of an existing record.

        Returns:
            False if no record exists for ``filename``
        """
        query = Query()
        updated = self._table.update({"status": status.value}, query.filename == filename)
        return bool(updated)

    def all(self) -> list[MediaRecord]:
        return [MediaRecord.from_dict(record) for record in self._table.all()]

    def reset(self) -> None:
        """Clear all sync history."""
        self._table.truncate()
        logger.info("Media sync history cleared")

    def close(self) -> None:
        """Close database connection."""
        if self._db is not None:
            self._db.close()
            self._db = None
            logger.debug("Media database closed")


class DirectoryPhotoLibrary:
    """Photo library that writes files into a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        # Camera paths are flattened, only the base name is kept
        return self.directory / Path(filename).name

    async def save(self, data: bytes, filename: str, is_video: bool) -> None:
        """Write the file.

        Raises:
            OSError: File could not be written
        """
        path = self.path_for(filename)
        await asyncio.to_thread(path.write_bytes, data)
        kind = "video" if is_video else "photo"
        logger.info(f"💾 Saved {kind} {path.name} ({len(data)} bytes)")


class ThumbnailCache:
    """Thumbnail bytes stored by filename under a cache directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.directory / Path(name).name

    def save(self, data: bytes, filename: str) -> str | None:
        """Store thumbnail bytes.

        Returns:
            Cache-relative name, or None if the write failed
        """
        path = self.path_for(filename)
        try:
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to save thumbnail for {filename}: {e}")
            return None
        return path.name

    def load(self, name: str) -> bytes | None:
        try:
            return self.path_for(name).read_bytes()
        except OSError:
            return None

    def delete(self, name: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.path_for(name).unlink()

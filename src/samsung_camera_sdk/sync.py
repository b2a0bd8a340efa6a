"""Synchronization of camera files into the local photo library."""

from __future__ import annotations

__all__ = ["Downloader", "SyncManager", "SyncProgressCallback", "SyncReport"]

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from .exceptions import CustomCameraError
from .media_store import MediaRecord, MediaSource, MediaStatus, MediaStore, PhotoLibrarySink, ThumbnailCache
from .models import CameraFile, ReceivedPhoto

logger = logging.getLogger(__name__)

Downloader = Callable[[str], Awaitable[bytes]]
SyncProgressCallback = Callable[[int, int, str], None]


@dataclass
class SyncReport:
    """Aggregate outcome of one sync pass.

    Attributes:
        total: New files considered (already synced/deleted files excluded)
        synced: Files saved and marked synced
        skipped: Files without a content URL
        failed: Files whose download or save failed
        errors: One message per failure
    """

    total: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.synced == self.total

    def summary(self) -> str:
        if self.total == 0:
            return "Everything is synced"
        text = f"{self.synced}/{self.total} synced"
        if self.skipped:
            text += f", {self.skipped} skipped"
        if self.failed:
            text += f", {self.failed} failed"
        return text


class SyncManager:
    """Download new camera files, save them, and remember what was saved."""

    def __init__(
        self,
        store: MediaStore,
        library: PhotoLibrarySink,
        thumbnails: ThumbnailCache | None = None,
    ) -> None:
        self._store = store
        self._library = library
        self._thumbnails = thumbnails
        self._is_syncing = False

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    def is_synced_or_deleted(self, filename: str) -> bool:
        record = self._store.get(filename)
        return record is not None and record.status in (MediaStatus.SYNCED, MediaStatus.DELETED)

    def is_synced(self, filename: str) -> bool:
        record = self._store.get(filename)
        return record is not None and record.status is MediaStatus.SYNCED

    def find_new_files(self, files: Iterable[CameraFile]) -> list[CameraFile]:
        """Files never synced and never deleted by the user."""
        return [file for file in files if not self.is_synced_or_deleted(file.filename)]

    async def sync_files(
        self,
        files: Iterable[CameraFile],
        downloader: Downloader,
        progress_callback: SyncProgressCallback | None = None,
    ) -> SyncReport:
        """Download and save every new file.

        A failed file is counted and the batch continues.

        Args:
            files: Camera listing
            downloader: Fetches a content URL
            progress_callback: Called with (done, total, filename) after each file

        Returns:
            Sync report
        """
        new_files = self.find_new_files(files)
        report = SyncReport(total=len(new_files))

        if not new_files:
            logger.info("No new files to sync")
            return report

        logger.info(f"Starting sync of {len(new_files)} new files")
        self._is_syncing = True
        try:
            for done, file in enumerate(new_files, start=1):
                if not file.content_url:
                    logger.warning(f"Skipping {file.filename}: no content URL")
                    report.skipped += 1
                else:
                    try:
                        data = await downloader(file.content_url)
                        await self._library.save(data, file.filename, file.is_video)
                    except (CustomCameraError, OSError) as e:
                        logger.error(f"❌ Failed to sync {file.filename}: {e}")
                        report.failed += 1
                        report.errors.append(f"{file.filename}: {e}")
                    else:
                        self._mark_synced(file)
                        report.synced += 1
                        logger.info(f"Synced {file.filename} ({report.synced}/{report.total})")

                if progress_callback is not None:
                    progress_callback(done, report.total, file.filename)
        finally:
            self._is_syncing = False

        logger.info(f"Sync complete: {report.summary()}")
        return report

    def _mark_synced(self, file: CameraFile) -> None:
        if self._store.set_status(file.filename, MediaStatus.SYNCED):
            return

        thumbnail_path = None
        if file.thumbnail and self._thumbnails is not None:
            thumbnail_path = self._thumbnails.save(file.thumbnail, file.filename)

        capture = file.parsed_date
        self._store.upsert(
            MediaRecord(
                filename=file.filename,
                source=MediaSource.MOBILE_LINK,
                status=MediaStatus.SYNCED,
                capture_date=capture.timestamp() if capture else time.time(),
                thumbnail_path=thumbnail_path,
                file_size=file.size,
                is_video=file.is_video,
                content_url=file.content_url,
                thumbnail_url=file.thumbnail_url,
            )
        )

    async def save_auto_share_photo(self, photo: ReceivedPhoto) -> bool:
        """Save a pushed photo unless it was already synced or deleted.

        Returns:
            True if the photo was saved

        Raises:
            OSError: Photo library write failed
        """
        if self.is_synced_or_deleted(photo.filename):
            logger.info(f"AutoShare: {photo.filename} already synced or deleted, skipping")
            return False

        await self._library.save(photo.data, photo.filename, photo.is_video)

        record = self._store.get(photo.filename)
        if record is None:
            record = MediaRecord(
                filename=photo.filename,
                source=MediaSource.AUTO_SHARE,
                capture_date=photo.received_at,
                file_size=photo.size,
                is_video=photo.is_video,
            )
        record.status = MediaStatus.SYNCED
        # The pushed image doubles as its own thumbnail
        if record.thumbnail_path is None and self._thumbnails is not None and not photo.is_video:
            record.thumbnail_path = self._thumbnails.save(photo.data, photo.filename)
        self._store.upsert(record)

        logger.info(f"✅ AutoShare: saved {photo.filename}")
        return True

    def mark_deleted(self, filename: str) -> None:
        """Remember that the user removed a file so it is never downloaded again."""
        if not self._store.set_status(filename, MediaStatus.DELETED):
            self._store.upsert(MediaRecord(filename=filename, status=MediaStatus.DELETED))

    def reset_history(self) -> None:
        self._store.reset()

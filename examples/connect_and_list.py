"""Basic example: Connect to a camera in MobileLink mode and sync its files.

This example demonstrates:
- Detecting the camera network and mode
- Listing files over DLNA
- Syncing new files into a local directory (history kept in TinyDB)

Prerequisites:
    Start "MobileLink" on the camera and join its AP_SSC_... Wi-Fi network.

Usage:
    python connect_and_list.py ./photos
"""

import argparse
import asyncio
import logging
from pathlib import Path

from samsung_camera_sdk import (
    CameraConnectionManager,
    CameraProfileManager,
    DirectoryPhotoLibrary,
    SyncManager,
    ThumbnailCache,
    TinyDBMediaStore,
    console,
    setup_logging,
)
from samsung_camera_sdk.rich_utils import files_table

# Enable logging with rich formatting
setup_logging(level=logging.INFO)

logger = logging.getLogger(__name__)


async def async_main(target: Path):
    """Connect, list and sync."""
    with TinyDBMediaStore(target / "media_records.json") as store, CameraProfileManager(
        target / "camera_profiles.json"
    ) as profiles:
        sync = SyncManager(store, DirectoryPhotoLibrary(target), ThumbnailCache(target / ".thumbnails"))

        async with CameraConnectionManager(sync_manager=sync, profile_manager=profiles) as manager:
            manager.subscribe(lambda status: logger.info(f"Status: {status.display_text}"))
            status = await manager.connect()

            if not status.is_connected:
                logger.error(f"Could not connect: {status.display_text}")
                return

            console.print(files_table(manager.files))
            if manager.last_sync_report is not None:
                logger.info(manager.last_sync_report.summary())


def main():
    """Connect to a Samsung camera and sync its files."""
    parser = argparse.ArgumentParser(description="Connect to a Samsung camera and sync its files")
    parser.add_argument("target", type=Path, help="Directory that receives the files")
    args = parser.parse_args()

    args.target.mkdir(parents=True, exist_ok=True)
    asyncio.run(async_main(args.target))


if __name__ == "__main__":
    main()

"""AutoShare example: Receive photos pushed by the camera.

This example demonstrates:
- Running the S2L server directly, without detection
- Handling pushed photos as they arrive
- Stopping cleanly (the camera receives ByeBye)

Prerequisites:
    Enable AutoShare on the camera and join its Wi-Fi network. This host
    registers with the camera on TCP port 801, and the camera must be able to
    reach this host on TCP port 1801.

Usage:
    python autoshare_receiver.py 192.168.103.1 192.168.103.2 ./photos
"""

import argparse
import asyncio
import logging
from pathlib import Path

from samsung_camera_sdk import AutoShareServer, DirectoryPhotoLibrary, ReceivedPhoto, setup_logging

setup_logging(level=logging.INFO)

logger = logging.getLogger(__name__)


async def async_main(camera_ip: str, local_ip: str, target: Path, duration: float):
    library = DirectoryPhotoLibrary(target)

    async def on_photo(photo: ReceivedPhoto) -> None:
        await library.save(photo.data, photo.filename, photo.is_video)

    async with AutoShareServer(on_photo) as server:
        await server.start(camera_ip, local_ip)
        if not server.is_registered:
            logger.warning("Camera did not accept the registration, waiting anyway...")

        logger.info(f"Listening on port {server.bound_port} for {duration:.0f}s, take some photos!")
        await asyncio.sleep(duration)
        logger.info(f"Received {server.photos_received} files")


def main():
    parser = argparse.ArgumentParser(description="Receive photos pushed by a Samsung camera (AutoShare)")
    parser.add_argument("camera_ip", help="Camera IP address, e.g. 192.168.103.1")
    parser.add_argument("local_ip", help="This host's address on the camera network")
    parser.add_argument("target", type=Path, help="Directory that receives the files")
    parser.add_argument("--duration", type=float, default=120.0, help="Seconds to keep listening")
    args = parser.parse_args()

    asyncio.run(async_main(args.camera_ip, args.local_ip, args.target, args.duration))


if __name__ == "__main__":
    main()

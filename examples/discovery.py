"""Discovery example: Sweep a camera for open services.

Useful when a new camera model answers on unexpected ports. Also tries a PTP/IP
session and prints the camera's file list when PTP is available.

Usage:
    python discovery.py 192.168.101.1
"""

import argparse
import asyncio
import logging

from samsung_camera_sdk import CameraConnectionManager, console, setup_logging
from samsung_camera_sdk.exceptions import PtpError
from samsung_camera_sdk.rich_utils import files_table, services_table

setup_logging(level=logging.INFO)

logger = logging.getLogger(__name__)


async def async_main(ip: str):
    async with CameraConnectionManager() as manager:
        services = await manager.aggressive_discovery(ip)
        console.print(services_table(services, ip))

        if not any(service.port == 15740 for service in services):
            return

        try:
            client = await manager.connect_ptp(ip)
        except PtpError as e:
            logger.warning(f"PTP/IP session failed: {e}")
            return

        info = client.device_info
        logger.info(f"PTP camera: {info.manufacturer} {info.model} ({info.device_version})")
        console.print(files_table(await client.list_files(include_thumbnails=False), "PTP objects"))


def main():
    parser = argparse.ArgumentParser(description="Sweep a Samsung camera for open services")
    parser.add_argument("ip", nargs="?", default="192.168.101.1", help="Camera IP address")
    args = parser.parse_args()

    asyncio.run(async_main(args.ip))


if __name__ == "__main__":
    main()

"""Hardware tests - require a real camera.

Join the camera's Wi-Fi network first (AP_SSC_... for MobileLink, AutoShare SSID
for push mode), then run:

    pytest -m hardware
"""

import asyncio
import logging

import pytest

from samsung_camera_sdk import CameraConnectionManager, DlnaClient, PtpIpClient
from samsung_camera_sdk.exceptions import PtpError

from conftest import TEST_CAMERA_IP

logger = logging.getLogger(__name__)


@pytest.mark.hardware
async def test_dlna_connection():
    """Test MobileLink connection.

    Validates:
    1. Device description is found and parsed
    2. Files can be listed
    3. Heartbeat keeps running while connected
    """
    async with DlnaClient(TEST_CAMERA_IP) as client:
        assert client.is_connected, "DLNA should be connected"
        assert client.camera_info is not None
        logger.info(f"📷 {client.camera_info.friendly_name} ({client.camera_info.model_name})")

        files = await client.list_files()
        logger.info(f"📁 {len(files)} files on camera")
        assert isinstance(files, list)

        await asyncio.sleep(2)
        assert client.heartbeat_running, "Heartbeat should remain active"

    assert not client.is_connected


@pytest.mark.hardware
async def test_ptp_session():
    """Test PTP/IP session on cameras that expose port 15740."""
    client = PtpIpClient(TEST_CAMERA_IP)
    try:
        await client.connect()
    except PtpError as e:
        pytest.skip(f"PTP/IP not available: {e}")

    try:
        assert client.device_info is not None
        logger.info(f"📷 {client.device_info.manufacturer} {client.device_info.model}")
        storage_ids = await client.get_storage_ids()
        assert isinstance(storage_ids, list)
    finally:
        await client.disconnect()


@pytest.mark.hardware
async def test_detect_and_connect():
    """Test end-to-end detection and connection."""
    statuses = []
    async with CameraConnectionManager() as manager:
        manager.subscribe(statuses.append)
        status = await manager.connect()
        logger.info(f"🔌 {status.display_text} ({manager.detected_mode.value})")

    assert statuses, "Status callbacks should fire"

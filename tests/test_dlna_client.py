"""DLNA (MobileLink) client tests against an aiohttp fake camera."""

import asyncio
from dataclasses import replace

import aiohttp
import pytest

from samsung_camera_sdk.connection import DlnaClient
from samsung_camera_sdk.exceptions import DlnaConnectionError, DlnaResponseError
from samsung_camera_sdk.protocol.ptp_types import ObjectFormat

from conftest import didl_container, didl_item, free_port


@pytest.fixture
async def client(dlna_camera, fast_timeouts):
    client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts, device_name="pytest")
    await client.connect()
    try:
        yield client
    finally:
        await client.disconnect()


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_sequence(self, client, dlna_camera):
        assert client.is_connected
        assert client.camera_info.friendly_name == "[Camera]DV150F"
        assert client.control_path == "/smp_4_"
        assert client.capabilities.available_shots == 812
        assert client.heartbeat_running
        assert dlna_camera.action_names == ["GetInformation", "X_SetClientInfo"]

    @pytest.mark.asyncio
    async def test_registration_carries_device_identity(self, client, dlna_camera):
        _, body = dlna_camera.actions[1]

        assert "<DeviceName>pytest</DeviceName>" in body
        assert "<DeviceID>" in body

    @pytest.mark.asyncio
    async def test_registration_falls_back(self, dlna_camera, fast_timeouts):
        dlna_camera.failing_actions = {"X_SetClientInfo": 500}
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts)

        async with client:
            assert dlna_camera.action_names == ["GetInformation", "X_SetClientInfo", "SetClientInfo"]

    @pytest.mark.asyncio
    async def test_registration_failure_is_not_fatal(self, dlna_camera, fast_timeouts):
        dlna_camera.failing_actions = {"X_SetClientInfo": 500, "SetClientInfo": 501, "X_SamsungSetClientInfo": 404}
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts)

        async with client:
            assert client.is_connected
            assert await client.register_client() is None

    @pytest.mark.asyncio
    async def test_capabilities_failure_is_not_fatal(self, dlna_camera, fast_timeouts):
        dlna_camera.failing_actions = {"GetInformation": 500}
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts)

        async with client:
            assert client.is_connected
            assert client.capabilities is None
            assert client.get_stream_urls() == (
                "http://127.0.0.1:7679/livestream.avi",
                "http://127.0.0.1:7679/qvga_livestream.avi",
            )

    @pytest.mark.asyncio
    async def test_missing_descriptor(self, dlna_camera, fast_timeouts):
        dlna_camera.description = None
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts)

        with pytest.raises(DlnaConnectionError):
            await client.connect()

        assert not client.is_connected
        assert not client.heartbeat_running
        assert dlna_camera.actions == []

    @pytest.mark.asyncio
    async def test_nothing_listening(self, fast_timeouts):
        client = DlnaClient("127.0.0.1", free_port(), timeout_config=fast_timeouts)

        with pytest.raises(DlnaConnectionError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_malformed_description_uses_defaults(self, dlna_camera, fast_timeouts):
        dlna_camera.description = "<root><device>"
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts)

        async with client:
            assert client.camera_info.friendly_name == "Samsung Camera"
            assert client.control_path == "/smp_4_"

    @pytest.mark.asyncio
    async def test_external_session_left_open(self, dlna_camera, fast_timeouts):
        async with aiohttp.ClientSession() as session:
            client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=fast_timeouts, session=session)
            await client.connect()
            await client.disconnect()

            assert not session.closed

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, client):
        await client.disconnect()
        await client.disconnect()

        assert not client.is_connected
        assert not client.heartbeat_running

    @pytest.mark.asyncio
    async def test_calls_after_disconnect_fail(self, client):
        await client.disconnect()

        with pytest.raises(DlnaConnectionError):
            await client.browse("0")
        with pytest.raises(DlnaConnectionError):
            await client.download("/media/1")
        assert client._session is None

    @pytest.mark.asyncio
    async def test_reconnect_after_disconnect(self, client):
        await client.disconnect()
        await client.connect()

        assert client.is_connected
        assert await client.browse("0")

    @pytest.mark.asyncio
    async def test_heartbeat_browses_root(self, dlna_camera, fast_timeouts):
        client = DlnaClient(
            "127.0.0.1", dlna_camera.port, timeout_config=replace(fast_timeouts, dlna_heartbeat_interval=0.05)
        )
        async with client:
            await asyncio.sleep(0.3)

        browses = [body for name, body in dlna_camera.actions if name == "Browse"]
        assert browses
        assert "<ObjectID>0</ObjectID>" in browses[0]
        assert "<RequestedCount>1</RequestedCount>" in browses[0]


class TestBrowse:
    @pytest.mark.asyncio
    async def test_browse_direct_children(self, client):
        items = await client.browse("100PHOTO")

        assert [item.title for item in items] == ["SAM_0001.JPG", "SAM_0002.JPG"]

    @pytest.mark.asyncio
    async def test_browse_error_status(self, client, dlna_camera):
        dlna_camera.failing_containers.add("100PHOTO")

        with pytest.raises(DlnaResponseError) as exc_info:
            await client.browse("100PHOTO")

        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_browse_all_recurses(self, client):
        items = await client.browse_all()

        assert [item.title for item in items] == ["SAM_0003.MP4", "SAM_0001.JPG", "SAM_0002.JPG"]

    @pytest.mark.asyncio
    async def test_cycle_browsed_once(self, client, dlna_camera):
        dlna_camera.tree = {
            "0": [didl_container("A")],
            "A": [didl_container("B"), didl_container("0")],
            "B": [didl_container("A"), didl_item("i", "SAM_0009.JPG", "/media/x", 1)],
        }

        items = await client.browse_all()

        assert [item.title for item in items] == ["SAM_0009.JPG"]
        browsed = [body for name, body in dlna_camera.actions if name == "Browse"]
        assert len(browsed) == 3

    @pytest.mark.asyncio
    async def test_depth_bound(self, dlna_camera, fast_timeouts):
        client = DlnaClient("127.0.0.1", dlna_camera.port, timeout_config=replace(fast_timeouts, max_browse_depth=1))
        async with client:
            items = await client.browse_all()

        assert [item.title for item in items] == ["SAM_0003.MP4"]

    @pytest.mark.asyncio
    async def test_failing_container_keeps_siblings(self, client, dlna_camera):
        dlna_camera.tree["0"] = [didl_container("BROKEN"), didl_container("DCIM")]
        dlna_camera.failing_containers.add("BROKEN")

        items = await client.browse_all()

        assert len(items) == 3

    @pytest.mark.asyncio
    async def test_list_files(self, client):
        files = await client.list_files()

        assert [f.handle for f in files] == [0, 1, 2]
        video, first, second = files
        assert video.format is ObjectFormat.MP4
        assert first.format is ObjectFormat.JPEG
        assert second.size == 8192
        assert first.content_url == "/media/SAM_0001.JPG"
        assert first.parsed_date is not None


class TestActions:
    @pytest.mark.asyncio
    async def test_download(self, client):
        assert await client.download("/media/SAM_0002.JPG") == b"two"

    @pytest.mark.asyncio
    async def test_download_absolute_url(self, client, dlna_camera):
        url = f"http://127.0.0.1:{dlna_camera.port}/media/SAM_0001.JPG"
        assert await client.download(url) == b"one"

    @pytest.mark.asyncio
    async def test_download_missing(self, client):
        with pytest.raises(DlnaResponseError) as exc_info:
            await client.download("/media/NOPE.JPG")

        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_capture_photo(self, client, dlna_camera):
        await client.capture_photo()

        assert dlna_camera.action_names[-1] == "X_CaptureImage"

    @pytest.mark.asyncio
    async def test_initialize_session(self, client, dlna_camera):
        await client.initialize_session()

        assert dlna_camera.action_names[-1] == "GetDeviceConfiguration"

    @pytest.mark.asyncio
    async def test_stream_urls_from_capabilities(self, client):
        assert client.get_stream_urls() == (
            "http://camera/livestream.avi",
            "http://camera/qvga_livestream.avi",
        )

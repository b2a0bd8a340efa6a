"""Pytest configuration and common fixtures.

Fake cameras run on the loopback interface:
- FakePtpCamera: PTP/IP responder on an ephemeral port (asyncio.start_server)
- FakeDlnaCamera: Samsung DLNA dialect (aiohttp.web TestServer)
"""

from __future__ import annotations

import asyncio
import socket
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from samsung_camera_sdk.config import TimeoutConfig
from samsung_camera_sdk.protocol.ptp_codec import (
    HEADER_SIZE,
    OperationRequestPayload,
    PtpWriter,
    decode_packet,
    encode_packet,
)
from samsung_camera_sdk.protocol.ptp_types import ObjectFormat, OperationCode, PacketType, ResponseCode

# Test camera (modify according to actual situation)
TEST_CAMERA_IP = "192.168.101.1"


# ==================== Timeouts ====================


@pytest.fixture
def fast_timeouts() -> TimeoutConfig:
    """Timeouts shrunk so failure paths finish quickly."""
    return TimeoutConfig(
        ptp_step_timeout=2.0,
        ptp_receive_timeout=2.0,
        probe_timeout=0.5,
        network_found_settle_delay=0.0,
        discovery_http_timeout=1.0,
        dlna_request_timeout=2.0,
        dlna_heartbeat_interval=30.0,
        dlna_browse_throttle=0.0,
        dlna_session_settle_delay=0.0,
        s2l_handshake_timeout=0.5,
        s2l_handshake_attempts=3,
        s2l_retry_after_timeout=0.01,
        s2l_retry_after_error=0.01,
        s2l_bind_retry_interval=0.05,
        s2l_listener_grace=0.5,
    )


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class MemoryLibrary:
    """Photo library that keeps saved files in a dict."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.saved: dict[str, bytes] = {}
        self.fail_on = fail_on or set()

    async def save(self, data: bytes, filename: str, is_video: bool) -> None:
        if filename in self.fail_on:
            raise OSError("No space left on device")
        self.saved[filename] = data


# ==================== PTP/IP packet builders ====================


def operation_response(code: int, transaction_id: int, *params: int) -> bytes:
    writer = PtpWriter().write_uint16(code).write_uint32(transaction_id)
    for param in params:
        writer.write_uint32(param)
    return encode_packet(PacketType.OPERATION_RESPONSE, writer.data)


def start_data(transaction_id: int, total_length: int) -> bytes:
    return encode_packet(
        PacketType.START_DATA_PACKET, PtpWriter().write_uint32(transaction_id).write_uint64(total_length).data
    )


def data_packet(transaction_id: int, chunk: bytes) -> bytes:
    return encode_packet(PacketType.DATA_PACKET, PtpWriter().write_uint32(transaction_id).write_bytes(chunk).data)


def end_data(transaction_id: int, chunk: bytes) -> bytes:
    return encode_packet(PacketType.END_DATA_PACKET, PtpWriter().write_uint32(transaction_id).write_bytes(chunk).data)


def data_in_reply(transaction_id: int, data: bytes) -> list[bytes]:
    """Start + End + OK: the usual single-chunk data phase."""
    return [start_data(transaction_id, len(data)), end_data(transaction_id, data), operation_response(ResponseCode.OK, transaction_id)]


def uint32_array(values: list[int]) -> bytes:
    writer = PtpWriter().write_uint32(len(values))
    for value in values:
        writer.write_uint32(value)
    return writer.data


def uint16_array(values: list[int]) -> bytes:
    writer = PtpWriter().write_uint32(len(values))
    for value in values:
        writer.write_uint16(value)
    return writer.data


def device_info_dataset(manufacturer: str = "Samsung", model: str = "DV150F") -> bytes:
    return (
        PtpWriter()
        .write_uint16(100)
        .write_uint32(6)
        .write_uint16(100)
        .write_string("samsung.com: 1.0")
        .write_uint16(0)
        .write_bytes(uint16_array([int(op) for op in OperationCode if op < 0x9000]))
        .write_bytes(uint16_array([0x4002]))
        .write_bytes(uint16_array([]))
        .write_bytes(uint16_array([ObjectFormat.JPEG]))
        .write_bytes(uint16_array([ObjectFormat.JPEG, ObjectFormat.AVI]))
        .write_string(manufacturer)
        .write_string(model)
        .write_string("1.0")
        .write_string("SN0001")
        .data
    )


def object_info_dataset(
    filename: str,
    object_format: int = ObjectFormat.JPEG,
    size: int = 1024,
    width: int = 4320,
    height: int = 3240,
    capture_date: str = "20240131T142501",
) -> bytes:
    return (
        PtpWriter()
        .write_uint32(0x00010001)
        .write_uint16(object_format)
        .write_uint16(0)
        .write_uint32(size)
        .write_uint16(ObjectFormat.JPEG)
        .write_uint32(512)
        .write_uint32(160)
        .write_uint32(120)
        .write_uint32(width)
        .write_uint32(height)
        .write_uint32(24)
        .write_uint32(0)
        .write_uint16(0)
        .write_uint32(0)
        .write_uint32(0)
        .write_string(filename)
        .write_string(capture_date)
        .write_string(capture_date)
        .write_string("")
        .data
    )


# ==================== Fake PTP/IP camera ====================


@dataclass
class FakeObject:
    filename: str
    data: bytes
    object_format: int = ObjectFormat.JPEG
    thumbnail: bytes = b"thumb"


ReplyHandler = Callable[[int, tuple[int, ...]], list[bytes]]


@dataclass
class FakePtpCamera:
    """Minimal PTP/IP responder.

    ``handlers`` override the reply for an operation code; ``requests`` records
    every (code, transaction_id, params) received on the command connection.
    """

    objects: dict[int, FakeObject] = field(default_factory=dict)
    storage_ids: list[int] = field(default_factory=lambda: [0x00010001])
    handlers: dict[int, ReplyHandler] = field(default_factory=dict)
    refuse_init: bool = False
    requests: list[tuple[int, int, tuple[int, ...]]] = field(default_factory=list)
    connections: int = 0
    port: int = 0
    _server: asyncio.Server | None = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _read_packet(self, reader: asyncio.StreamReader):
        header = await reader.readexactly(4)
        length = int.from_bytes(header, "little")
        rest = await reader.readexactly(length - 4)
        return decode_packet(header + rest)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        try:
            while True:
                packet = await self._read_packet(reader)
                for reply in self._reply(packet):
                    writer.write(reply)
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    def _reply(self, packet) -> list[bytes]:
        if packet.type is PacketType.INIT_COMMAND_REQUEST:
            if self.refuse_init:
                return [encode_packet(PacketType.INIT_FAIL, PtpWriter().write_uint32(1).data)]
            payload = PtpWriter().write_uint32(7).write_bytes(b"\x11" * 16).write_string("DV150F").write_uint32(1).data
            return [encode_packet(PacketType.INIT_COMMAND_ACK, payload)]
        if packet.type is PacketType.INIT_EVENT_REQUEST:
            return [encode_packet(PacketType.INIT_EVENT_ACK)]
        if packet.type is PacketType.OPERATION_REQUEST:
            request = OperationRequestPayload.parse(packet.payload)
            params = tuple(request.params)
            self.requests.append((request.code, request.transaction_id, params))
            handler = self.handlers.get(request.code)
            if handler is not None:
                return handler(request.transaction_id, params)
            return self._default_reply(request.code, request.transaction_id, params)
        return []

    def _default_reply(self, code: int, txn: int, params: tuple[int, ...]) -> list[bytes]:
        match code:
            case OperationCode.OPEN_SESSION | OperationCode.CLOSE_SESSION | OperationCode.INITIATE_CAPTURE:
                return [operation_response(ResponseCode.OK, txn)]
            case OperationCode.GET_DEVICE_INFO:
                return data_in_reply(txn, device_info_dataset())
            case OperationCode.GET_STORAGE_IDS:
                return data_in_reply(txn, uint32_array(self.storage_ids))
            case OperationCode.GET_OBJECT_HANDLES:
                return data_in_reply(txn, uint32_array(list(self.objects)))
            case OperationCode.GET_OBJECT_INFO:
                obj = self.objects.get(params[0])
                if obj is None:
                    return [operation_response(ResponseCode.INVALID_OBJECT_HANDLE, txn)]
                info = object_info_dataset(obj.filename, obj.object_format, len(obj.data))
                return data_in_reply(txn, info)
            case OperationCode.GET_OBJECT:
                obj = self.objects.get(params[0])
                if obj is None:
                    return [operation_response(ResponseCode.INVALID_OBJECT_HANDLE, txn)]
                return data_in_reply(txn, obj.data)
            case OperationCode.GET_THUMB:
                obj = self.objects.get(params[0])
                if obj is None or not obj.thumbnail:
                    return [operation_response(ResponseCode.NO_THUMBNAIL_PRESENT, txn)]
                return data_in_reply(txn, obj.thumbnail)
        return [operation_response(ResponseCode.OPERATION_NOT_SUPPORTED, txn)]


@pytest.fixture
async def ptp_camera() -> AsyncGenerator[FakePtpCamera, None]:
    camera = FakePtpCamera(
        objects={
            1: FakeObject("SAM_0001.JPG", b"\xff\xd8" + b"a" * 100),
            2: FakeObject("SAM_0002.JPG", b"\xff\xd8" + b"b" * 200),
            3: FakeObject("MISC.TXT", b"text", object_format=ObjectFormat.TEXT),
        }
    )
    await camera.start()
    try:
        yield camera
    finally:
        await camera.stop()


# ==================== Fake DLNA camera ====================

DEVICE_DESCRIPTION = """<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <device>
    <deviceType>urn:schemas-upnp-org:device:MediaServer:1</deviceType>
    <friendlyName>[Camera]DV150F</friendlyName>
    <manufacturer>Samsung Electronics</manufacturer>
    <modelName>DV150F</modelName>
    <modelNumber>1.0</modelNumber>
    <serialNumber>SN0001</serialNumber>
    <UDN>uuid:00000000-0000-0000-0000-000000000001</UDN>
    <serviceList>
      <service>
        <serviceType>urn:schemas-upnp-org:service:ContentDirectory:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:ContentDirectory</serviceId>
        <SCPDURL>/smp_5_</SCPDURL>
        <controlURL>/smp_4_</controlURL>
        <eventSubURL>/smp_3_</eventSubURL>
      </service>
    </serviceList>
  </device>
</root>
"""

INFORMATION_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/">
  <s:Body>
    <u:GetInformationResponse xmlns:u="urn:schemas-upnp-org:service:ContentDirectory:1">
      <Resolutions>
        <Resolution><Width>4320</Width><Height>3240</Height></Resolution>
        <Resolution><Width>1024</Width><Height>768</Height></Resolution>
      </Resolutions>
      <FlashModes><Support>off</Support><Support>auto</Support></FlashModes>
      <Defaultflash>off</Defaultflash>
      <MaxZoom>5</MaxZoom>
      <AVAILSHOTS>812</AVAILSHOTS>
      <QualityHighUrl>http://camera/livestream.avi</QualityHighUrl>
      <QualityLowUrl>http://camera/qvga_livestream.avi</QualityLowUrl>
    </u:GetInformationResponse>
  </s:Body>
</s:Envelope>
"""


def didl_item(item_id: str, title: str, url: str, size: int, mime: str = "image/jpeg") -> str:
    return (
        f'<item id="{item_id}" parentID="0" restricted="1">'
        f"<dc:title>{title}</dc:title>"
        "<dc:date>2024-01-31T14:25:01</dc:date>"
        f'<res protocolInfo="http-get:*:{mime}:*" size="{size}">{url}</res>'
        "</item>"
    )


def didl_container(container_id: str) -> str:
    return f'<container id="{container_id}" parentID="0" restricted="1"><dc:title>{container_id}</dc:title></container>'


def browse_response(entries: list[str]) -> str:
    didl = (
        '<DIDL-Lite xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/">' + "".join(entries) + "</DIDL-Lite>"
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"><s:Body>'
        '<u:BrowseResponse xmlns:u="urn:schemas-upnp-org:service:ContentDirectory:1">'
        f"<Result>{escape(didl)}</Result><NumberReturned>{len(entries)}</NumberReturned>"
        "</u:BrowseResponse></s:Body></s:Envelope>"
    )


@dataclass
class FakeDlnaCamera:
    """Samsung MobileLink HTTP endpoints.

    ``tree`` maps a container id to its DIDL entries; ``media`` maps a path to
    file bytes; ``actions`` records (SOAPAction, body) in arrival order.
    """

    tree: dict[str, list[str]] = field(default_factory=dict)
    media: dict[str, bytes] = field(default_factory=dict)
    failing_actions: dict[str, int] = field(default_factory=dict)
    failing_containers: set[str] = field(default_factory=set)
    description: str | None = DEVICE_DESCRIPTION
    actions: list[tuple[str, str]] = field(default_factory=list)
    server: TestServer | None = None

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def action_names(self) -> list[str]:
        return [name for name, _ in self.actions]

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/smp_6_", self._description)
        app.router.add_get("/smp_5_", self._scpd)
        app.router.add_post("/smp_4_", self._control)
        app.router.add_post("/smp_11_", self._control)
        app.router.add_get("/media/{name}", self._media)
        return app

    async def start(self) -> None:
        self.server = TestServer(self.make_app(), host="127.0.0.1")
        await self.server.start_server()

    async def stop(self) -> None:
        if self.server is not None:
            await self.server.close()

    async def _description(self, request: web.Request) -> web.Response:
        if self.description is None:
            return web.Response(status=404, text="not found")
        return web.Response(text=self.description, content_type="text/xml")

    async def _scpd(self, request: web.Request) -> web.Response:
        return web.Response(text="<scpd><actionList/></scpd>", content_type="text/xml")

    async def _media(self, request: web.Request) -> web.Response:
        data = self.media.get(request.match_info["name"])
        if data is None:
            return web.Response(status=404)
        return web.Response(body=data, content_type="image/jpeg")

    async def _control(self, request: web.Request) -> web.Response:
        action = request.headers.get("SOAPAction", "").strip('"').rsplit("#", 1)[-1]
        body = await request.text()
        self.actions.append((action, body))

        if action in self.failing_actions:
            return web.Response(status=self.failing_actions[action], text="error")

        if action == "GetInformation":
            return web.Response(text=INFORMATION_RESPONSE, content_type="text/xml")
        if action == "Browse":
            object_id = body.split("<ObjectID>", 1)[1].split("</ObjectID>", 1)[0]
            if object_id in self.failing_containers:
                return web.Response(status=500, text="error")
            return web.Response(text=browse_response(self.tree.get(object_id, [])), content_type="text/xml")
        return web.Response(text="<ok/>", content_type="text/xml")


@pytest.fixture
async def dlna_camera() -> AsyncGenerator[FakeDlnaCamera, None]:
    camera = FakeDlnaCamera(
        tree={
            "0": [didl_container("DCIM")],
            "DCIM": [didl_container("100PHOTO"), didl_item("v1", "SAM_0003.MP4", "/media/SAM_0003.MP4", 4096, "video/mp4")],
            "100PHOTO": [
                didl_item("p1", "SAM_0001.JPG", "/media/SAM_0001.JPG", 2048),
                didl_item("p2", "SAM_0002.JPG", "/media/SAM_0002.JPG", 8192),
            ],
        },
        media={"SAM_0001.JPG": b"one", "SAM_0002.JPG": b"two", "SAM_0003.MP4": b"three"},
    )
    await camera.start()
    try:
        yield camera
    finally:
        await camera.stop()

"""PTP/IP transaction client.

Owns one command connection and one event connection to the camera, issues PTP
operations with sequential transaction IDs and reassembles data phases split
across Start/Data/EndData packets.
"""

from __future__ import annotations

__all__ = ["PtpIpClient"]

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from ..config import TimeoutConfig
from ..constants import PTP_CLIENT_NAME, PTP_IP_PORT, PTP_PROTOCOL_VERSION
from ..exceptions import (
    InvalidFrameError,
    OperationFailedError,
    PtpConnectionError,
    PtpDisconnectedError,
    PtpError,
    PtpTimeoutError,
    SessionNotOpenError,
    UnexpectedPacketError,
)
from ..log_buffer import LogBuffer
from ..models import CameraFile
from ..protocol.ptp_codec import (
    HEADER_SIZE,
    Packet,
    build_init_command_request,
    build_init_event_request,
    build_operation_request,
    decode_packet,
    encode_packet,
    parse_data_chunk,
    parse_device_info,
    parse_init_command_ack,
    parse_init_fail,
    parse_object_info,
    parse_operation_response,
    parse_start_data,
    parse_storage_info,
    parse_uint32_array,
)
from ..protocol.ptp_types import (
    DataPhase,
    DeviceInfo,
    ObjectInfo,
    OperationCode,
    PacketType,
    ResponseCode,
    StorageInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSION_ID = 1
ALL_STORAGES = 0xFFFFFFFF
ROOT_PARENT = 0xFFFFFFFF
MAX_TRANSACTION_ID = 0xFFFFFFFF


class PtpIpClient:
    """PTP/IP client for Samsung cameras.

    Usage:
        async with PtpIpClient("192.168.101.1") as client:
            files = await client.list_files()
            data = await client.get_object(files[0].handle)
    """

    def __init__(
        self,
        host: str,
        port: int = PTP_IP_PORT,
        timeout_config: TimeoutConfig | None = None,
        friendly_name: str = PTP_CLIENT_NAME,
        guid: uuid.UUID | None = None,
    ) -> None:
        """Initialize PTP/IP client.

        Args:
            host: Camera IP address
            port: PTP/IP port
            timeout_config: Timeout configuration
            friendly_name: Name announced in InitCommandRequest
            guid: Initiator GUID, random per instance by default
        """
        self.host = host
        self.port = port
        self._timeout = timeout_config or TimeoutConfig()
        self._friendly_name = friendly_name
        self._guid = guid or uuid.uuid4()

        self._command: tuple[asyncio.StreamReader, asyncio.StreamWriter] | None = None
        self._event: tuple[asyncio.StreamReader, asyncio.StreamWriter] | None = None
        self._operation_lock = asyncio.Lock()

        self._transaction_id = 1
        self._session_id = 0
        self._connection_number = 0
        self._device_info: DeviceInfo | None = None
        self._is_connected = False

        self.log = LogBuffer(maxlen=200, logger=logger)

    # ==================== Properties ====================

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def device_info(self) -> DeviceInfo | None:
        """DeviceInfo read during connect(), None when disconnected."""
        return self._device_info

    @property
    def next_transaction_id(self) -> int:
        """Transaction ID the next request will carry."""
        return self._transaction_id

    # ==================== Lifecycle ====================

    async def __aenter__(self) -> PtpIpClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Connect to the camera and open a PTP session.

        Steps, each under ``ptp_step_timeout``: command connection + InitCommandRequest,
        event connection + InitEventRequest, OpenSession, GetDeviceInfo.

        Raises:
            PtpConnectionError: TCP connection could not be opened
            PtpTimeoutError: A step timed out
            UnexpectedPacketError: Camera answered with InitFail or an unexpected packet
            OperationFailedError: OpenSession or GetDeviceInfo was refused
        """
        if self._is_connected:
            logger.debug(f"PTP/IP already connected to {self.host}, skipping")
            return

        self._transaction_id = 1
        self.log.info(f"Connecting to {self.host}:{self.port}...")

        try:
            self._command = await self._step("Command connection", self._open_stream())
            self.log.info("Command connection established")

            await self._step("InitCommandRequest", self._init_command())

            self._event = await self._step("Event connection", self._open_event_channel())
            self.log.info("Event connection established")

            await self._step("OpenSession", self._open_session())

            self._device_info = await self._step("GetDeviceInfo", self.get_device_info())
        except (Exception, asyncio.CancelledError) as e:
            self.log.error(f"PTP/IP connect failed: {e}")
            await self._close_streams()
            self._reset_state()
            raise

        self._is_connected = True
        self.log.success(f"Connected! Camera: {self._device_info.model} ({self._device_info.manufacturer})")

    async def disconnect(self) -> None:
        """Close both connections. Safe to call repeatedly or before connect()."""
        was_open = self._command is not None or self._event is not None
        await self._close_streams()
        self._reset_state()
        if was_open:
            self.log.info("Disconnected")

    async def close_session(self) -> None:
        """Send CloseSession, keeping the TCP connections open."""
        await self._simple_operation(OperationCode.CLOSE_SESSION)
        self._session_id = 0
        self.log.info("Session closed")

    def _reset_state(self) -> None:
        self._is_connected = False
        self._session_id = 0
        self._transaction_id = 1
        self._connection_number = 0
        self._device_info = None

    async def _close_streams(self) -> None:
        for channel in (self._command, self._event):
            if channel is None:
                continue
            _, writer = channel
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()
        self._command = None
        self._event = None

    async def _step(self, name: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout.ptp_step_timeout)
        except TimeoutError as e:
            raise PtpTimeoutError(f"{name} timed out after {self._timeout.ptp_step_timeout}s") from e

    async def _open_stream(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            return await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            raise PtpConnectionError(f"Cannot connect to {self.host}:{self.port}: {e}") from e

    async def _init_command(self) -> None:
        payload = build_init_command_request(self._guid, self._friendly_name, PTP_PROTOCOL_VERSION)
        await self._send(encode_packet(PacketType.INIT_COMMAND_REQUEST, payload))
        self.log.sent(f"InitCommandRequest ({HEADER_SIZE + len(payload)} bytes)")

        packet = await self._receive_packet()
        if packet.type is PacketType.INIT_FAIL:
            reason = parse_init_fail(packet.payload)
            raise UnexpectedPacketError(f"Camera refused InitCommandRequest (reason 0x{reason:08X})")
        if packet.type is not PacketType.INIT_COMMAND_ACK:
            raise UnexpectedPacketError(f"Expected InitCommandAck, got {packet.type.name}")

        ack = parse_init_command_ack(packet.payload)
        self._connection_number = ack.connection_number
        self.log.received(f"InitCommandAck: connection #{ack.connection_number}, responder '{ack.friendly_name}'")

    async def _open_event_channel(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        reader, writer = await self._open_stream()
        try:
            writer.write(encode_packet(PacketType.INIT_EVENT_REQUEST, build_init_event_request(self._connection_number)))
            await writer.drain()
            packet = await self._receive_packet(reader)
            if packet.type is PacketType.INIT_FAIL:
                reason = parse_init_fail(packet.payload)
                raise UnexpectedPacketError(f"Camera refused InitEventRequest (reason 0x{reason:08X})")
            if packet.type is not PacketType.INIT_EVENT_ACK:
                raise UnexpectedPacketError(f"Expected InitEventAck, got {packet.type.name}")
        except BaseException:
            writer.close()
            raise
        return reader, writer

    async def _open_session(self) -> None:
        self._transaction_id = 1
        await self._simple_operation(OperationCode.OPEN_SESSION, [SESSION_ID])
        self._session_id = SESSION_ID
        self.log.info(f"Session opened (ID: {SESSION_ID})")

    # ==================== Transport ====================

    async def _send(self, data: bytes) -> None:
        if self._command is None:
            raise SessionNotOpenError("No command connection")
        _, writer = self._command
        try:
            writer.write(data)
            await writer.drain()
        except OSError as e:
            raise PtpConnectionError(f"Send failed: {e}") from e

    async def read_exactly(self, count: int, reader: asyncio.StreamReader | None = None) -> bytes:
        """Read exactly ``count`` bytes under ``ptp_receive_timeout``.

        Args:
            count: Number of bytes
            reader: Stream to read from, defaults to the command connection

        Raises:
            PtpTimeoutError: Bytes did not arrive in time
            PtpDisconnectedError: Camera closed the connection
        """
        if reader is None:
            if self._command is None:
                raise SessionNotOpenError("No command connection")
            reader = self._command[0]
        try:
            return await asyncio.wait_for(reader.readexactly(count), timeout=self._timeout.ptp_receive_timeout)
        except TimeoutError as e:
            raise PtpTimeoutError(f"No data from camera within {self._timeout.ptp_receive_timeout}s") from e
        except asyncio.IncompleteReadError as e:
            raise PtpDisconnectedError(f"Camera closed the connection ({len(e.partial)}/{count} bytes read)") from e
        except OSError as e:
            raise PtpConnectionError(f"Receive failed: {e}") from e

    async def _receive_packet(self, reader: asyncio.StreamReader | None = None) -> Packet:
        header = await self.read_exactly(4, reader)
        total_length = int.from_bytes(header, "little")
        if total_length < HEADER_SIZE:
            raise InvalidFrameError(f"Declared frame length {total_length} is smaller than the header")
        rest = await self.read_exactly(total_length - 4, reader)
        return decode_packet(header + rest)

    def _next_transaction_id(self) -> int:
        txn = self._transaction_id
        self._transaction_id = 1 if txn >= MAX_TRANSACTION_ID else txn + 1
        return txn

    # ==================== Operation shapes ====================

    def _check_response(self, code: int, operation: OperationCode) -> None:
        if code != ResponseCode.OK:
            description = ResponseCode.describe(code)
            self.log.error(f"{operation.name} failed: {description} (0x{code:04X})")
            raise OperationFailedError(code, f"{operation.name} failed: {description} (0x{code:04X})")

    async def _simple_operation(self, operation: OperationCode, params: Sequence[int] = ()) -> None:
        async with self._operation_lock:
            txn = self._next_transaction_id()
            await self._send(
                encode_packet(PacketType.OPERATION_REQUEST, build_operation_request(operation, txn, params))
            )
            self.log.sent(f"{operation.name} (0x{operation:04X}) [txn={txn}]")

            packet = await self._receive_packet()
            if packet.type is not PacketType.OPERATION_RESPONSE:
                raise UnexpectedPacketError(f"Expected OperationResponse, got {packet.type.name}")
            self._check_response(parse_operation_response(packet.payload).code, operation)

    async def _data_in_operation(self, operation: OperationCode, params: Sequence[int] = ()) -> bytes:
        async with self._operation_lock:
            txn = self._next_transaction_id()
            request = build_operation_request(operation, txn, params, DataPhase.DATA_IN)
            await self._send(encode_packet(PacketType.OPERATION_REQUEST, request))
            self.log.sent(f"{operation.name} (0x{operation:04X}) [txn={txn}]")

            first = await self._receive_packet()
            if first.type is PacketType.OPERATION_RESPONSE:
                # No data phase
                self._check_response(parse_operation_response(first.payload).code, operation)
                return b""
            if first.type is not PacketType.START_DATA_PACKET:
                raise UnexpectedPacketError(f"Expected StartData or OperationResponse, got {first.type.name}")

            expected = parse_start_data(first.payload).total_length
            self.log.received(f"Start data: {expected} bytes expected")

            chunks: list[bytes] = []
            inline_response = None
            while True:
                packet = await self._receive_packet()
                if packet.type is PacketType.DATA_PACKET:
                    chunks.append(parse_data_chunk(packet.payload).data)
                elif packet.type is PacketType.END_DATA_PACKET:
                    chunks.append(parse_data_chunk(packet.payload).data)
                    break
                elif packet.type is PacketType.OPERATION_RESPONSE:
                    inline_response = parse_operation_response(packet.payload)
                    break
                else:
                    raise UnexpectedPacketError(f"Unexpected {packet.type.name} during data phase")

            data = b"".join(chunks)

            if inline_response is None:
                packet = await self._receive_packet()
                if packet.type is not PacketType.OPERATION_RESPONSE:
                    if data:
                        return data
                    raise UnexpectedPacketError(f"Expected OperationResponse, got {packet.type.name}")
                inline_response = parse_operation_response(packet.payload)

            self._check_response(inline_response.code, operation)
            self.log.received(f"Received {len(data)} bytes of data")
            return data

    # ==================== PTP operations ====================

    async def get_device_info(self) -> DeviceInfo:
        return parse_device_info(await self._data_in_operation(OperationCode.GET_DEVICE_INFO))

    async def get_storage_ids(self) -> list[int]:
        return parse_uint32_array(await self._data_in_operation(OperationCode.GET_STORAGE_IDS))

    async def get_storage_info(self, storage_id: int) -> StorageInfo:
        return parse_storage_info(await self._data_in_operation(OperationCode.GET_STORAGE_INFO, [storage_id]))

    async def get_object_handles(
        self,
        storage_id: int = ALL_STORAGES,
        format_code: int = 0,
        parent: int = ROOT_PARENT,
    ) -> list[int]:
        """List object handles.

        Args:
            storage_id: Storage to list, 0xFFFFFFFF for all storages
            format_code: Restrict to a format, 0 for all formats
            parent: Parent association, 0xFFFFFFFF for the root

        Returns:
            Object handles
        """
        data = await self._data_in_operation(OperationCode.GET_OBJECT_HANDLES, [storage_id, format_code, parent])
        return parse_uint32_array(data)

    async def get_object_info(self, handle: int) -> ObjectInfo:
        return parse_object_info(await self._data_in_operation(OperationCode.GET_OBJECT_INFO, [handle]))

    async def get_object(self, handle: int) -> bytes:
        """Download a full object (photo or video)."""
        return await self._data_in_operation(OperationCode.GET_OBJECT, [handle])

    async def get_thumb(self, handle: int) -> bytes:
        return await self._data_in_operation(OperationCode.GET_THUMB, [handle])

    async def initiate_capture(self, storage_id: int = 0, format_code: int = 0) -> None:
        """Trigger a capture."""
        await self._simple_operation(OperationCode.INITIATE_CAPTURE, [storage_id, format_code])

    # ==================== Listing ====================

    async def list_files(self, include_thumbnails: bool = True) -> list[CameraFile]:
        """List photos and videos across all storages.

        Handles whose ObjectInfo cannot be read are logged and skipped; thumbnails
        are best effort.

        Args:
            include_thumbnails: Fetch a thumbnail per file

        Returns:
            Files sorted by filename, newest name first
        """
        storage_ids = await self.get_storage_ids()
        self.log.info(f"Found {len(storage_ids)} storage(s)")

        files: list[CameraFile] = []
        for storage_id in storage_ids:
            handles = await self.get_object_handles(storage_id, 0, ROOT_PARENT)
            self.log.info(f"Found {len(handles)} objects in storage 0x{storage_id:08X}")

            for handle in handles:
                try:
                    info = await self.get_object_info(handle)
                except PtpError as e:
                    self.log.warning(f"Failed to read handle {handle}: {e}")
                    continue

                fmt = info.format
                if not (fmt.is_image or fmt.is_video):
                    continue

                thumbnail = None
                if include_thumbnails:
                    try:
                        thumbnail = await self.get_thumb(handle) or None
                    except (OperationFailedError, UnexpectedPacketError) as e:
                        self.log.debug(f"No thumbnail for {info.filename}: {e}")
                    except PtpError as e:
                        # Command stream may be out of step, skip the remaining thumbnails
                        self.log.warning(f"Thumbnail for {info.filename} failed, skipping thumbnails: {e}")
                        include_thumbnails = False

                files.append(
                    CameraFile(
                        handle=handle,
                        filename=info.filename,
                        format=fmt,
                        size=info.object_compressed_size,
                        width=info.image_pix_width,
                        height=info.image_pix_height,
                        capture_date=info.capture_date,
                        thumbnail=thumbnail,
                    )
                )

        files.sort(key=lambda f: f.filename, reverse=True)
        self.log.success(f"Loaded {len(files)} files from camera")
        return files

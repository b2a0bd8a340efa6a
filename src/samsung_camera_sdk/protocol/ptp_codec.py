"""PTP/IP wire codec.

Frame layout (all integers little-endian):

    uint32 total_length | uint32 packet_type | payload

``total_length`` includes the 8-byte header. Callers read exactly ``total_length``
bytes from the stream before calling :func:`decode_packet`.

Dataset decoding is deliberately lenient: camera firmware is known to return
truncated responses, so :class:`PtpReader` yields zero values instead of raising
when it runs past the end of the buffer.
"""

from __future__ import annotations

__all__ = [
    "HEADER_SIZE",
    "DataChunk",
    "InitCommandAck",
    "OperationResponse",
    "Packet",
    "PtpReader",
    "PtpWriter",
    "StartData",
    "build_init_command_request",
    "build_init_event_request",
    "build_operation_request",
    "decode_packet",
    "decode_ptp_string",
    "encode_packet",
    "encode_ptp_string",
    "parse_data_chunk",
    "parse_device_info",
    "parse_init_command_ack",
    "parse_init_fail",
    "parse_object_info",
    "parse_operation_response",
    "parse_start_data",
    "parse_storage_info",
    "parse_uint32_array",
]

import struct
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from construct import GreedyRange, Int16ul, Int32ul, Struct

from ..exceptions import InvalidFrameError
from .ptp_types import DataPhase, DeviceInfo, ObjectInfo, PacketType, StorageInfo

HEADER_SIZE = 8
MAX_OPERATION_PARAMS = 5
MAX_PTP_STRING_CHARS = 255  # count byte includes the null terminator

PacketHeader = Struct(
    "length" / Int32ul,
    "type" / Int32ul,
)

OperationRequestPayload = Struct(
    "data_phase" / Int32ul,
    "code" / Int16ul,
    "transaction_id" / Int32ul,
    "params" / GreedyRange(Int32ul),
)

InitEventRequestPayload = Struct(
    "connection_number" / Int32ul,
)


# ==================== Framing ====================


@dataclass(frozen=True)
class Packet:
    """A decoded PTP/IP packet."""

    type: PacketType
    payload: bytes = b""

    def encode(self) -> bytes:
        return encode_packet(self.type, self.payload)


def encode_packet(packet_type: PacketType, payload: bytes = b"") -> bytes:
    """Serialize a packet: length header + type + payload."""
    header = PacketHeader.build({"length": HEADER_SIZE + len(payload), "type": int(packet_type)})
    return header + bytes(payload)


def decode_packet(data: bytes) -> Packet:
    """Decode exactly one packet from ``data``.

    Args:
        data: Bytes starting at a frame boundary, at least ``total_length`` long

    Returns:
        Decoded packet (bytes past ``total_length`` are ignored)

    Raises:
        InvalidFrameError: Buffer shorter than the header, declared length < 8,
            buffer shorter than the declared length, or unknown packet type
    """
    if len(data) < HEADER_SIZE:
        raise InvalidFrameError(f"Frame too short: {len(data)} bytes")

    header = PacketHeader.parse(data[:HEADER_SIZE])
    if header.length < HEADER_SIZE:
        raise InvalidFrameError(f"Declared frame length {header.length} is smaller than the header")
    if len(data) < header.length:
        raise InvalidFrameError(f"Frame truncated: declared {header.length} bytes, have {len(data)}")

    try:
        packet_type = PacketType(header.type)
    except ValueError as e:
        raise InvalidFrameError(f"Unknown packet type 0x{header.type:08X}") from e

    return Packet(packet_type, bytes(data[HEADER_SIZE : header.length]))


# ==================== Primitive readers/writers ====================


class PtpReader:
    """Cursor over a PTP dataset.

    Reads past the end of the buffer return the zero value for the field and
    leave the cursor in place.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return max(0, len(self._data) - self.offset)

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self._data)

    def _unpack(self, fmt: str, size: int) -> int:
        if self.offset + size > len(self._data):
            return 0
        (value,) = struct.unpack_from(fmt, self._data, self.offset)
        self.offset += size
        return value

    def read_uint8(self) -> int:
        return self._unpack("<B", 1)

    def read_uint16(self) -> int:
        return self._unpack("<H", 2)

    def read_uint32(self) -> int:
        return self._unpack("<I", 4)

    def read_uint64(self) -> int:
        return self._unpack("<Q", 8)

    def read_string(self) -> str:
        """Read a PTP string (count byte + UTF-16LE units, nulls stripped)."""
        count = self.read_uint8()
        if count == 0:
            return ""
        units = [self.read_uint16() for _ in range(count)]
        units = [u for u in units if u != 0]
        if not units:
            return ""
        raw = struct.pack(f"<{len(units)}H", *units)
        return raw.decode("utf-16-le", errors="replace")

    def _read_array(self, reader, width: int) -> list[int]:
        count = self.read_uint32()
        # A garbage count on a truncated buffer must not allocate billions of zeros
        count = min(count, self.remaining // width)
        return [reader() for _ in range(count)]

    def read_uint16_array(self) -> list[int]:
        return self._read_array(self.read_uint16, 2)

    def read_uint32_array(self) -> list[int]:
        return self._read_array(self.read_uint32, 4)

    def read_bytes(self, count: int) -> bytes:
        count = min(count, self.remaining)
        if count <= 0:
            return b""
        chunk = self._data[self.offset : self.offset + count]
        self.offset += count
        return chunk

    def read_rest(self) -> bytes:
        return self.read_bytes(self.remaining)

    def skip(self, count: int) -> None:
        self.offset += min(count, self.remaining)


class PtpWriter:
    """Little-endian PTP dataset builder."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    def write_uint8(self, value: int) -> PtpWriter:
        self._buffer += struct.pack("<B", value)
        return self

    def write_uint16(self, value: int) -> PtpWriter:
        self._buffer += struct.pack("<H", value)
        return self

    def write_uint32(self, value: int) -> PtpWriter:
        self._buffer += struct.pack("<I", value)
        return self

    def write_uint64(self, value: int) -> PtpWriter:
        self._buffer += struct.pack("<Q", value)
        return self

    def write_guid(self, guid: uuid.UUID) -> PtpWriter:
        self._buffer += guid.bytes
        return self

    def write_string(self, text: str) -> PtpWriter:
        self._buffer += encode_ptp_string(text)
        return self

    def write_bytes(self, raw: bytes) -> PtpWriter:
        self._buffer += raw
        return self


def encode_ptp_string(text: str) -> bytes:
    """Encode a PTP string.

    Examples:
        >>> encode_ptp_string("AB")
        b'\\x03A\\x00B\\x00\\x00\\x00'
        >>> encode_ptp_string("")
        b'\\x00'

    Raises:
        ValueError: String does not fit the 1-byte character count
    """
    if not text:
        return b"\x00"
    units = text.encode("utf-16-le")
    count = len(units) // 2 + 1
    if count > MAX_PTP_STRING_CHARS:
        raise ValueError(f"PTP string too long: {count - 1} UTF-16 units")
    return bytes([count]) + units + b"\x00\x00"


def decode_ptp_string(data: bytes) -> str:
    """Decode a PTP string from the start of ``data``."""
    return PtpReader(data).read_string()


# ==================== Request payloads ====================


def build_init_command_request(guid: uuid.UUID, friendly_name: str, protocol_version: int = 1) -> bytes:
    """InitCommandRequest payload: GUID + friendly name + protocol version."""
    return PtpWriter().write_guid(guid).write_string(friendly_name).write_uint32(protocol_version).data


def build_init_event_request(connection_number: int) -> bytes:
    """InitEventRequest payload."""
    return InitEventRequestPayload.build({"connection_number": connection_number})


def build_operation_request(
    code: int,
    transaction_id: int,
    params: Sequence[int] = (),
    data_phase: DataPhase = DataPhase.NONE,
) -> bytes:
    """OperationRequest payload.

    Args:
        code: Operation code
        transaction_id: Transaction ID assigned by the client
        params: Up to five uint32 parameters
        data_phase: Data phase indicator

    Raises:
        ValueError: More than five parameters
    """
    if len(params) > MAX_OPERATION_PARAMS:
        raise ValueError(f"PTP operations take at most {MAX_OPERATION_PARAMS} parameters, got {len(params)}")
    return OperationRequestPayload.build(
        {
            "data_phase": int(data_phase),
            "code": int(code),
            "transaction_id": transaction_id,
            "params": list(params),
        }
    )


# ==================== Response payloads ====================


@dataclass(frozen=True)
class OperationResponse:
    code: int
    transaction_id: int
    params: tuple[int, ...] = ()


@dataclass(frozen=True)
class StartData:
    transaction_id: int
    total_length: int


@dataclass(frozen=True)
class DataChunk:
    transaction_id: int
    data: bytes


@dataclass(frozen=True)
class InitCommandAck:
    connection_number: int
    guid: bytes
    friendly_name: str
    protocol_version: int


def parse_operation_response(payload: bytes) -> OperationResponse:
    reader = PtpReader(payload)
    code = reader.read_uint16()
    transaction_id = reader.read_uint32()
    params = []
    while reader.remaining >= 4:
        params.append(reader.read_uint32())
    return OperationResponse(code, transaction_id, tuple(params))


def parse_start_data(payload: bytes) -> StartData:
    reader = PtpReader(payload)
    return StartData(reader.read_uint32(), reader.read_uint64())


def parse_data_chunk(payload: bytes) -> DataChunk:
    """Data and EndData payloads: transaction ID followed by a chunk."""
    reader = PtpReader(payload)
    transaction_id = reader.read_uint32()
    return DataChunk(transaction_id, reader.read_rest())


def parse_init_command_ack(payload: bytes) -> InitCommandAck:
    reader = PtpReader(payload)
    connection_number = reader.read_uint32()
    guid = reader.read_bytes(16)
    name = reader.read_string()
    version = reader.read_uint32()
    return InitCommandAck(connection_number, guid, name, version)


def parse_init_fail(payload: bytes) -> int:
    """InitFail payload: failure reason code."""
    return PtpReader(payload).read_uint32()


# ==================== Datasets ====================


def parse_uint32_array(data: bytes) -> list[int]:
    """StorageIDs / ObjectHandles dataset."""
    return PtpReader(data).read_uint32_array()


def parse_device_info(data: bytes) -> DeviceInfo:
    reader = PtpReader(data)
    return DeviceInfo(
        standard_version=reader.read_uint16(),
        vendor_extension_id=reader.read_uint32(),
        vendor_extension_version=reader.read_uint16(),
        vendor_extension_desc=reader.read_string(),
        functional_mode=reader.read_uint16(),
        operations_supported=tuple(reader.read_uint16_array()),
        events_supported=tuple(reader.read_uint16_array()),
        device_properties_supported=tuple(reader.read_uint16_array()),
        capture_formats=tuple(reader.read_uint16_array()),
        image_formats=tuple(reader.read_uint16_array()),
        manufacturer=reader.read_string(),
        model=reader.read_string(),
        device_version=reader.read_string(),
        serial_number=reader.read_string(),
    )


def parse_storage_info(data: bytes) -> StorageInfo:
    reader = PtpReader(data)
    return StorageInfo(
        storage_type=reader.read_uint16(),
        filesystem_type=reader.read_uint16(),
        access_capability=reader.read_uint16(),
        max_capacity=reader.read_uint64(),
        free_space_in_bytes=reader.read_uint64(),
        free_space_in_images=reader.read_uint32(),
        storage_description=reader.read_string(),
        volume_label=reader.read_string(),
    )


def parse_object_info(data: bytes) -> ObjectInfo:
    reader = PtpReader(data)
    return ObjectInfo(
        storage_id=reader.read_uint32(),
        object_format=reader.read_uint16(),
        protection_status=reader.read_uint16(),
        object_compressed_size=reader.read_uint32(),
        thumb_format=reader.read_uint16(),
        thumb_compressed_size=reader.read_uint32(),
        thumb_pix_width=reader.read_uint32(),
        thumb_pix_height=reader.read_uint32(),
        image_pix_width=reader.read_uint32(),
        image_pix_height=reader.read_uint32(),
        image_bit_depth=reader.read_uint32(),
        parent_object=reader.read_uint32(),
        association_type=reader.read_uint16(),
        association_desc=reader.read_uint32(),
        sequence_number=reader.read_uint32(),
        filename=reader.read_string(),
        capture_date=reader.read_string(),
        modification_date=reader.read_string(),
        keywords=reader.read_string(),
    )

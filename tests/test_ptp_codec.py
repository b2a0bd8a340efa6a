"""PTP/IP codec tests - no hardware required."""

import uuid

import pytest

from samsung_camera_sdk.exceptions import InvalidFrameError
from samsung_camera_sdk.protocol.ptp_codec import (
    HEADER_SIZE,
    Packet,
    PtpReader,
    PtpWriter,
    build_init_command_request,
    build_init_event_request,
    build_operation_request,
    decode_packet,
    decode_ptp_string,
    encode_packet,
    encode_ptp_string,
    parse_data_chunk,
    parse_device_info,
    parse_init_command_ack,
    parse_object_info,
    parse_operation_response,
    parse_start_data,
    parse_uint32_array,
)
from samsung_camera_sdk.protocol.ptp_types import DataPhase, ObjectFormat, OperationCode, PacketType, ResponseCode

from conftest import device_info_dataset, object_info_dataset, uint32_array


class TestFraming:
    @pytest.mark.parametrize(
        "packet_type,payload",
        [
            (PacketType.INIT_EVENT_ACK, b""),
            (PacketType.OPERATION_REQUEST, b"\x01\x00\x00\x00\x01\x10\x01\x00\x00\x00"),
            (PacketType.DATA_PACKET, bytes(range(256)) * 4),
        ],
    )
    def test_encode_decode_preserves_type_and_payload(self, packet_type, payload):
        frame = encode_packet(packet_type, payload)

        assert len(frame) == HEADER_SIZE + len(payload)
        assert int.from_bytes(frame[:4], "little") == len(frame)
        assert decode_packet(frame) == Packet(packet_type, payload)

    def test_packet_encode_matches_encode_packet(self):
        packet = Packet(PacketType.OPERATION_RESPONSE, b"\x01\x20\x01\x00\x00\x00")
        assert packet.encode() == encode_packet(packet.type, packet.payload)

    def test_decode_ignores_trailing_bytes(self):
        frame = encode_packet(PacketType.INIT_EVENT_ACK)
        assert decode_packet(frame + b"garbage").payload == b""

    def test_short_buffer_rejected(self):
        with pytest.raises(InvalidFrameError):
            decode_packet(b"\x08\x00\x00")

    def test_length_below_header_rejected(self):
        with pytest.raises(InvalidFrameError):
            decode_packet(b"\x04\x00\x00\x00\x07\x00\x00\x00")

    def test_truncated_frame_rejected(self):
        frame = encode_packet(PacketType.DATA_PACKET, b"12345678")
        with pytest.raises(InvalidFrameError):
            decode_packet(frame[:-1])

    def test_unknown_packet_type_rejected(self):
        with pytest.raises(InvalidFrameError):
            decode_packet(b"\x08\x00\x00\x00\x63\x00\x00\x00")


class TestStrings:
    def test_empty_string_is_single_zero_byte(self):
        assert encode_ptp_string("") == b"\x00"
        assert decode_ptp_string(b"\x00") == ""

    def test_ab_layout(self):
        encoded = encode_ptp_string("AB")

        assert encoded[0] == 3
        assert encoded[1:] == "AB".encode("utf-16-le") + b"\x00\x00"
        assert decode_ptp_string(encoded) == "AB"

    def test_non_ascii(self):
        assert decode_ptp_string(encode_ptp_string("Câmera")) == "Câmera"

    def test_longest_string_accepted(self):
        text = "x" * 254
        assert decode_ptp_string(encode_ptp_string(text)) == text

    def test_too_long_string_rejected(self):
        with pytest.raises(ValueError):
            encode_ptp_string("x" * 255)


class TestReader:
    def test_reads_past_end_return_zero(self):
        reader = PtpReader(b"\x01")

        assert reader.read_uint32() == 0
        assert reader.read_uint8() == 1
        assert reader.read_uint16() == 0
        assert reader.read_uint64() == 0
        assert reader.read_string() == ""
        assert reader.read_uint16_array() == []
        assert reader.read_bytes(4) == b""
        assert reader.at_end

    def test_array_count_clamped_to_buffer(self):
        data = PtpWriter().write_uint32(0xFFFFFFFF).write_uint32(5).write_uint32(6).data
        assert PtpReader(data).read_uint32_array() == [5, 6]

    def test_truncated_string_keeps_available_units(self):
        data = bytes([5]) + "AB".encode("utf-16-le")
        assert PtpReader(data).read_string() == "AB"

    def test_writer_round_trip(self):
        guid = uuid.UUID("12345678-1234-5678-1234-567812345678")
        data = (
            PtpWriter()
            .write_uint8(1)
            .write_uint16(2)
            .write_uint32(3)
            .write_uint64(4)
            .write_guid(guid)
            .write_string("cam")
            .write_bytes(b"tail")
            .data
        )
        reader = PtpReader(data)

        assert reader.read_uint8() == 1
        assert reader.read_uint16() == 2
        assert reader.read_uint32() == 3
        assert reader.read_uint64() == 4
        assert reader.read_bytes(16) == guid.bytes
        assert reader.read_string() == "cam"
        assert reader.read_rest() == b"tail"


class TestPayloads:
    def test_init_command_request(self):
        guid = uuid.uuid4()
        payload = build_init_command_request(guid, "phone", 1)

        assert payload[:16] == guid.bytes
        reader = PtpReader(payload[16:])
        assert reader.read_string() == "phone"
        assert reader.read_uint32() == 1
        assert reader.at_end

    def test_init_event_request(self):
        assert build_init_event_request(7) == b"\x07\x00\x00\x00"

    def test_operation_request_layout(self):
        payload = build_operation_request(OperationCode.GET_OBJECT, 42, [0x10], DataPhase.DATA_IN)
        reader = PtpReader(payload)

        assert reader.read_uint32() == DataPhase.DATA_IN
        assert reader.read_uint16() == OperationCode.GET_OBJECT
        assert reader.read_uint32() == 42
        assert reader.read_uint32() == 0x10
        assert reader.at_end

    def test_operation_request_rejects_six_params(self):
        with pytest.raises(ValueError):
            build_operation_request(OperationCode.GET_OBJECT_HANDLES, 1, [0] * 6)

    def test_operation_response(self):
        payload = PtpWriter().write_uint16(ResponseCode.OK).write_uint32(9).write_uint32(1).write_uint32(2).data
        response = parse_operation_response(payload)

        assert response.code == ResponseCode.OK
        assert response.transaction_id == 9
        assert response.params == (1, 2)

    def test_start_data_and_chunk(self):
        start = parse_start_data(PtpWriter().write_uint32(3).write_uint64(10).data)
        chunk = parse_data_chunk(PtpWriter().write_uint32(3).write_bytes(b"hello").data)

        assert (start.transaction_id, start.total_length) == (3, 10)
        assert (chunk.transaction_id, chunk.data) == (3, b"hello")

    def test_init_command_ack(self):
        payload = PtpWriter().write_uint32(7).write_bytes(b"\x22" * 16).write_string("DV150F").write_uint32(1).data
        ack = parse_init_command_ack(payload)

        assert ack.connection_number == 7
        assert ack.guid == b"\x22" * 16
        assert ack.friendly_name == "DV150F"
        assert ack.protocol_version == 1


class TestDatasets:
    def test_uint32_array(self):
        assert parse_uint32_array(uint32_array([1, 2, 3])) == [1, 2, 3]

    def test_device_info(self):
        info = parse_device_info(device_info_dataset(model="DV150F"))

        assert info.manufacturer == "Samsung"
        assert info.model == "DV150F"
        assert info.serial_number == "SN0001"
        assert info.supports(OperationCode.GET_OBJECT)
        assert not info.supports(OperationCode.SAMSUNG_GET_OBJECT)

    def test_truncated_device_info_does_not_raise(self):
        info = parse_device_info(device_info_dataset()[:20])
        assert info.standard_version == 100
        assert info.model == ""

    def test_object_info(self):
        info = parse_object_info(object_info_dataset("SAM_0001.JPG", size=2048, width=640, height=480))

        assert info.filename == "SAM_0001.JPG"
        assert info.format is ObjectFormat.JPEG
        assert info.object_compressed_size == 2048
        assert (info.image_pix_width, info.image_pix_height) == (640, 480)
        assert info.capture_date == "20240131T142501"


class TestCodeTables:
    def test_unknown_format_maps_to_undefined(self):
        assert ObjectFormat.from_code(0xBEEF) is ObjectFormat.UNDEFINED

    def test_format_classification(self):
        assert ObjectFormat.JPEG.is_image
        assert ObjectFormat.AVI.is_video
        assert not ObjectFormat.TEXT.is_image
        assert ObjectFormat.JPEG.file_extension

    def test_describe_unknown_response_code(self):
        assert ResponseCode.describe(0x2FFF) == "Error (0x2fff)"
        assert ResponseCode.describe(ResponseCode.DEVICE_BUSY) == "Device Busy"

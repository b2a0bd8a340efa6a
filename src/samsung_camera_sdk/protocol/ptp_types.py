"""PTP/IP packet types, operation/response/format code tables and PTP datasets.

Reference: CIPA DC-005 (PTP/IP), ISO 15740 (PTP), plus the two Samsung vendor opcodes.
"""

from __future__ import annotations

__all__ = [
    "DataPhase",
    "DeviceInfo",
    "ObjectFormat",
    "ObjectInfo",
    "OperationCode",
    "PacketType",
    "ResponseCode",
    "StorageInfo",
]

from dataclasses import dataclass, field
from enum import IntEnum


class PacketType(IntEnum):
    """PTP/IP packet type codes."""

    INIT_COMMAND_REQUEST = 0x01
    INIT_COMMAND_ACK = 0x02
    INIT_EVENT_REQUEST = 0x03
    INIT_EVENT_ACK = 0x04
    INIT_FAIL = 0x05
    OPERATION_REQUEST = 0x06
    OPERATION_RESPONSE = 0x07
    EVENT = 0x08
    START_DATA_PACKET = 0x09
    DATA_PACKET = 0x0A
    CANCEL_TRANSACTION = 0x0B
    END_DATA_PACKET = 0x0C
    PROBE_REQUEST = 0x0D
    PROBE_RESPONSE = 0x0E


class DataPhase(IntEnum):
    """Data phase indicator of an OperationRequest."""

    NONE = 1  # no data phase
    DATA_IN = 2  # responder -> initiator
    DATA_OUT = 3  # initiator -> responder


class OperationCode(IntEnum):
    """PTP operation codes."""

    UNDEFINED = 0x1000
    GET_DEVICE_INFO = 0x1001
    OPEN_SESSION = 0x1002
    CLOSE_SESSION = 0x1003
    GET_STORAGE_IDS = 0x1004
    GET_STORAGE_INFO = 0x1005
    GET_NUM_OBJECTS = 0x1006
    GET_OBJECT_HANDLES = 0x1007
    GET_OBJECT_INFO = 0x1008
    GET_OBJECT = 0x1009
    GET_THUMB = 0x100A
    DELETE_OBJECT = 0x100B
    SEND_OBJECT_INFO = 0x100C
    SEND_OBJECT = 0x100D
    INITIATE_CAPTURE = 0x100E
    FORMAT_STORE = 0x100F
    RESET_DEVICE = 0x1010
    SELF_TEST = 0x1011
    SET_OBJECT_PROTECTION = 0x1012
    POWER_DOWN = 0x1013
    GET_DEVICE_PROP_DESC = 0x1014
    GET_DEVICE_PROP_VALUE = 0x1015
    SET_DEVICE_PROP_VALUE = 0x1016
    RESET_DEVICE_PROP_VALUE = 0x1017
    TERMINATE_OPEN_CAPTURE = 0x1018
    MOVE_OBJECT = 0x1019
    COPY_OBJECT = 0x101A
    GET_PARTIAL_OBJECT = 0x101B
    INITIATE_OPEN_CAPTURE = 0x101C

    # Samsung vendor-specific
    SAMSUNG_GET_OBJECT = 0x9001
    SAMSUNG_SEND_OBJECT = 0x9002


class ResponseCode(IntEnum):
    """PTP response codes."""

    UNDEFINED = 0x2000
    OK = 0x2001
    GENERAL_ERROR = 0x2002
    SESSION_NOT_OPEN = 0x2003
    INVALID_TRANSACTION_ID = 0x2004
    OPERATION_NOT_SUPPORTED = 0x2005
    PARAMETER_NOT_SUPPORTED = 0x2006
    INCOMPLETE_TRANSFER = 0x2007
    INVALID_STORAGE_ID = 0x2008
    INVALID_OBJECT_HANDLE = 0x2009
    DEVICE_PROP_NOT_SUPPORTED = 0x200A
    INVALID_OBJECT_FORMAT_CODE = 0x200B
    STORE_FULL = 0x200C
    OBJECT_WRITE_PROTECTED = 0x200D
    STORE_READ_ONLY = 0x200E
    ACCESS_DENIED = 0x200F
    NO_THUMBNAIL_PRESENT = 0x2010
    SELF_TEST_FAILED = 0x2011
    PARTIAL_DELETION = 0x2012
    STORE_NOT_AVAILABLE = 0x2013
    SPEC_BY_FORMAT_UNSUPPORTED = 0x2014
    NO_VALID_OBJECT_INFO = 0x2015
    INVALID_CODE_FORMAT = 0x2016
    UNKNOWN_VENDOR_CODE = 0x2017
    CAPTURE_ALREADY_TERMINATED = 0x2018
    DEVICE_BUSY = 0x2019
    INVALID_PARENT_OBJECT = 0x201A
    INVALID_DEVICE_PROP_FORMAT = 0x201B
    INVALID_DEVICE_PROP_VALUE = 0x201C
    INVALID_PARAMETER = 0x201D
    SESSION_ALREADY_OPENED = 0x201E
    TRANSACTION_CANCELLED = 0x201F
    SPEC_OF_DEST_UNSUPPORTED = 0x2020

    @property
    def is_success(self) -> bool:
        return self is ResponseCode.OK

    @classmethod
    def describe(cls, code: int) -> str:
        """Human readable name of a (possibly unknown) response code."""
        try:
            return cls(code).name.replace("_", " ").title()
        except ValueError:
            return f"Error (0x{code:04x})"


class ObjectFormat(IntEnum):
    """PTP object format codes."""

    UNDEFINED = 0x3000
    ASSOCIATION = 0x3001  # folder
    SCRIPT = 0x3002
    EXECUTABLE = 0x3003
    TEXT = 0x3004
    HTML = 0x3005
    DPOF = 0x3006
    AIFF = 0x3007
    WAV = 0x3008
    MP3 = 0x3009
    AVI = 0x300A
    MPEG = 0x300B
    ASF = 0x300C
    MP4 = 0x300D
    JPEG = 0x3801  # also EXIF/JPEG
    TIFF = 0x3802
    TIFF_IT = 0x3803
    JP2 = 0x3804
    BMP = 0x3805
    GIF = 0x3807
    JFIF = 0x3808
    PCD = 0x3809
    PICT = 0x380A
    PNG = 0x380B
    TIFF_EP = 0x380D

    @classmethod
    def from_code(cls, code: int) -> ObjectFormat:
        """Map a raw format code, unknown codes become UNDEFINED."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNDEFINED

    @property
    def is_image(self) -> bool:
        return self in _IMAGE_FORMATS

    @property
    def is_video(self) -> bool:
        return self in _VIDEO_FORMATS

    @property
    def file_extension(self) -> str:
        return _EXTENSIONS.get(self, "bin")


_IMAGE_FORMATS = frozenset(
    {ObjectFormat.JPEG, ObjectFormat.TIFF, ObjectFormat.BMP, ObjectFormat.GIF, ObjectFormat.PNG, ObjectFormat.JFIF}
)
_VIDEO_FORMATS = frozenset({ObjectFormat.AVI, ObjectFormat.MPEG, ObjectFormat.ASF, ObjectFormat.MP4})
_EXTENSIONS = {
    ObjectFormat.JPEG: "jpg",
    ObjectFormat.JFIF: "jpg",
    ObjectFormat.PNG: "png",
    ObjectFormat.MP4: "mp4",
    ObjectFormat.AVI: "avi",
    ObjectFormat.MPEG: "mpg",
}


# ==================== Datasets ====================


@dataclass(frozen=True)
class DeviceInfo:
    """GetDeviceInfo dataset, populated once per PTP session."""

    standard_version: int = 0
    vendor_extension_id: int = 0
    vendor_extension_version: int = 0
    vendor_extension_desc: str = ""
    functional_mode: int = 0
    operations_supported: tuple[int, ...] = field(default_factory=tuple)
    events_supported: tuple[int, ...] = field(default_factory=tuple)
    device_properties_supported: tuple[int, ...] = field(default_factory=tuple)
    capture_formats: tuple[int, ...] = field(default_factory=tuple)
    image_formats: tuple[int, ...] = field(default_factory=tuple)
    manufacturer: str = ""
    model: str = ""
    device_version: str = ""
    serial_number: str = ""

    def supports(self, operation: int) -> bool:
        """Whether the camera advertises an operation code."""
        return operation in self.operations_supported


@dataclass(frozen=True)
class StorageInfo:
    """GetStorageInfo dataset."""

    storage_type: int = 0
    filesystem_type: int = 0
    access_capability: int = 0
    max_capacity: int = 0
    free_space_in_bytes: int = 0
    free_space_in_images: int = 0
    storage_description: str = ""
    volume_label: str = ""


@dataclass(frozen=True)
class ObjectInfo:
    """GetObjectInfo dataset."""

    storage_id: int = 0
    object_format: int = 0
    protection_status: int = 0
    object_compressed_size: int = 0
    thumb_format: int = 0
    thumb_compressed_size: int = 0
    thumb_pix_width: int = 0
    thumb_pix_height: int = 0
    image_pix_width: int = 0
    image_pix_height: int = 0
    image_bit_depth: int = 0
    parent_object: int = 0
    association_type: int = 0
    association_desc: int = 0
    sequence_number: int = 0
    filename: str = ""
    capture_date: str = ""
    modification_date: str = ""
    keywords: str = ""

    @property
    def format(self) -> ObjectFormat:
        return ObjectFormat.from_code(self.object_format)

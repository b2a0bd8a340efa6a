"""Value types shared by the protocol clients and the connection manager."""

from __future__ import annotations

__all__ = [
    "CameraFile",
    "ConnectionState",
    "ConnectionStatus",
    "DetectedMode",
    "DiscoveredService",
    "ReceivedPhoto",
]

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .protocol.ptp_types import ObjectFormat

CAPTURE_DATE_FORMAT = "%Y%m%dT%H%M%S"  # PTP DateTime string, e.g. 20240131T142501


class DetectedMode(Enum):
    """Camera Wi-Fi mode, selected from which endpoint answers the probe sweep."""

    UNKNOWN = "unknown"
    MOBILE_LINK = "mobile_link"  # DLNA pull
    AUTO_SHARE = "auto_share"  # S2L push


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    DETECTING_NETWORK = "detecting_network"
    NETWORK_FOUND = "network_found"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PUSH_MODE_ACTIVE = "push_mode_active"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionStatus:
    """Current connection manager state.

    ``detail`` carries the SSID label for NETWORK_FOUND and the cause for ERROR.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    detail: str = ""

    @classmethod
    def disconnected(cls) -> ConnectionStatus:
        return cls(ConnectionState.DISCONNECTED)

    @classmethod
    def detecting_network(cls) -> ConnectionStatus:
        return cls(ConnectionState.DETECTING_NETWORK)

    @classmethod
    def network_found(cls, ssid: str) -> ConnectionStatus:
        return cls(ConnectionState.NETWORK_FOUND, ssid)

    @classmethod
    def connecting(cls) -> ConnectionStatus:
        return cls(ConnectionState.CONNECTING)

    @classmethod
    def connected(cls) -> ConnectionStatus:
        return cls(ConnectionState.CONNECTED)

    @classmethod
    def push_mode_active(cls) -> ConnectionStatus:
        return cls(ConnectionState.PUSH_MODE_ACTIVE)

    @classmethod
    def error(cls, message: str) -> ConnectionStatus:
        return cls(ConnectionState.ERROR, message)

    @property
    def is_connected(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.PUSH_MODE_ACTIVE)

    @property
    def display_text(self) -> str:
        match self.state:
            case ConnectionState.DISCONNECTED:
                return "Disconnected"
            case ConnectionState.DETECTING_NETWORK:
                return "Detecting camera network..."
            case ConnectionState.NETWORK_FOUND:
                return f"Found: {self.detail}"
            case ConnectionState.CONNECTING:
                return "Connecting..."
            case ConnectionState.CONNECTED:
                return "Connected"
            case ConnectionState.PUSH_MODE_ACTIVE:
                return "AutoShare active"
            case ConnectionState.ERROR:
                return f"Error: {self.detail}"


@dataclass(frozen=True)
class CameraFile:
    """A photo or video stored on the camera.

    Produced by both the PTP client (``handle`` is the object handle) and the
    DLNA client (``handle`` is the listing index, URLs are set).
    """

    handle: int
    filename: str
    format: ObjectFormat = ObjectFormat.UNDEFINED
    size: int = 0
    width: int = 0
    height: int = 0
    capture_date: str = ""
    thumbnail: bytes | None = field(default=None, repr=False)
    thumbnail_url: str | None = None
    content_url: str | None = None

    @property
    def is_image(self) -> bool:
        return self.format.is_image

    @property
    def is_video(self) -> bool:
        return self.format.is_video

    @property
    def parsed_date(self) -> datetime | None:
        """Capture date as datetime.

        PTP cameras report ``YYYYMMDDThhmmss``; DLNA ``dc:date`` is ISO-8601.
        """
        if not self.capture_date:
            return None
        try:
            return datetime.strptime(self.capture_date[:15], CAPTURE_DATE_FORMAT)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(self.capture_date)
        except ValueError:
            return None

    @property
    def resolution(self) -> str:
        return f"{self.width} × {self.height}"


@dataclass(frozen=True)
class DiscoveredService:
    """One port of a diagnostic sweep."""

    port: int
    label: str
    reachable: bool


@dataclass(frozen=True)
class ReceivedPhoto:
    """A file pushed by the camera over S2L."""

    filename: str
    data: bytes = field(repr=False)
    received_at: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_video(self) -> bool:
        return self.filename.lower().endswith((".mp4", ".avi", ".mov"))

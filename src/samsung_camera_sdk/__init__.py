"""Samsung Camera SDK - A Python SDK for Samsung Wi-Fi cameras (DV150F family).

Speaks the three protocols these cameras expose over their own access point.

Main components:
- protocol/: PTP/IP, S2L/1.0 and DLNA SOAP/DIDL-Lite wire formats
- connection/: PTP/IP client, DLNA (MobileLink) client, AutoShare push server, network probes
- client.py: Connection orchestrator (network detection, mode selection)
- sync.py + media_store.py: Sync history, photo library and thumbnail cache
- config.py: Timeout configuration and camera profile persistence

Key features:
- Automatic detection of MobileLink (pull) and AutoShare (push) modes
- Recursive DLNA browsing with cycle and depth guards
- Incremental sync that never re-downloads synced or deleted files
"""

from importlib.metadata import version

__version__ = version("samsung-camera-sdk-py")

from .client import CameraConnectionManager
from .config import CameraProfile, CameraProfileManager, TimeoutConfig
from .connection import AutoShareServer, DlnaClient, PtpIpClient, ServerState
from .log_buffer import LogBuffer, LogEntry, LogLevel
from .logging_config import setup_logging
from .media_store import DirectoryPhotoLibrary, MediaStatus, ThumbnailCache, TinyDBMediaStore
from .models import CameraFile, ConnectionState, ConnectionStatus, DetectedMode, DiscoveredService, ReceivedPhoto
from .rich_utils import Console, Progress, Table, console, create_progress, create_table
from .sync import SyncManager, SyncReport

__all__ = [
    "AutoShareServer",
    "CameraConnectionManager",
    "CameraFile",
    "CameraProfile",
    "CameraProfileManager",
    "ConnectionState",
    "ConnectionStatus",
    "Console",
    "DetectedMode",
    "DirectoryPhotoLibrary",
    "DiscoveredService",
    "DlnaClient",
    "LogBuffer",
    "LogEntry",
    "LogLevel",
    "MediaStatus",
    "Progress",
    "PtpIpClient",
    "ReceivedPhoto",
    "ServerState",
    "SyncManager",
    "SyncReport",
    "Table",
    "ThumbnailCache",
    "TimeoutConfig",
    "TinyDBMediaStore",
    "console",
    "create_progress",
    "create_table",
    "setup_logging",
]

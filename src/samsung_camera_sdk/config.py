"""Timeout configuration and camera profile persistence."""

from __future__ import annotations

__all__ = ["CameraProfile", "CameraProfileManager", "TimeoutConfig"]

import contextlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from tinydb import Query, TinyDB

from .models import DetectedMode

logger = logging.getLogger(__name__)


@dataclass
class TimeoutConfig:
    """Timeout configuration.

    All timeouts, pauses and retry counts used by the protocol clients.
    """

    # PTP/IP
    ptp_step_timeout: float = 8.0  # Each connect step (init, event, session, device info)
    ptp_receive_timeout: float = 10.0  # Hard timeout for a single exact-length read

    # Reachability probing
    probe_timeout: float = 2.0  # TCP connect timeout per probe
    network_found_settle_delay: float = 0.5  # Pause between NetworkFound and Connecting
    discovery_http_timeout: float = 4.0  # Per request in the diagnostic HTTP sweep

    # DLNA / MobileLink
    dlna_request_timeout: float = 15.0  # Per HTTP request
    dlna_heartbeat_interval: float = 30.0  # Keep-alive Browse interval
    dlna_browse_throttle: float = 0.5  # Delay before recursing into a container
    dlna_session_settle_delay: float = 0.5  # After GetDeviceConfiguration
    max_browse_depth: int = 16  # Container nesting bound for recursive browse

    # S2L / AutoShare
    s2l_handshake_timeout: float = 4.0  # Per registration attempt
    s2l_handshake_attempts: int = 3
    s2l_retry_after_timeout: float = 2.0
    s2l_retry_after_error: float = 1.0
    s2l_bind_retry_interval: float = 2.0  # Retry after EADDRINUSE
    s2l_listener_grace: float = 0.5  # Added to one bind retry when waiting for the listener


@dataclass
class CameraProfile:
    """Last known endpoint of a camera.

    Attributes:
        label: Network label (SSID or "Camera detected" label)
        ip_address: Camera IP address on its own access point
        mode: Detected camera mode
        model: Camera model name, if known
        serial: Camera serial number, if known
    """

    label: str
    ip_address: str
    mode: DetectedMode = DetectedMode.UNKNOWN
    model: str = ""
    serial: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {
            "label": self.label,
            "ip_address": self.ip_address,
            "mode": self.mode.value,
            "model": self.model,
            "serial": self.serial,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> CameraProfile:
        """Create from dictionary."""
        return cls(
            label=data["label"],
            ip_address=data["ip_address"],
            mode=DetectedMode(data.get("mode", DetectedMode.UNKNOWN.value)),
            model=data.get("model", ""),
            serial=data.get("serial", ""),
        )


class CameraProfileManager:
    """Camera profile persistence manager.

    Uses Repository pattern to encapsulate TinyDB operations.

    Supports context manager protocol for automatic resource cleanup:
        with CameraProfileManager() as manager:
            manager.save(profile)
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize profile manager.

        Args:
            db_path: Database file path, defaults to camera_profiles.json in current directory
        """
        if db_path is None:
            db_path = Path("camera_profiles.json")

        self._db_path = db_path
        self._db = TinyDB(str(db_path))
        self._table = self._db.table("profiles")
        logger.info(f"Camera profile database initialized: {db_path}")

    def __enter__(self) -> CameraProfileManager:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and close database."""
        self.close()

    def __del__(self) -> None:
        """Cleanup: ensure database is closed when object is destroyed."""
        with contextlib.suppress(Exception):
            if hasattr(self, "_db") and self._db is not None:
                self._db.close()

    def save(self, profile: CameraProfile) -> None:
        """Save or update a camera profile (keyed by label).

        Args:
            profile: Camera profile
        """
        query = Query()
        data = {**profile.to_dict(), "updated_at": time.time()}
        self._table.upsert(data, query.label == profile.label)
        logger.info(f"Saved camera profile '{profile.label}': {profile.ip_address} ({profile.mode.value})")

    def load(self, label: str) -> CameraProfile | None:
        """Load a camera profile.

        Args:
            label: Network label

        Returns:
            Camera profile, or None if not found
        """
        query = Query()
        result = self._table.search(query.label == label)

        if not result:
            logger.debug(f"Camera profile not found for '{label}'")
            return None

        return CameraProfile.from_dict(result[0])

    def last(self) -> CameraProfile | None:
        """Most recently saved profile, if any."""
        records = self._table.all()
        if not records:
            return None
        latest = max(records, key=lambda r: r.get("updated_at", 0.0))
        return CameraProfile.from_dict(latest)

    def delete(self, label: str) -> bool:
        """Delete a camera profile.

        Args:
            label: Network label

        Returns:
            Whether deletion was successful
        """
        query = Query()
        removed = self._table.remove(query.label == label)
        if removed:
            logger.info(f"Deleted camera profile '{label}'")
            return True
        logger.debug(f"Camera profile '{label}' does not exist")
        return False

    def list_all(self) -> dict[str, CameraProfile]:
        """List all saved profiles.

        Returns:
            Mapping from label to profile
        """
        result = {record["label"]: CameraProfile.from_dict(record) for record in self._table.all()}
        logger.debug(f"Listed all camera profiles, total: {len(result)}")
        return result

    def close(self) -> None:
        """Close database connection."""
        if hasattr(self, "_db") and self._db is not None:
            self._db.close()
            self._db = None
            logger.debug("Camera profile database closed")

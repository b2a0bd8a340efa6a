"""Camera connection orchestrator.

Detects the camera network and mode, then assembles the matching protocol client:
- MobileLink (pull): DlnaClient, followed by a file listing and a sync pass
- AutoShare (push): AutoShareServer, photos flow to the SyncManager as they arrive
- PTP/IP on explicit request

The manager acts as an "assembler" and owns every client it creates.
"""

from __future__ import annotations

__all__ = ["CameraConnectionManager", "StatusCallback"]

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .config import CameraProfile, CameraProfileManager, TimeoutConfig
from .connection import (
    AutoShareServer,
    DlnaClient,
    PhotoCallback,
    ProbeFunc,
    PtpIpClient,
    current_ssid,
    is_camera_ssid,
    is_host_reachable,
    local_ipv4,
    probe_http_paths,
    probe_subnets,
    scan_ports,
)
from .constants import (
    AUTOSHARE_CAMERA_IP,
    AUTOSHARE_SUBNET_PREFIX,
    DEFAULT_CAMERA_IP,
    DISCOVERY_HTTP_PORTS,
    DISCOVERY_PORTS,
    PROBE_TABLE,
    PTP_IP_PORT,
)
from .exceptions import (
    AutoShareError,
    CameraNotFoundError,
    CustomCameraError,
    DlnaConnectionError,
    DlnaError,
    SessionNotOpenError,
)
from .log_buffer import LogBuffer, LogEntry
from .models import CameraFile, ConnectionState, ConnectionStatus, DetectedMode, DiscoveredService, ReceivedPhoto
from .sync import SyncManager, SyncReport

logger = logging.getLogger(__name__)

StatusCallback = Callable[[ConnectionStatus], None]


class CameraConnectionManager:
    """Connection lifecycle of one Samsung camera.

    Status transitions:
        disconnected → detecting_network → network_found → connecting →
        connected | push_mode_active | error → disconnected

    Usage:
        async with CameraConnectionManager(sync_manager=sync) as manager:
            manager.subscribe(print)
            await manager.connect()
            for file in manager.files:
                ...
    """

    def __init__(
        self,
        timeout_config: TimeoutConfig | None = None,
        sync_manager: SyncManager | None = None,
        profile_manager: CameraProfileManager | None = None,
        dlna_factory: Callable[[str], DlnaClient] | None = None,
        ptp_factory: Callable[[str, int], PtpIpClient] | None = None,
        autoshare_factory: Callable[[PhotoCallback], AutoShareServer] | None = None,
        ssid_provider: Callable[[], Awaitable[str | None]] = current_ssid,
        local_ip_provider: Callable[[], str | None] | None = None,
        probe: ProbeFunc = is_host_reachable,
        probe_table: Sequence[tuple[str, int, DetectedMode]] = PROBE_TABLE,
        auto_sync: bool = True,
    ) -> None:
        """Initialize the manager.

        Args:
            timeout_config: Timeout configuration shared with every client
            sync_manager: Receives listings (pull) and pushed photos; None disables syncing
            profile_manager: Remembers the last camera endpoint per network label
            dlna_factory: Builds a DlnaClient for a camera IP
            ptp_factory: Builds a PtpIpClient for (host, port)
            autoshare_factory: Builds an AutoShareServer around a photo callback
            ssid_provider: Returns the current Wi-Fi SSID
            local_ip_provider: Returns this host's address on the camera network
            probe: Reachability probe used by detection and discovery
            probe_table: (ip, port, mode) entries probed during detection
            auto_sync: Run a sync pass after listing files in pull mode
        """
        self._timeout = timeout_config or TimeoutConfig()
        self._sync = sync_manager
        self._profiles = profile_manager
        self._dlna_factory = dlna_factory or (lambda host: DlnaClient(host, timeout_config=self._timeout))
        self._ptp_factory = ptp_factory or (lambda host, port: PtpIpClient(host, port, self._timeout))
        self._autoshare_factory = autoshare_factory or (
            lambda on_photo: AutoShareServer(on_photo, self._timeout)
        )
        self._ssid_provider = ssid_provider
        self._local_ip_provider = local_ip_provider or (lambda: local_ipv4(self.camera_ip))
        self._probe = probe
        self._probe_table = probe_table
        self._auto_sync = auto_sync

        self._status = ConnectionStatus.disconnected()
        self._subscribers: list[StatusCallback] = []
        self._lock = asyncio.Lock()

        self.camera_ip = DEFAULT_CAMERA_IP
        if self._profiles is not None and (profile := self._profiles.last()) is not None:
            self.camera_ip = profile.ip_address
        self.detected_mode = DetectedMode.UNKNOWN
        self.network_label: str | None = None

        self.dlna_client: DlnaClient | None = None
        self.ptp_client: PtpIpClient | None = None
        self.autoshare_server: AutoShareServer | None = None
        self._autoshare_unsubscribe: Callable[[], None] | None = None

        self.files: list[CameraFile] = []
        self.discovered_services: list[DiscoveredService] = []
        self.last_sync_report: SyncReport | None = None
        self.is_loading_files = False

        self.log = LogBuffer(maxlen=300, logger=logger)

    async def __aenter__(self) -> CameraConnectionManager:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # ==================== Status ====================

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a status callback.

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        logger.debug(f"Status → {status.display_text}")
        for callback in list(self._subscribers):
            try:
                callback(status)
            except Exception as e:
                logger.warning(f"Status subscriber failed: {e}")

    def _forward_log(self, entry: LogEntry) -> None:
        self.log.add(entry.level, entry.message, mirror=False)

    # ==================== Connection flow ====================

    async def connect(self) -> ConnectionStatus:
        """Detect the camera and connect in the detected mode.

        Never raises for camera-side failures; they end in the ``error`` state.

        Returns:
            Final status
        """
        async with self._lock:
            await self._close_clients()
            self.log.clear()
            self.files = []
            self.detected_mode = DetectedMode.UNKNOWN
            self._set_status(ConnectionStatus.detecting_network())
            self.log.info("Starting camera detection...")

            try:
                label = await self._detect()
            except CameraNotFoundError as e:
                self.log.error(str(e))
                self._set_status(ConnectionStatus.error(str(e)))
                return self._status

            self.network_label = label
            self._set_status(ConnectionStatus.network_found(label))
            await asyncio.sleep(self._timeout.network_found_settle_delay)
            self._set_status(ConnectionStatus.connecting())

            match self.detected_mode:
                case DetectedMode.AUTO_SHARE:
                    self.log.info("AutoShare mode detected, starting S2L...")
                    if await self._connect_auto_share():
                        self._set_status(ConnectionStatus.push_mode_active())
                        self._save_profile()
                    else:
                        self._set_status(ConnectionStatus.error("Failed to start AutoShare"))
                case _:
                    self.log.info("MobileLink/DLNA mode, connecting...")
                    await self._connect_mobile_link()

            return self._status

    async def _detect(self) -> str:
        """Resolve camera IP and mode.

        Returns:
            Network label (SSID or a "Camera detected" description)

        Raises:
            CameraNotFoundError: No SSID match and no probe answered
        """
        ssid = await self._ssid_provider()
        matched = ssid if is_camera_ssid(ssid) else None
        if matched:
            self.log.success(f"Camera SSID detected: {matched}")
        elif ssid:
            self.log.warning(f"SSID '{ssid}' does not match the camera AP patterns")
        else:
            self.log.warning("SSID detection failed")
            self.log.info("Scanning all Samsung subnets...")

        found = await probe_subnets(self._probe_table, self._timeout.probe_timeout, self._probe)

        if found is not None:
            self.camera_ip, self.detected_mode = found
            mode_name = "AutoShare" if self.detected_mode is DetectedMode.AUTO_SHARE else "MobileLink"
            if matched:
                self.log.success(f"Mode detected: {mode_name} at {self.camera_ip}")
                return matched
            label = f"Camera detected: {mode_name} ({self.camera_ip})"
            self.log.success(label)
            return label

        if matched:
            # Keep the default IP and let the mode stay unknown
            self.log.warning("SSID detected, but no port answered")
            return matched

        raise CameraNotFoundError("Camera not found. Check the Wi-Fi connection.")

    async def _connect_auto_share(self) -> bool:
        local_ip = self._local_ip_provider()
        if not local_ip:
            self.log.error("Could not determine the local IP address")
            return False

        camera_ip = AUTOSHARE_CAMERA_IP if local_ip.startswith(AUTOSHARE_SUBNET_PREFIX) else self.camera_ip
        self.log.info(f"Local: {local_ip}, camera: {camera_ip}")

        server = self._autoshare_factory(self._handle_pushed_photo)
        self._autoshare_unsubscribe = server.log.subscribe(self._forward_log)
        self.autoshare_server = server

        try:
            await server.start(camera_ip, local_ip)
        except AutoShareError as e:
            self.log.error(f"AutoShare failed to start: {e}")
            return False
        return server.is_active

    async def _connect_mobile_link(self) -> None:
        client = self._dlna_factory(self.camera_ip)
        try:
            await client.connect()
        except DlnaError as e:
            await client.disconnect()
            self.log.error(f"DLNA connection failed: {e}")
            self._set_status(ConnectionStatus.error(f"DLNA connection failed: {e}"))
            return

        self.dlna_client = client
        self._set_status(ConnectionStatus.connected())
        self._save_profile()

        self.log.info("Connection established, loading files...")
        await self.load_files()

        self.log.success("Connected to Samsung camera via DLNA!")
        if client.camera_info is not None:
            self.log.info(f"Camera: {client.camera_info.friendly_name}")

    def _save_profile(self) -> None:
        if self._profiles is None or not self.network_label:
            return
        info = self.dlna_client.camera_info if self.dlna_client else None
        self._profiles.save(
            CameraProfile(
                label=self.network_label,
                ip_address=self.camera_ip,
                mode=self.detected_mode,
                model=info.model_name if info else "",
                serial=info.serial_number if info else "",
            )
        )

    async def _handle_pushed_photo(self, photo: ReceivedPhoto) -> None:
        self.log.info(f"Photo received: {photo.filename} ({photo.size} bytes)")
        if self._sync is not None:
            await self._sync.save_auto_share_photo(photo)

    async def connect_ptp(self, host: str | None = None, port: int = PTP_IP_PORT) -> PtpIpClient:
        """Open a PTP/IP session alongside (or instead of) DLNA.

        Raises:
            PtpError: Connection or session setup failed
        """
        if self.ptp_client is not None:
            await self.ptp_client.disconnect()
            self.ptp_client = None

        client = self._ptp_factory(host or self.camera_ip, port)
        await client.connect()
        self.ptp_client = client
        self.log.success(f"PTP/IP session open with {client.host}:{client.port}")
        return client

    async def disconnect(self) -> None:
        """Tear down every client. Idempotent."""
        async with self._lock:
            await self._close_clients()
            self.files = []
            if self._status.state is not ConnectionState.DISCONNECTED:
                self.log.info("Disconnected")
            self._set_status(ConnectionStatus.disconnected())

    async def _close_clients(self) -> None:
        if self.ptp_client is not None:
            await self.ptp_client.disconnect()
            self.ptp_client = None
        if self.autoshare_server is not None:
            await self.autoshare_server.stop()
            self.autoshare_server = None
        if self._autoshare_unsubscribe is not None:
            self._autoshare_unsubscribe()
            self._autoshare_unsubscribe = None
        if self.dlna_client is not None:
            await self.dlna_client.disconnect()
            self.dlna_client = None

    # ==================== Files ====================

    async def load_files(self) -> list[CameraFile]:
        """List files via DLNA, else via PTP/IP. Errors are logged.

        In pull mode a sync pass over new files follows when enabled.
        """
        self.is_loading_files = True
        try:
            if self.dlna_client is not None:
                await self._load_files_via_dlna(self.dlna_client)
            elif self.ptp_client is not None:
                try:
                    self.files = await self.ptp_client.list_files()
                    self.log.success(f"Loaded {len(self.files)} files from camera")
                except CustomCameraError as e:
                    self.log.error(f"Failed to list files: {e}")
        finally:
            self.is_loading_files = False
        return self.files

    async def _load_files_via_dlna(self, client: DlnaClient) -> None:
        self.log.info("Initializing DLNA session...")
        await client.initialize_session()
        await asyncio.sleep(self._timeout.dlna_session_settle_delay)

        self.log.info("Fetching files via DLNA Browse (recursive)...")
        self.files = await client.list_files("0")

        if self.files and self._auto_sync and self._sync is not None:
            self.log.info("Starting automatic import of new files...")
            self.last_sync_report = await self._sync.sync_files(self.files, client.download)
            self.log.info(f"Sync: {self.last_sync_report.summary()}")

    async def download_file(self, file: CameraFile) -> bytes:
        """Full-resolution download: the DLNA content URL if any, else PTP GetObject.

        Raises:
            DlnaConnectionError: File has a content URL but DLNA is not connected
            SessionNotOpenError: No content URL and no PTP/IP session
        """
        if file.content_url:
            if self.dlna_client is None:
                raise DlnaConnectionError("DLNA client not connected")
            self.log.info(f"Downloading {file.filename} via DLNA...")
            data = await self.dlna_client.download(file.content_url)
        else:
            if self.ptp_client is None:
                raise SessionNotOpenError("No PTP/IP session")
            self.log.info(f"Downloading {file.filename} via PTP...")
            data = await self.ptp_client.get_object(file.handle)

        self.log.success(f"Download complete: {file.filename} ({len(data)} bytes)")
        return data

    # ==================== Diagnostics ====================

    async def aggressive_discovery(self, ip: str | None = None) -> list[DiscoveredService]:
        """Sweep the diagnostic port list, then probe HTTP paths on open web ports.

        Returns:
            Open services
        """
        ip = ip or self.camera_ip
        self.log.info(f"=== 1. Scanning ports on {ip} ===")
        services = await scan_ports(ip, DISCOVERY_PORTS, self._timeout.probe_timeout, self._probe)
        self.discovered_services = [service for service in services if service.reachable]
        for service in self.discovered_services:
            self.log.success(f"Port {service.port} ({service.label}) open")

        open_ports = {service.port for service in self.discovered_services}
        http_ports = [port for port in DISCOVERY_HTTP_PORTS if port in open_ports]

        self.log.info("=== 2. Probing HTTP ===")
        results = await probe_http_paths(ip, http_ports, timeout=self._timeout.discovery_http_timeout)
        for result in results:
            self.log.success(f"GET {result.url} → HTTP {result.status} | {result.size}b | {result.content_type}")
            if result.preview:
                self.log.debug(f">> {result.preview}")
        self.log.info("=== Discovery finished ===")
        return self.discovered_services

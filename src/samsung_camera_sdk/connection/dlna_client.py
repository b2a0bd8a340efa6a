"""Samsung DLNA (MobileLink) client.

Samsung cameras in MobileLink mode expose a UPnP ContentDirectory dialect on
port 7676 and an MJPEG live stream on port 7679:

- Device description: GET /smp_6_
- ContentDirectory control (SOAP): POST /smp_4_ (or the advertised controlURL)
- Live stream: GET http://<camera>:7679/livestream.avi
"""

from __future__ import annotations

__all__ = ["DlnaClient"]

import asyncio
import contextlib
import logging
import socket
import uuid

import aiohttp

from ..config import TimeoutConfig
from ..constants import (
    CONTENT_DIRECTORY_NS,
    DLNA_CONTROL_PORT,
    DLNA_DEFAULT_CONTROL_PATH,
    DLNA_DESCRIPTOR_PATH,
    DLNA_HIGH_QUALITY_STREAM,
    DLNA_LOW_QUALITY_STREAM,
    DLNA_REGISTRATION_ACTIONS,
    DLNA_REGISTRATION_FALLBACK_PATH,
    DLNA_STREAM_PORT,
    DLNA_USER_AGENT,
)
from ..exceptions import DlnaConnectionError, DlnaError, DlnaParseError, DlnaResponseError
from ..log_buffer import LogBuffer
from ..models import CameraFile
from ..protocol.dlna_xml import (
    CameraCapabilities,
    CameraInfo,
    DlnaMediaItem,
    ServiceDescriptor,
    build_soap_envelope,
    decode_response_body,
    parse_browse_response,
    parse_capabilities,
    parse_device_description,
)
from ..protocol.ptp_types import ObjectFormat

logger = logging.getLogger(__name__)

BROWSE_PAGE_SIZE = 100
DESCRIPTOR_MARKERS = ("<?xml", "<root", "xmlns")


class DlnaClient:
    """Samsung DLNA client.

    Responsibilities:
    - Locate and parse the device description
    - Call ContentDirectory SOAP actions (Browse, GetInformation, vendor actions)
    - Keep the camera's session alive with a periodic heartbeat
    - Download content URLs
    """

    def __init__(
        self,
        host: str,
        port: int = DLNA_CONTROL_PORT,
        timeout_config: TimeoutConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        device_name: str | None = None,
        stream_port: int = DLNA_STREAM_PORT,
    ) -> None:
        """Initialize DLNA client.

        Args:
            host: Camera IP address
            port: DLNA control port
            timeout_config: Timeout configuration
            session: Existing HTTP session (not closed by this client)
            device_name: Name shown on the camera during registration, defaults to the hostname
            stream_port: Live stream port
        """
        self.host = host
        self.port = port
        self.stream_port = stream_port
        self._timeout = timeout_config or TimeoutConfig()
        self._session = session
        self._owns_session = session is None
        self._device_name = device_name or socket.gethostname()
        self._device_id = str(uuid.uuid4()).upper()

        self._control_path = ""
        self._camera_info: CameraInfo | None = None
        self._capabilities: CameraCapabilities | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._is_connected = False
        self._closed = False

        self.log = LogBuffer(maxlen=200, logger=logger)

    # ==================== Properties ====================

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def stream_base_url(self) -> str:
        return f"http://{self.host}:{self.stream_port}"

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def camera_info(self) -> CameraInfo | None:
        return self._camera_info

    @property
    def capabilities(self) -> CameraCapabilities | None:
        return self._capabilities

    @property
    def control_path(self) -> str:
        """Cached ContentDirectory control path, or the vendor default."""
        return self._control_path or DLNA_DEFAULT_CONTROL_PATH

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    # ==================== Lifecycle ====================

    async def __aenter__(self) -> DlnaClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Connect: device description, capabilities, registration, heartbeat.

        Only a missing or unreadable device description is fatal; capabilities,
        registration and SCPD fetches are best effort.

        Raises:
            DlnaConnectionError: Descriptor not found or HTTP transport failure
            DlnaResponseError: Device description returned non-200
        """
        if self._is_connected:
            logger.debug(f"DLNA already connected to {self.host}, skipping")
            return

        self.log.info(f"Connecting to Samsung DLNA at {self.base_url}...")
        self._closed = False
        self._ensure_session()

        try:
            descriptor_path = await self.probe_descriptor()
            if descriptor_path is None:
                raise DlnaConnectionError(
                    f"Could not find DLNA XML descriptor endpoint on port {self.port}"
                )

            info = await self.get_device_description(descriptor_path)
            self._camera_info = info
            self.log.info(f"Camera: {info.friendly_name}")
            self.log.info(f"Model: {info.model_name} ({info.manufacturer})")
            self.log.info(f"Serial: {info.serial_number}")
            self.log.info(f"Services: {len(info.services)}")
            for service in info.services:
                self.log.debug(f"  Service: {service.service_type} control={service.control_url} scpd={service.scpd_url}")

            content_directory = info.content_directory
            if content_directory is not None and content_directory.control_url:
                self._control_path = content_directory.control_url
            else:
                self.log.warning(f"No ContentDirectory controlURL advertised, using {DLNA_DEFAULT_CONTROL_PATH}")

            try:
                caps = await self.get_information()
                self._capabilities = caps
                self.log.info(f"Available shots: {caps.available_shots}, max zoom: {caps.max_zoom}")
                resolutions = ", ".join(f"{w}x{h}" for w, h in caps.resolutions)
                self.log.info(f"Resolutions: {resolutions or 'n/a'}")
            except DlnaError as e:
                self.log.error(f"GetInformation failed: {e}")
                self.log.info("Continuing without capabilities...")

            await self.register_client()
            self.start_heartbeat()

            for service in info.services:
                await self.fetch_scpd(service)
        except (Exception, asyncio.CancelledError):
            await self.disconnect()
            raise

        self._is_connected = True
        self.log.success("Connected to Samsung DLNA camera!")

    async def disconnect(self) -> None:
        """Stop the heartbeat and close the HTTP session. Idempotent."""
        await self.stop_heartbeat()
        self._closed = True
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
        if self._is_connected:
            self.log.info("Disconnected")
        self._is_connected = False

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise DlnaConnectionError("Client is disconnected, call connect() first")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout.dlna_request_timeout),
                headers={"User-Agent": DLNA_USER_AGENT},
            )
            self._owns_session = True
        return self._session

    # ==================== HTTP transport ====================

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    async def _get(self, url: str) -> tuple[int, str, bytes]:
        session = self._ensure_session()
        try:
            async with session.get(url, headers={"User-Agent": DLNA_USER_AGENT}) as resp:
                body = await resp.read()
                return resp.status, resp.headers.get("Content-Type", ""), body
        except (aiohttp.ClientError, TimeoutError) as e:
            raise DlnaConnectionError(f"GET {url} failed: {e}") from e

    async def _soap(self, action: str, arguments=(), path: str | None = None) -> tuple[int, str]:
        """POST a SOAP action.

        Returns:
            (HTTP status, decoded body)
        """
        session = self._ensure_session()
        url = self._url(path or self.control_path)
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPAction": f'"{CONTENT_DIRECTORY_NS}#{action}"',
            "User-Agent": DLNA_USER_AGENT,
        }
        body = build_soap_envelope(action, CONTENT_DIRECTORY_NS, arguments)
        self.log.sent(f"SOAP {action} → {url}")
        try:
            async with session.post(url, data=body.encode("utf-8"), headers=headers) as resp:
                raw = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as e:
            raise DlnaConnectionError(f"SOAP {action} failed: {e}") from e

        text = decode_response_body(raw)
        self.log.received(f"HTTP {status}, {len(raw)} bytes: {text[:500]}")
        return status, text

    # ==================== Connect steps ====================

    async def probe_descriptor(self) -> str | None:
        """Check the known descriptor path.

        Returns:
            Descriptor path when it serves something that looks like XML, else None
        """
        url = self._url(DLNA_DESCRIPTOR_PATH)
        self.log.info(f"Probing for XML descriptor at {DLNA_DESCRIPTOR_PATH}...")
        try:
            status, content_type, body = await self._get(url)
        except DlnaConnectionError as e:
            self.log.error(f"Could not fetch descriptor at {DLNA_DESCRIPTOR_PATH}: {e}")
            return None

        content_type = content_type.lower()
        if status == 200 and ("xml" in content_type or "text" in content_type):
            prefix = body[:50].decode("ascii", errors="ignore")
            if any(marker in prefix for marker in DESCRIPTOR_MARKERS):
                self.log.success(f"Found descriptor: {DLNA_DESCRIPTOR_PATH}")
                return DLNA_DESCRIPTOR_PATH

        self.log.error(f"Could not fetch descriptor at {DLNA_DESCRIPTOR_PATH} (HTTP {status}, {content_type or 'no type'})")
        return None

    async def get_device_description(self, path: str) -> CameraInfo:
        """Fetch and parse the device description.

        Malformed XML yields the default CameraInfo (no services), so the
        control path falls back to the vendor default.

        Raises:
            DlnaResponseError: Non-200 status
        """
        url = self._url(path)
        self.log.sent(f"GET {url}")
        status, content_type, body = await self._get(url)
        xml = decode_response_body(body)
        self.log.received(f"HTTP {status}, {len(body)} bytes, Content-Type: {content_type or 'unknown'}")
        self.log.debug(f"XML (first 500 chars): {xml[:500]}")

        if status != 200:
            raise DlnaResponseError(status)

        try:
            return parse_device_description(xml)
        except DlnaParseError as e:
            self.log.warning(f"{e}, using defaults")
            return CameraInfo(raw_xml=xml)

    async def get_information(self) -> CameraCapabilities:
        """Vendor GetInformation action.

        Raises:
            DlnaResponseError: Non-200 status
            DlnaParseError: Malformed response
        """
        status, text = await self._soap("GetInformation")
        if status != 200:
            raise DlnaResponseError(status)
        return parse_capabilities(text)

    async def register_client(self) -> str | None:
        """Announce this client so the camera shows its connection prompt.

        Tries each vendor action until one answers HTTP 200.

        Returns:
            Name of the accepted action, or None if none succeeded
        """
        path = self._control_path or DLNA_REGISTRATION_FALLBACK_PATH
        arguments = (("DeviceName", self._device_name), ("DeviceID", self._device_id))

        for action in DLNA_REGISTRATION_ACTIONS:
            self.log.info(f"Handshake attempt: {action}")
            try:
                status, _ = await self._soap(action, arguments, path)
            except DlnaError as e:
                self.log.error(f"Handshake {action} error: {e}")
                continue
            if status == 200:
                self.log.success(f"Handshake successful with {action}!")
                return action
            self.log.info(f"Handshake {action} failed: HTTP {status}")

        self.log.warning("No registration action accepted, continuing unregistered")
        return None

    async def initialize_session(self) -> None:
        """GetDeviceConfiguration, which stabilizes the camera before browsing. Best effort."""
        try:
            status, text = await self._soap("GetDeviceConfiguration")
            self.log.info(f"Session init: HTTP {status}, {len(text)} chars")
        except DlnaError as e:
            self.log.error(f"Session init failed: {e}")

    async def fetch_scpd(self, service: ServiceDescriptor) -> str | None:
        """Fetch a service's SCPD document for diagnostics. Best effort."""
        if not service.scpd_url:
            return None
        url = self._url(service.scpd_url)
        self.log.info(f"Fetching SCPD for {service.service_type} → {url}")
        try:
            status, _, body = await self._get(url)
        except DlnaError as e:
            self.log.error(f"Error fetching SCPD: {e}")
            return None
        if status != 200:
            self.log.error(f"Failed to fetch SCPD: HTTP {status}")
            return None
        xml = decode_response_body(body)
        self.log.debug(f"SCPD for {service.service_type}: {xml[:800]}")
        return xml

    # ==================== Heartbeat ====================

    def start_heartbeat(self) -> None:
        """(Re)start the periodic keep-alive Browse."""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name=f"dlna-heartbeat-{self.host}")

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._timeout.dlna_heartbeat_interval)
            try:
                await self.browse("0", 0, 1)
                self.log.debug("Heartbeat sent")
            except DlnaError as e:
                self.log.warning(f"Heartbeat failed: {e}")

    # ==================== Browse ====================

    def _browse_arguments(self, object_id: str, start: int, count: int):
        return (
            ("ObjectID", object_id),
            ("BrowseFlag", "BrowseDirectChildren"),
            ("Filter", "*"),
            ("StartingIndex", start),
            ("RequestedCount", count),
            ("SortCriteria", ""),
        )

    async def browse(self, object_id: str = "0", start: int = 0, count: int = BROWSE_PAGE_SIZE) -> list[DlnaMediaItem]:
        """Browse the direct children of one container.

        Raises:
            DlnaResponseError: Non-200 status
            DlnaParseError: Malformed response
        """
        status, text = await self._soap("Browse", self._browse_arguments(object_id, start, count))
        if status != 200:
            raise DlnaResponseError(status)
        return list(parse_browse_response(text).items)

    async def browse_all(self, object_id: str = "0") -> list[DlnaMediaItem]:
        """Recursively browse a container and all of its sub-containers.

        A container id is browsed at most once and nesting is bounded by
        ``max_browse_depth``. A container that fails to browse contributes
        nothing; its siblings are still browsed.

        Args:
            object_id: Root container id

        Returns:
            Items in traversal order
        """
        return await self._browse_tree(object_id, 0, set())

    async def _browse_tree(self, object_id: str, depth: int, visited: set[str]) -> list[DlnaMediaItem]:
        visited.add(object_id)
        items: list[DlnaMediaItem] = []
        self.log.sent(f"BrowseAll(objectID={object_id})")

        try:
            status, text = await self._soap("Browse", self._browse_arguments(object_id, 0, BROWSE_PAGE_SIZE))
            if status != 200:
                self.log.error(f"Browse {object_id} returned HTTP {status}")
                return items

            listing = parse_browse_response(text)
            items.extend(listing.items)
            self.log.info(f"Found {len(listing.items)} items in objectID={object_id}")

            for container_id in listing.containers:
                if container_id in visited:
                    self.log.warning(f"Skipping already browsed container {container_id}")
                    continue
                if depth + 1 > self._timeout.max_browse_depth:
                    self.log.warning(f"Container {container_id} exceeds max depth {self._timeout.max_browse_depth}, skipping")
                    continue
                self.log.info(f"Recursing into container {container_id}...")
                await asyncio.sleep(self._timeout.dlna_browse_throttle)
                items.extend(await self._browse_tree(container_id, depth + 1, visited))
        except DlnaError as e:
            self.log.error(f"Browse {object_id} failed: {e}")

        return items

    async def list_files(self, object_id: str = "0") -> list[CameraFile]:
        """Recursive browse mapped to CameraFile (listing index as handle)."""
        items = await self.browse_all(object_id)
        files = [
            CameraFile(
                handle=index,
                filename=item.title,
                format=ObjectFormat.MP4 if item.is_video else ObjectFormat.JPEG,
                size=item.size,
                capture_date=item.date,
                thumbnail_url=item.thumbnail_url or None,
                content_url=item.url or None,
            )
            for index, item in enumerate(items)
        ]
        self.log.success(f"Listed {len(files)} files via DLNA")
        return files

    # ==================== Actions ====================

    async def capture_photo(self) -> str:
        """Trigger a capture (X_CaptureImage).

        Returns:
            Response body

        Raises:
            DlnaResponseError: Non-200 status
        """
        status, text = await self._soap("X_CaptureImage")
        if status != 200:
            raise DlnaResponseError(status)
        return text

    async def download(self, url: str) -> bytes:
        """Fetch a content URL.

        Raises:
            DlnaConnectionError: Transport failure
            DlnaResponseError: Non-200 status
        """
        url = self._url(url)
        self.log.sent(f"GET {url}")
        status, _, body = await self._get(url)
        self.log.received(f"HTTP {status}, {len(body)} bytes")
        if status != 200:
            raise DlnaResponseError(status)
        return body

    def get_stream_urls(self) -> tuple[str, str]:
        """Live stream URLs (high, low quality), advertised or vendor defaults."""
        caps = self._capabilities
        high = caps.high_quality_stream_url if caps and caps.high_quality_stream_url else None
        low = caps.low_quality_stream_url if caps and caps.low_quality_stream_url else None
        return (
            high or f"{self.stream_base_url}{DLNA_HIGH_QUALITY_STREAM}",
            low or f"{self.stream_base_url}{DLNA_LOW_QUALITY_STREAM}",
        )

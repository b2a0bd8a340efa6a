"""AutoShare push receiver (S2L/1.0).

In AutoShare mode the camera pushes every new photo to a registered phone:

1. The client listens on TCP 1801
2. The client registers itself on the camera's TCP 801 (camera may ask the user to confirm)
3. For each photo the camera connects to 1801, sends an S2L header plus the file, and
   expects a ``Result_OK`` frame back
"""

from __future__ import annotations

__all__ = ["AutoShareServer", "PhotoCallback", "ServerState"]

import asyncio
import contextlib
import errno
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from ..config import TimeoutConfig
from ..constants import S2L_LISTEN_PORT, S2L_READ_CHUNK, S2L_REGISTRATION_PORT
from ..exceptions import AutoShareError
from ..log_buffer import LogBuffer
from ..models import ReceivedPhoto
from ..protocol.s2l import (
    RegistrationReply,
    build_bye_bye,
    build_registration_request,
    build_response,
    classify_registration_reply,
    parse_s2l_header,
    split_s2l_message,
)

logger = logging.getLogger(__name__)

REGISTRATION_REPLY_LIMIT = 4096

PhotoCallback = Callable[[ReceivedPhoto], Awaitable[None] | None]


class ServerState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"
    REGISTERING = "registering"
    APPROVED = "approved"
    AWAITING_APPROVAL = "awaiting_approval"
    UNREGISTERED = "unregistered"  # listening, camera never answered ("init pending")


class AutoShareServer:
    """S2L listener plus camera registration.

    Photos are handed to ``on_photo`` as :class:`ReceivedPhoto`. Log entries are
    published through ``self.log``; subscribe to follow them.
    """

    def __init__(
        self,
        on_photo: PhotoCallback | None = None,
        timeout_config: TimeoutConfig | None = None,
        listen_host: str = "0.0.0.0",
        listen_port: int = S2L_LISTEN_PORT,
        registration_port: int = S2L_REGISTRATION_PORT,
    ) -> None:
        """Initialize AutoShare server.

        Args:
            on_photo: Called (or awaited) for every received file
            timeout_config: Timeout configuration
            listen_host: Listener bind address
            listen_port: Listener port, 0 picks a free port
            registration_port: Camera registration port
        """
        self._on_photo = on_photo
        self._timeout = timeout_config or TimeoutConfig()
        self._listen_host = listen_host
        self._listen_port = listen_port
        self._registration_port = registration_port

        self._state = ServerState.STOPPED
        self._active = False
        self._camera_ip: str | None = None
        self._server: asyncio.Server | None = None
        self._bind_task: asyncio.Task | None = None

        self._connections: set[asyncio.Task] = set()
        self._connections_lock = asyncio.Lock()
        self._photos_received = 0

        self.log = LogBuffer(maxlen=200, logger=logger, prefix="[AutoShare] ")

    # ==================== Properties ====================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_listening(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def is_registered(self) -> bool:
        return self._state in (ServerState.APPROVED, ServerState.AWAITING_APPROVAL)

    @property
    def bound_port(self) -> int | None:
        """Actual listener port (differs from ``listen_port`` when 0 was requested)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    @property
    def photos_received(self) -> int:
        return self._photos_received

    # ==================== Lifecycle ====================

    async def start(self, camera_ip: str, local_ip: str) -> None:
        """Start listening, then register with the camera.

        Registration failures leave the server listening; only a listener that
        could not be brought up is an error.

        Args:
            camera_ip: Camera IP address (registration target)
            local_ip: This host's address on the camera network

        Raises:
            AutoShareError: Listener not up within one bind retry plus the grace period
        """
        if self._active:
            self.log.info("Server already running")
            return

        self._active = True
        self._camera_ip = camera_ip
        self._state = ServerState.STARTING
        self.log.info(f"Starting listener on port {self._listen_port}...")

        # One full bind retry fits inside the wait
        ready_timeout = self._timeout.s2l_bind_retry_interval + self._timeout.s2l_listener_grace
        self._bind_task = asyncio.create_task(self._bind_listener(), name="autoshare-bind")
        done, _ = await asyncio.wait({self._bind_task}, timeout=ready_timeout)

        if not done:
            self.log.error(f"Listener not ready after {ready_timeout}s")
            await self.stop()
            raise AutoShareError(f"Listener on port {self._listen_port} not ready")

        bind_error = self._bind_task.exception()
        if bind_error is not None:
            await self.stop()
            raise AutoShareError(f"Failed to start listener: {bind_error}") from bind_error

        await self._register(local_ip)

    async def stop(self) -> None:
        """Say goodbye (if registered), close the listener, cancel open transfers.

        Idempotent and safe to call before :meth:`start`.
        """
        if not self._active and self._server is None and self._bind_task is None:
            return

        was_registered = self.is_registered
        self._active = False

        bind_task, self._bind_task = self._bind_task, None
        if bind_task is not None and not bind_task.done():
            bind_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await bind_task

        if was_registered and self._camera_ip:
            await self._send_bye_bye()

        server, self._server = self._server, None
        if server is not None:
            server.close()

        async with self._connections_lock:
            handlers = list(self._connections)
            self._connections.clear()
        for handler in handlers:
            handler.cancel()
        if handlers:
            self.log.info(f"Cancelled {len(handlers)} open transfer(s)")
            await asyncio.gather(*handlers, return_exceptions=True)

        if server is not None:
            await server.wait_closed()

        self._state = ServerState.STOPPED
        self.log.info("Server stopped")

    async def __aenter__(self) -> AutoShareServer:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # ==================== Listener ====================

    async def _bind_listener(self) -> None:
        """Bind the listener, retrying while the port is in use."""
        while self._active:
            try:
                self._server = await asyncio.start_server(
                    self._handle_connection, self._listen_host, self._listen_port
                )
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    self.log.warning(
                        f"Port {self._listen_port} in use, retrying in {self._timeout.s2l_bind_retry_interval}s"
                    )
                    await asyncio.sleep(self._timeout.s2l_bind_retry_interval)
                    continue
                self.log.error(f"Listener failed: {e}")
                raise

            self._state = ServerState.LISTENING
            self.log.success(f"Listening on port {self.bound_port}")
            return

    # ==================== Registration ====================

    async def _register(self, local_ip: str) -> None:
        self._state = ServerState.REGISTERING
        request = build_registration_request(local_ip, self.bound_port or self._listen_port)
        attempts = self._timeout.s2l_handshake_attempts

        for attempt in range(1, attempts + 1):
            self.log.sent(f"Registration attempt {attempt}/{attempts} → {self._camera_ip}:{self._registration_port}")
            try:
                reply = await asyncio.wait_for(
                    self._exchange(request, REGISTRATION_REPLY_LIMIT),
                    timeout=self._timeout.s2l_handshake_timeout,
                )
            except TimeoutError:
                self.log.warning(f"Registration attempt {attempt} timed out")
                if attempt < attempts:
                    await asyncio.sleep(self._timeout.s2l_retry_after_timeout)
                continue
            except OSError as e:
                self.log.error(f"Registration attempt {attempt} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self._timeout.s2l_retry_after_error)
                continue

            if not reply:
                self.log.error(f"Registration attempt {attempt}: empty reply")
                if attempt < attempts:
                    await asyncio.sleep(self._timeout.s2l_retry_after_error)
                continue

            text = reply.decode("utf-8", errors="replace")
            self.log.received(text.strip())
            if classify_registration_reply(text) is RegistrationReply.ACCEPTED:
                self._state = ServerState.APPROVED
                self.log.success("Registration accepted by camera")
            else:
                self._state = ServerState.AWAITING_APPROVAL
                self.log.info("Registered, confirm the connection on the camera")
            return

        self._state = ServerState.UNREGISTERED
        self.log.warning("Camera did not answer registration, still listening (init pending)")

    async def _exchange(self, payload: bytes, reply_limit: int) -> bytes:
        """One request/reply round trip to the camera's registration port."""
        reader, writer = await asyncio.open_connection(self._camera_ip, self._registration_port)
        try:
            writer.write(payload)
            await writer.drain()
            return await reader.read(reply_limit)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _send_bye_bye(self) -> None:
        self.log.sent("ByeBye")
        try:
            await asyncio.wait_for(self._exchange(build_bye_bye(), 0), timeout=self._timeout.s2l_handshake_timeout)
        except (TimeoutError, OSError) as e:
            self.log.warning(f"ByeBye not delivered: {e}")

    # ==================== Inbound pushes ====================

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        peer = writer.get_extra_info("peername")
        async with self._connections_lock:
            self._connections.add(task)
        self.log.info(f"Incoming connection from {peer}")

        try:
            await self._receive_push(reader, writer)
        except OSError as e:
            self.log.error(f"Connection from {peer} failed: {e}")
        finally:
            async with self._connections_lock:
                self._connections.discard(task)
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _receive_push(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        buffer = bytearray()
        while True:
            chunk = await reader.read(S2L_READ_CHUNK)
            if not chunk:
                self.log.warning(f"Connection closed before header complete ({len(buffer)} bytes)")
                return
            buffer += chunk
            parts = split_s2l_message(buffer)
            if parts is not None:
                break

        header_bytes, body_start = parts
        header = parse_s2l_header(header_bytes)
        self.log.received(f"{header.request_line} (Content-Length: {header.content_length})")

        if header.is_bye:
            self.log.info("Camera said goodbye")
            return

        if not header.carries_file:
            writer.write(build_response(header))
            await writer.drain()
            return

        body = bytearray(body_start)
        while len(body) < header.content_length:
            try:
                chunk = await reader.read(min(S2L_READ_CHUNK, header.content_length - len(body)))
            except OSError as e:
                self.log.error(f"Read error after {len(body)}/{header.content_length} bytes: {e}")
                break
            if not chunk:
                self.log.warning(f"Connection closed after {len(body)}/{header.content_length} bytes")
                break
            body += chunk

        photo = ReceivedPhoto(filename=header.filename, data=bytes(body[: header.content_length]))
        ok = await self._deliver(photo)

        writer.write(build_response(header, ok=ok))
        await writer.drain()

    async def _deliver(self, photo: ReceivedPhoto) -> bool:
        self._photos_received += 1
        self.log.success(f"Received {photo.filename} ({photo.size} bytes)")
        if self._on_photo is None:
            return True
        try:
            result = self._on_photo(photo)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.log.error(f"Failed to hand over {photo.filename}: {e}")
            return False
        return True

"""Network detection helpers: reachability probes, SSID and local address lookup."""

from __future__ import annotations

__all__ = [
    "HttpProbeResult",
    "ProbeFunc",
    "current_ssid",
    "is_camera_ssid",
    "is_host_reachable",
    "local_ipv4",
    "probe_http_paths",
    "probe_subnets",
    "scan_ports",
]

import asyncio
import contextlib
import logging
import socket
import sys
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

import aiohttp

from ..constants import (
    CAMERA_SSID_PATTERNS,
    DEFAULT_CAMERA_IP,
    DISCOVERY_HTTP_PATHS,
    DISCOVERY_PORTS,
    PROBE_TABLE,
)
from ..models import DetectedMode, DiscoveredService

logger = logging.getLogger(__name__)

ProbeFunc = Callable[[str, int, float], Awaitable[bool]]

HTTP_PREVIEW_BYTES = 150


async def is_host_reachable(host: str, port: int, timeout: float = 2.0) -> bool:
    """TCP connect probe.

    The connect attempt races a timer; a losing connect is cancelled and its
    socket released.

    Args:
        host: Host address
        port: TCP port
        timeout: Connect timeout in seconds

    Returns:
        True if the connection was accepted in time
    """
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (TimeoutError, OSError):
        return False

    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return True


async def probe_subnets(
    table: Sequence[tuple[str, int, DetectedMode]] = PROBE_TABLE,
    timeout: float = 2.0,
    probe: ProbeFunc = is_host_reachable,
) -> tuple[str, DetectedMode] | None:
    """Probe every (ip, port, mode) entry in parallel.

    Completion order is irrelevant: among the reachable entries the one with
    the lowest table index wins. The tie-break only preserves the camera app's
    observed behavior; table order is not a priority the camera defines.

    Returns:
        (ip, mode) of the winning entry, or None when nothing answered
    """

    async def attempt(index: int, ip: str, port: int) -> tuple[int, bool]:
        return index, await probe(ip, port, timeout)

    found: list[int] = []
    for next_done in asyncio.as_completed([attempt(i, ip, port) for i, (ip, port, _) in enumerate(table)]):
        index, reachable = await next_done
        if reachable:
            ip, port, mode = table[index]
            logger.info(f"✅ Port {port} open on {ip} → {mode.value}")
            found.append(index)

    if not found:
        logger.info("Camera not found on any subnet")
        return None

    ip, _, mode = table[min(found)]
    return ip, mode


async def scan_ports(
    host: str,
    ports: Iterable[tuple[int, str]] = DISCOVERY_PORTS,
    timeout: float = 2.0,
    probe: ProbeFunc = is_host_reachable,
) -> list[DiscoveredService]:
    """Parallel TCP sweep of labelled ports.

    Returns:
        One DiscoveredService per port, in the order given
    """
    ports = list(ports)
    results = await asyncio.gather(*(probe(host, port, timeout) for port, _ in ports))
    services = [
        DiscoveredService(port=port, label=label, reachable=reachable)
        for (port, label), reachable in zip(ports, results, strict=True)
    ]
    for service in services:
        if service.reachable:
            logger.info(f"✅ Port {service.port} ({service.label}) open on {host}")
    return services


def is_camera_ssid(ssid: str | None, patterns: Iterable[str] = CAMERA_SSID_PATTERNS) -> bool:
    """Case-insensitive substring match against known camera AP names."""
    if not ssid:
        return False
    upper = ssid.upper()
    return any(pattern.upper() in upper for pattern in patterns)


def _ssid_commands() -> list[tuple[list[str], Callable[[str], str | None]]]:
    def first_line(output: str) -> str | None:
        line = output.strip().splitlines()[0].strip() if output.strip() else ""
        return line or None

    def nmcli(output: str) -> str | None:
        for line in output.splitlines():
            active, _, ssid = line.partition(":")
            if active == "yes" and ssid:
                return ssid
        return None

    def airport(output: str) -> str | None:
        _, sep, ssid = output.partition("Current Wi-Fi Network:")
        return (ssid.strip() or None) if sep else None

    def netsh(output: str) -> str | None:
        for line in output.splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip() == "SSID":
                return value.strip() or None
        return None

    if sys.platform == "darwin":
        return [(["networksetup", "-getairportnetwork", "en0"], airport)]
    if sys.platform == "win32":
        return [(["netsh", "wlan", "show", "interfaces"], netsh)]
    return [
        (["iwgetid", "-r"], first_line),
        (["nmcli", "-t", "-f", "active,ssid", "dev", "wifi"], nmcli),
    ]


async def current_ssid(timeout: float = 3.0) -> str | None:
    """SSID of the current Wi-Fi network, or None if it cannot be determined."""
    for command, parse in _ssid_commands():
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"{command[0]} unavailable: {e}")
            continue

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.debug(f"{command[0]} timed out")
            continue

        if process.returncode != 0:
            logger.debug(f"{command[0]} exited with {process.returncode}")
            continue

        ssid = parse(stdout.decode("utf-8", errors="replace"))
        if ssid:
            logger.debug(f"{command[0]} returned SSID '{ssid}'")
            return ssid

    return None


def local_ipv4(target: str = DEFAULT_CAMERA_IP) -> str | None:
    """Local IPv4 address of the interface that routes to ``target``.

    Connecting a UDP socket sends nothing; it only selects the route.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect((target, 9))
            address = sock.getsockname()[0]
        except OSError as e:
            logger.debug(f"Could not determine local address: {e}")
            return None
    if address.startswith("0."):
        return None
    return address


@dataclass(frozen=True)
class HttpProbeResult:
    """Answer to one diagnostic HTTP GET."""

    url: str
    status: int
    content_type: str
    size: int
    preview: str = ""


async def probe_http_paths(
    host: str,
    ports: Iterable[int],
    paths: Iterable[str] = DISCOVERY_HTTP_PATHS,
    timeout: float = 4.0,
    session: aiohttp.ClientSession | None = None,
) -> list[HttpProbeResult]:
    """GET each path on each port; unanswered requests are skipped.

    Returns:
        Results in request order
    """
    paths = list(paths)
    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))

    results: list[HttpProbeResult] = []
    try:
        for port in ports:
            logger.info(f"Probing HTTP on port {port}...")
            for path in paths:
                url = f"http://{host}:{port}{path}"
                try:
                    async with session.get(url) as resp:
                        body = await resp.read()
                        content_type = resp.headers.get("Content-Type", "unknown")
                        status = resp.status
                except (aiohttp.ClientError, TimeoutError) as e:
                    logger.debug(f"GET {url} failed: {e}")
                    continue

                preview = ""
                if body and "image" not in content_type:
                    preview = body[:HTTP_PREVIEW_BYTES].decode("utf-8", errors="replace").replace("\n", " ")
                logger.info(f"✅ GET {path} → HTTP {status} | {len(body)}b | {content_type}")
                if preview:
                    logger.debug(f">> {preview}")
                results.append(HttpProbeResult(url, status, content_type, len(body), preview))
    finally:
        if owns_session:
            await session.close()

    return results

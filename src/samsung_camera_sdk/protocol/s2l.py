"""S2L/1.0 text protocol (Samsung AutoShare).

Messages are a request line, ``Key: value`` header lines separated by CRLF, a
blank line, then an optional body sized by ``Content-Length``::

    S2L/1.0 /DCIM/100PHOTO/SAM_0001.JPG\\r\\n
    Content-Length: 1024\\r\\n
    Host: SAMSUNG-S2L\\r\\n
    \\r\\n
    <1024 bytes of JPEG>
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_HOST",
    "HEADER_TERMINATOR",
    "PLACEHOLDER_MAC",
    "RegistrationReply",
    "S2LHeader",
    "build_bye_bye",
    "build_registration_request",
    "build_response",
    "classify_registration_reply",
    "parse_s2l_header",
    "split_s2l_message",
]

from dataclasses import dataclass
from enum import Enum

S2L_VERSION = "S2L/1.0"
DEFAULT_HOST = "SAMSUNG-S2L"
DEFAULT_AUTHORIZATION = "none"
HEADER_TERMINATOR = b"\r\n\r\n"

# Hosts without access to the hardware address register with a locally administered MAC
PLACEHOLDER_MAC = "02:00:00:00:00:00"

_ACCEPTED_MARKERS = ("200 OK", "ACCEPTED", "Result_OK")


@dataclass(frozen=True)
class S2LHeader:
    """Parsed header block of an inbound S2L message."""

    request_line: str = ""
    filename: str | None = None
    content_length: int = 0
    host: str = DEFAULT_HOST
    authorization: str = DEFAULT_AUTHORIZATION

    @property
    def is_bye(self) -> bool:
        return "bye" in self.request_line.lower()

    @property
    def carries_file(self) -> bool:
        return self.filename is not None and self.content_length > 0


class RegistrationReply(Enum):
    """Camera answer to a registration request on port 801."""

    ACCEPTED = "accepted"
    AWAITING_APPROVAL = "awaiting_approval"  # user must confirm on the camera


def split_s2l_message(buffer: bytes) -> tuple[bytes, bytes] | None:
    """Split a buffer at the end of the header block.

    Returns:
        ``(header_bytes, body_bytes)`` without the terminator, or None if the
        terminator has not arrived yet
    """
    end = buffer.find(HEADER_TERMINATOR)
    if end < 0:
        return None
    return bytes(buffer[:end]), bytes(buffer[end + len(HEADER_TERMINATOR) :])


def _extract_filename(request_line: str) -> str | None:
    target = request_line.strip()
    if target.upper().startswith("S2L/"):
        target = target.partition(" ")[2]
    slash = target.rfind("/")
    if slash < 0:
        return None
    name = target[slash + 1 :].strip()
    if name and "." in name:
        return name
    return None


def parse_s2l_header(data: bytes | str) -> S2LHeader:
    """Parse an S2L header block.

    Args:
        data: Header bytes (with or without the trailing blank line)

    Returns:
        Parsed header. Unknown keys are ignored, an unparsable content length is 0.

    Examples:
        >>> h = parse_s2l_header(b"S2L/1.0 /DCIM/100/IMG_01.JPG\\r\\nContent-Length: 1024\\r\\n\\r\\n")
        >>> h.filename, h.content_length
        ('IMG_01.JPG', 1024)
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else data
    lines = text.split("\r\n")

    request_line = lines[0] if lines else ""
    content_length = 0
    host = DEFAULT_HOST
    authorization = DEFAULT_AUTHORIZATION

    for line in lines[1:]:
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()
        if key == "content-length":
            try:
                content_length = int(value)
            except ValueError:
                content_length = 0
        elif key == "host":
            host = value
        elif key == "authorization":
            authorization = value

    return S2LHeader(
        request_line=request_line,
        filename=_extract_filename(request_line),
        content_length=content_length,
        host=host,
        authorization=authorization,
    )


def build_registration_request(local_ip: str, listen_port: int = 1801, mac: str = PLACEHOLDER_MAC) -> bytes:
    """Registration request sent to the camera's port 801.

    The odd ``Key : value`` spacing of the HOST-* lines is what the camera firmware expects.
    """
    user_agent = f"SEC_RVF_{mac.replace(':', '')}"
    lines = [
        f"{S2L_VERSION} Request",
        f"Host: {DEFAULT_HOST}",
        "Content-Type: text/xml;charset=utf-8",
        f"User-Agent: {user_agent}",
        "Content-Length: 0",
        f"HOST-Mac : {mac}",
        f"HOST-Address : {local_ip}",
        f"HOST-port : {listen_port}",
        "HOST-PNumber : none",
        "Host-Gps : 0",
        "Access-Method : manual",
        "Authorization : none",
        "Connection : Close",
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def build_response(header: S2LHeader, ok: bool = True) -> bytes:
    """Status frame answering an inbound push; Host and Authorization are mirrored."""
    result = "Result_OK" if ok else "Result_Error"
    lines = [
        f"{S2L_VERSION} {result}",
        f"Host: {header.host}",
        f"Content-length: {header.content_length}",
        f"Authorization: {header.authorization}",
        f"Sub-ErrorCode: {0 if ok else 1}",
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def build_bye_bye() -> bytes:
    lines = [
        f"{S2L_VERSION} ByeBye",
        f"Host: {DEFAULT_HOST}",
        "Content-Type: text/xml;charset=utf-8",
        "User-Agent: APP-TYPE",
        "Content-Length: 0",
        "Connection: Close",
    ]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def classify_registration_reply(text: str) -> RegistrationReply:
    """Any non-empty reply means the camera saw us; only some mean it accepted."""
    if any(marker in text for marker in _ACCEPTED_MARKERS):
        return RegistrationReply.ACCEPTED
    return RegistrationReply.AWAITING_APPROVAL

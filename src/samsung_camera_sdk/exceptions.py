"""Custom exception classes."""

__all__ = [
    "AutoShareError",
    "CameraNotFoundError",
    "CustomCameraError",
    "DlnaConnectionError",
    "DlnaError",
    "DlnaParseError",
    "DlnaResponseError",
    "InvalidFrameError",
    "OperationFailedError",
    "PtpConnectionError",
    "PtpDisconnectedError",
    "PtpError",
    "PtpTimeoutError",
    "SessionNotOpenError",
    "UnexpectedPacketError",
]


class CustomCameraError(Exception):
    """Base class for all custom camera client exceptions."""


# ==================== PTP/IP ====================


class PtpError(CustomCameraError):
    """PTP/IP communication related error."""


class PtpConnectionError(PtpError):
    """Could not open or write to a PTP/IP socket."""


class PtpTimeoutError(PtpError):
    """PTP/IP request or read timed out."""


class PtpDisconnectedError(PtpError):
    """Camera closed the PTP/IP connection mid-read."""


class InvalidFrameError(PtpError):
    """Malformed PTP/IP frame (bad length or unknown packet type)."""


class UnexpectedPacketError(PtpError):
    """A well-formed packet arrived that does not fit the current exchange."""


class SessionNotOpenError(PtpError):
    """Operation attempted without an open PTP session."""


class OperationFailedError(PtpError):
    """Camera answered an operation with a non-OK response code."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"PTP operation failed: response code 0x{code:04X}")


# ==================== DLNA / SOAP ====================


class DlnaError(CustomCameraError):
    """Samsung DLNA (MobileLink) related error."""


class DlnaConnectionError(DlnaError):
    """HTTP transport failure or missing device descriptor."""


class DlnaResponseError(DlnaError):
    """Camera answered with a non-200 HTTP status."""

    def __init__(self, status: int, message: str | None = None) -> None:
        self.status = status
        super().__init__(message or f"HTTP {status}")


class DlnaParseError(DlnaError):
    """Device description or SOAP payload could not be parsed."""


# ==================== AutoShare / orchestration ====================


class AutoShareError(CustomCameraError):
    """AutoShare (S2L push) server could not be started."""


class CameraNotFoundError(CustomCameraError):
    """No camera answered on any known subnet/port."""

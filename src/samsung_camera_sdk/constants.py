"""Network constants for Samsung Wi-Fi cameras (DV150F family).

Ports, vendor paths and probe tables are taken from packet captures of the
camera's MobileLink and AutoShare modes.
"""

from __future__ import annotations

from typing import Final

from .models import DetectedMode

# ==================== PTP/IP ====================

PTP_IP_PORT: Final = 15740
PTP_CLIENT_NAME: Final = "samsung-camera-sdk-py"
PTP_PROTOCOL_VERSION: Final = 1

# ==================== DLNA / MobileLink ====================

DLNA_CONTROL_PORT: Final = 7676
DLNA_STREAM_PORT: Final = 7679

DLNA_DESCRIPTOR_PATH: Final = "/smp_6_"  # DV150F device description
DLNA_DEFAULT_CONTROL_PATH: Final = "/smp_4_"  # ContentDirectory control (SOAP)
DLNA_REGISTRATION_FALLBACK_PATH: Final = "/smp_11_"

DLNA_HIGH_QUALITY_STREAM: Final = "/livestream.avi"
DLNA_LOW_QUALITY_STREAM: Final = "/qvga_livestream.avi"

CONTENT_DIRECTORY_NS: Final = "urn:schemas-upnp-org:service:ContentDirectory:1"
DLNA_USER_AGENT: Final = "Samsung MobileLink"

# Vendor client-registration actions, tried in order
DLNA_REGISTRATION_ACTIONS: Final = (
    "X_SetClientInfo",
    "SetClientInfo",
    "X_SamsungSetClientInfo",
)

# ==================== S2L / AutoShare ====================

S2L_REGISTRATION_PORT: Final = 801
S2L_LISTEN_PORT: Final = 1801
S2L_READ_CHUNK: Final = 102400

AUTOSHARE_CAMERA_IP: Final = "192.168.103.1"
AUTOSHARE_SUBNET_PREFIX: Final = "192.168.103."

# ==================== Detection ====================

DEFAULT_CAMERA_IP: Final = "192.168.101.1"

# Samsung DV150F creates APs like "AP_SSC_DV150F_0-FB:58:97"
CAMERA_SSID_PATTERNS: Final = (
    "AP_SSC_DV150F",
    "SAMSUNG_DV150F",
    "DV150F",
    "AP_SSC_",
)

# (ip, port, mode) in priority order; the lowest-index reachable entry wins
PROBE_TABLE: Final[tuple[tuple[str, int, DetectedMode], ...]] = (
    ("192.168.103.1", S2L_REGISTRATION_PORT, DetectedMode.AUTO_SHARE),
    ("192.168.101.1", DLNA_CONTROL_PORT, DetectedMode.MOBILE_LINK),
    ("192.168.102.1", DLNA_CONTROL_PORT, DetectedMode.MOBILE_LINK),
    ("192.168.104.1", DLNA_CONTROL_PORT, DetectedMode.MOBILE_LINK),
    ("192.168.102.1", DLNA_STREAM_PORT, DetectedMode.MOBILE_LINK),
    ("192.168.101.1", DLNA_STREAM_PORT, DetectedMode.MOBILE_LINK),
    ("192.168.104.1", DLNA_STREAM_PORT, DetectedMode.MOBILE_LINK),
)

# Diagnostic sweep
DISCOVERY_PORTS: Final[tuple[tuple[int, str], ...]] = (
    (80, "HTTP Web"),
    (443, "HTTPS"),
    (1900, "UPnP Discovery"),
    (5000, "UPnP Eventing"),
    (DLNA_CONTROL_PORT, "MobileLink/DLNA"),
    (8080, "HTTP Alternate"),
    (PTP_IP_PORT, "PTP/IP"),
    (49152, "UPnP Media"),
    (49153, "UPnP Media 2"),
    (52235, "Samsung Smart TV"),
)

DISCOVERY_HTTP_PORTS: Final = (80, DLNA_CONTROL_PORT, 8080, 49152, 49153)

DISCOVERY_HTTP_PATHS: Final = (
    "/",
    "/index.html",
    "/smp_0_",
    "/smp_1_",
    "/smp_2_",
    "/smp_3_",
    "/smp_4_",
    "/device.xml",
    "/description.xml",
    "/MobileLink",
    "/Samsung",
    "/api",
    "/Server/device.xml",
)

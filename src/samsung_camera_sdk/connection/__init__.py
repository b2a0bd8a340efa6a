"""Samsung camera protocol clients.

Contains:
- PTP/IP transaction client
- DLNA (MobileLink) SOAP client
- AutoShare (S2L) push server
- Network detection and reachability probes
"""

from .autoshare_server import *  # noqa: F403
from .dlna_client import *  # noqa: F403
from .network import *  # noqa: F403
from .ptp_client import *  # noqa: F403

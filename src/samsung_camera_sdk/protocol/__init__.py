"""Wire formats.

Contains:
- PTP/IP code tables and datasets
- PTP/IP frame codec
- S2L/1.0 (AutoShare) text protocol
- DLNA SOAP/DIDL-Lite XML
"""

from .dlna_xml import *  # noqa: F403
from .ptp_codec import *  # noqa: F403
from .ptp_types import *  # noqa: F403
from .s2l import *  # noqa: F403

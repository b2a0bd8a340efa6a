"""Logging setup for samsung-camera-sdk-py.

Every client writes its protocol trace (frames sent and received, SOAP bodies,
S2L headers) at DEBUG under the ``samsung_camera_sdk`` logger, so the trace can be
switched on without turning on DEBUG output from other libraries.
"""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .rich_utils import console as shared_console

SDK_LOGGER = "samsung_camera_sdk"
QUIET_LOGGERS = ("aiohttp", "asyncio")


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
    console: Console | None = None,
    protocol_trace: bool = False,
) -> None:
    """
    Route logging through the shared rich console.

    Args:
        level: Root logging level
        log_file: Optional file that receives the same records, with logger names
        console: Console to render on, defaults to the SDK's shared console
        protocol_trace: Show the SDK's DEBUG protocol trace regardless of ``level``
    """
    if console is None:
        console = shared_console

    handlers: list[logging.Handler] = [
        RichHandler(console=console, rich_tracebacks=True, show_path=False, markup=False),
    ]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s.%(msecs)03d %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True)

    logging.getLogger(SDK_LOGGER).setLevel(logging.DEBUG if protocol_trace else logging.NOTSET)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

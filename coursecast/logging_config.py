"""
Logging setup for applications embedding coursecast.

Library modules only create loggers; configure_logging() is for the
entry point that owns the process.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Set a basic root format and the coursecast log level (default INFO)."""
    resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("coursecast").setLevel(resolved)
    # Request lines from the HTTP stack drown out pipeline progress
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))

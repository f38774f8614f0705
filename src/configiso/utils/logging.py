"""Logging utilities."""

import logging
import sys
from typing import Dict


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers and the most verbose level they may emit at
QUIET_LOGGERS: Dict[str, int] = {
    "asyncio": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiohttp.access": logging.INFO,
}


def setup_logging(level: str = "INFO"):
    """Configure root logging to stdout at the given level name.

    Safe to call more than once; the last call wins.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name, floor in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(log_level, floor))

"""
Logging utilities for the FastAPI application and operational scripts.
"""

import logging
import sys
from typing import Iterable

_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "botocore", "boto3")


def configure_logging(level: str = "INFO", *, quiet: Iterable[str] = _NOISY_LOGGERS) -> None:
    """Configure root logging and keep transport libraries at WARNING."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]

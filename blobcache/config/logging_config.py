"""Logging configuration for the blob cache."""

import logging
import sys
from typing import Optional

from .settings import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug: Optional[bool] = None) -> None:
    """
    Configure root logging for scripts and applications embedding the cache.

    Args:
        debug: Force DEBUG level; defaults to BLOB_CACHE_DEBUG, falling back
            to BLOB_CACHE_LOG_LEVEL
    """
    if debug is None:
        debug = settings.DEBUG

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )

import logging
import sys
from typing import Optional

from sweetshop.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None):
    """Attach one stdout handler to the package logger; safe to call repeatedly."""
    logger = logging.getLogger("sweetshop")
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(h)
    return logger

import logging
import sys
from typing import Optional

from common.settings import settings


def get_logger(name: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name or "newsletters")
    if logger.handlers:
        return logger
    logger.setLevel(settings.log_level.upper())

    handler = logging.StreamHandler(sys.stdout)
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.propagate = False
    return logger

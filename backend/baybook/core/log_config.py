"""Process-wide logging setup for the API, the worker and scripts."""

import logging
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are noisy at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "stripe", "urllib3", "celery.redirected")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    Args:
        level: Override for ``settings.log_level``
    """
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

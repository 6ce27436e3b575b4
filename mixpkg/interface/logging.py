import enum
import logging
from typing import Optional

from mixpkg import APP_NAME

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

_handler: Optional[logging.Handler] = None


class LogLevel(str, enum.Enum):
    """Log levels accepted on the command line."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def setup_logging(level: LogLevel) -> None:
    """Send the application logs to stderr at the requested level."""
    global _handler

    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level.value.upper())

    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)

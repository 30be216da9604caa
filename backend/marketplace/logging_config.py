"""Logging configuration for the dataset marketplace."""
import logging
import re
import sys
from typing import Optional, Union

# 7-Zip takes the archive password as a "-p<secret>" switch
_PASSWORD_SWITCH = re.compile(r"(?<!\S)-p\S+")

QUIET_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncio", "multipart")


class RedactPasswordSwitchFilter(logging.Filter):
    """Mask archive password switches if a command line ever reaches a log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "-p" in message:
            record.msg = _PASSWORD_SWITCH.sub("-p***", message)
            record.args = None
        return True


def _resolve_level(level: Union[str, int, None]) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: Optional[Union[str, int]] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL) or
               numeric level. Unknown names and None fall back to INFO.
    """
    log_level = _resolve_level(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactPasswordSwitchFilter())

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""
Logging setup for commsgraph.

The case store logs every failed guard at ERROR and every recovered
uniqueness race at INFO, from whichever thread ran the guard, so the default
line carries the thread name.

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL, any case. Unknown
               names fall back to INFO.
    COMMSGRAPH_LOG_FILE: Path of a rotating log file, in addition to stdout.

Usage:
    from commsgraph.logger_config import setup_logging
    setup_logging()
    setup_logging(level=logging.DEBUG, log_file="case.log")
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional

LOG_FILE_ENV_VAR = "COMMSGRAPH_LOG_FILE"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10_485_760  # 10 MB
LOG_FILE_BACKUPS = 5


def parse_log_level(name: Optional[str], default: int = logging.INFO) -> int:
    """
    Map a level name such as "debug" to its logging constant.

    Returns:
        The level, or default for a missing or unknown name.
    """
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def get_log_level() -> int:
    """Level named by the LOG_LEVEL environment variable, INFO by default."""
    return parse_log_level(os.getenv("LOG_LEVEL"))


def _file_handler(log_file: str, level: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "case",
        "filename": log_file,
        "maxBytes": LOG_FILE_MAX_BYTES,
        "backupCount": LOG_FILE_BACKUPS,
    }


def build_logging_config(
    level: int, format_string: str = DEFAULT_FORMAT, log_file: Optional[str] = None
) -> Dict[str, Any]:
    """
    dictConfig mapping with a stdout handler and an optional rotating file.

    The commsgraph logger gets its own level so an embedding application can
    keep a quieter root logger.
    """
    handlers: Dict[str, Any] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "case",
            "stream": "ext://sys.stdout",
        },
    }
    if log_file:
        handlers["file"] = _file_handler(log_file, level)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"case": {"format": format_string, "datefmt": DATE_FORMAT}},
        "handlers": handlers,
        "loggers": {"commsgraph": {"level": level, "propagate": True}},
        "root": {"level": level, "handlers": list(handlers)},
    }


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for commsgraph. Safe to call repeatedly.

    Args:
        level: Logging level; LOG_LEVEL is read when None.
        format_string: Line format; DEFAULT_FORMAT when None.
        log_file: Rotating log file; COMMSGRAPH_LOG_FILE is read when None.
    """
    if level is None:
        level = get_log_level()
    if log_file is None:
        log_file = os.getenv(LOG_FILE_ENV_VAR) or None

    logging.config.dictConfig(
        build_logging_config(level, format_string or DEFAULT_FORMAT, log_file)
    )

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | "
    "{module}:{function}:{line} - {message} | {extra}"
)


def configure_logger(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the loguru logger with a console sink and an optional file sink.

    Args:
        level: Minimum level for every sink.
        log_file: Path of a rotating log file; no file sink when omitted.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level.upper(),
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.debug("Logger configured", level=level, log_file=log_file)


log = logger

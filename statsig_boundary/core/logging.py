"""
Central logger configuration for statsig_boundary.
"""

import sys

from loguru import logger

_STDERR_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level}</level> | "
    "{name}:{function}:{line} - <level>{message}</level>"
)


def init_logger(log_level: str = "WARNING") -> None:
    """
    Initialize process-level logging for library usage.

    The SDK runs inside a host application, so only stderr is used and the
    default level stays quiet.

    Parameters
    ----------
    log_level : str, optional
        Loguru log level string, by default ``"WARNING"``.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        colorize=True,
        format=_STDERR_FORMAT,
        level=log_level,
        diagnose=False,
    )
    logger.debug(f'Logger initialized with LOG_LEVEL = "{log_level}".')

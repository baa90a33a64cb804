"""
Logging configuration using loguru.

Library modules log through ``from loguru import logger`` directly; the CLI
calls setup_logging() once at startup to decide where records go.
"""

import sys

from loguru import logger

DEFAULT_FORMAT = "<green>{time:HH:mm:ss}</green> <level>[{level.name}]</level> {message}"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    fmt: str = DEFAULT_FORMAT,
    rotation: str = "10 MB",
    retention: str = "14 days",
) -> None:
    """
    Configure loguru with a stderr sink and an optional rotating file sink.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Path to log file. If None, only logs to stderr.
        fmt: Loguru format string for the console sink.
        rotation: Log file rotation size.
        retention: How long to keep rotated logs.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=fmt)

    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} | {message}",
            rotation=rotation,
            retention=retention,
        )

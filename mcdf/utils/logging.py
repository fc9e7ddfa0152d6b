"""
Logging Configuration
Structured logging with loguru
Source: https://github.com/Delgan/loguru
"""

import sys
from pathlib import Path

from loguru import logger


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_logs: bool = False,
) -> None:
    """
    Configure fund logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        json_logs: Whether to output JSON format
    """
    logger.remove()

    if json_logs:
        logger.add(
            sys.stderr,
            format="{message}",
            level=level,
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
                "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            ),
            level=level,
            colorize=True,
        )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}",
            level=level,
            serialize=json_logs,
        )

    logger.configure(extra={"name": "mcdf"})
    logger.bind(name=__name__).info(f"Logging configured: level={level}, json_logs={json_logs}")


def setup_logging_from_settings() -> None:
    """Configure logging from the MCDF_ environment settings."""
    from mcdf.core.config import get_settings

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE, settings.JSON_LOGS)


def get_logger(name: str = __name__):  # type: ignore[no-untyped-def]
    """
    Get a logger bound to a module name.

    Example:
        >>> from mcdf.utils.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Contribution recorded")
    """
    return logger.bind(name=name)

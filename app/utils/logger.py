"""
Logging configuration

Console output always; rotating files under settings.log_dir unless
LOG_TO_FILE is off (tests, containers that ship stdout).
"""
import sys
from pathlib import Path

from loguru import logger

from app.config import get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logger(settings=None):
    """Install the console handler and, if enabled, the daily app/error files."""
    settings = settings or get_settings()
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)
    if not settings.log_to_file:
        return logger

    log_dir = Path(settings.log_dir)
    logger.add(
        log_dir / "loft_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level=settings.log_level,
    )
    logger.add(
        log_dir / "errors_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="90 days",
        level="ERROR",
        backtrace=settings.debug,
    )
    return logger


log = setup_logger()

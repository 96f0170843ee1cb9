"""
Logging configuration

Development gets colorized console lines; production writes JSON lines to
stdout for the log collector. ShipStation webhook traffic is also written to
its own file so deliveries can be audited separately from the poller.
"""
from loguru import logger
import os
import sys
from shiprecon.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def _is_webhook_record(record) -> bool:
    return record["extra"].get("channel") == "webhook"


def setup_logger(level: str = None, to_file: bool = None, log_dir: str = None, json_console: bool = None):
    """Configure sinks; arguments default to the application settings."""
    level = level or settings.log_level
    to_file = settings.log_to_file if to_file is None else to_file
    log_dir = log_dir or settings.log_dir
    if json_console is None:
        json_console = settings.environment == "production"

    logger.remove()

    if json_console:
        logger.add(sys.stdout, serialize=True, level=level)
    else:
        logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=level)

    if not to_file:
        return logger

    logger.add(
        os.path.join(log_dir, "shipping_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO"
    )
    logger.add(
        os.path.join(log_dir, "webhooks_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="30 days",
        level="DEBUG",
        filter=_is_webhook_record,
    )
    logger.add(
        os.path.join(log_dir, "errors_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return logger


log = setup_logger()

# Use for ShipStation webhook receipt and processing
webhook_log = log.bind(channel="webhook")

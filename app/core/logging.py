import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from app.core.config import settings

LOG_FILE_NAME = "category-service.log"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _log_dir():
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    log_dir = os.path.join(project_root, "logs")
    os.makedirs(log_dir, exist_ok=True)
    return log_dir


def _build_handlers(level):
    file_handler = RotatingFileHandler(
        filename=os.path.join(_log_dir(), LOG_FILE_NAME),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
    return file_handler, console_handler


def get_logger(name):
    """
    Get a logger writing to both logs/category-service.log and stdout.

    The level follows settings.LOG_LEVEL. Calling this twice for the same
    name returns the already configured logger.

    Args:
        name (str): The name of the logger, typically __name__ of the calling module

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        for handler in _build_handlers(level):
            logger.addHandler(handler)

    return logger

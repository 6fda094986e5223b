import logging
from typing import Optional, Union

from workspace_engine.config.settings import settings

ROOT_LOGGER_NAME = "workspace_engine"

def configure_logging(level: Optional[Union[str, int]] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Install console (and optional file) handlers on the package logger.

    Safe to call more than once: existing handlers are replaced.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level or settings.LOG_LEVEL)
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    target_file = log_file or settings.LOG_FILE
    if target_file:
        file_handler = logging.FileHandler(target_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging initialized for {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}")
    return logger

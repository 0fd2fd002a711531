# app/logger.py
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str = "app", log_file: Optional[str] = None, level=logging.INFO) -> logging.Logger:
    """
    Configure the application logger.

    Console output is always enabled. When log_file is given, a file handler
    rotating at midnight (30 days kept) is added as well.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid stacking handlers when the app factory runs more than once
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

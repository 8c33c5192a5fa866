"""
Logging Configuration
=====================

Handlers for the 'lattice_inflator' logger namespace. Library modules only
call logging.getLogger(__name__); nothing is printed until an application
(or a test session) calls setup_logging().
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "lattice_inflator"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: optional path to also write the log to

    Returns:
        the configured 'lattice_inflator' logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Repeated calls replace handlers instead of duplicating output
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized (level %s)", logging.getLevelName(level))
    return logger

"""
Early logging initialization module.

Sets up logging before any other imports that might trigger logging, so that
messages emitted while the settings and the service configuration are loaded
are not lost.
"""

import logging
import os

from grs.utils.logging_config import setup_logging


def initialize_logging() -> None:
    """
    Initialize logging early in the application lifecycle.

    Reads the basic logging switches straight from the environment, the
    pydantic settings are not available yet at this point.
    """
    log_to_file = os.environ.get("LOG_TO_FILE", "false").lower() == "true"
    log_file_path = os.environ.get("LOG_FILE_PATH", "log.txt")

    setup_logging(log_to_file=log_to_file, log_file_path=log_file_path)

    logger = logging.getLogger(__name__)
    logger.debug("Early logging initialized successfully")


initialize_logging()

import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# max 10MB per file, 5 rotated files
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

NOISY_LOGGERS = ("uvicorn.access", "aiohttp.access")


def _with_format(handler: logging.Handler) -> logging.Handler:
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _file_handler(log_file_path: str) -> logging.Handler | None:
    try:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        return _with_format(
            logging.handlers.RotatingFileHandler(log_file_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT)
        )
    except OSError as e:
        logging.exception(f"Failed to setup file logging to {log_file_path}: {e}")
        return None


def setup_logging(log_to_file: bool = False, log_file_path: str = "log.txt") -> None:
    """
    Send log records to stdout and, when asked, to a rotating log file.

    The ``grs`` loggers emit DEBUG; third-party libraries stay at INFO and the
    access loggers at WARNING.

    Args:
        log_to_file: Whether to enable file logging alongside stdout
        log_file_path: Path to log file when file logging is enabled
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.INFO)
    logging.getLogger("grs").setLevel(logging.DEBUG)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.addHandler(_with_format(logging.StreamHandler()))

    if not log_to_file:
        logging.debug("File logging disabled - using stdout only")
        return

    file_handler = _file_handler(log_file_path)
    if file_handler is None:
        logging.info("Continuing with stdout logging only")
        return
    root_logger.addHandler(file_handler)
    logging.info(f"File logging enabled: {log_file_path}")

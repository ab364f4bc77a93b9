"""
Logging configuration for the ResumeForge API.

One stdout handler for the container and one rotating file for local runs.
Webhook and billing payloads pass through sanitize_log_data() before they
are logged.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from resumeforge.core.config import LOG_DIR

LOG_FILE_NAME = "resumeforge.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "stripe", "httpx", "openai")

REDACTED = "***REDACTED***"
SENSITIVE_KEY_PARTS = (
    "password", "token", "secret", "key", "authorization",
    "signature", "database_url", "email",
)


def setup_logging(log_level: str = "INFO", log_dir: str = LOG_DIR):
    """
    Configure the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; anything else means INFO
        log_dir: Directory for the rotating log file, created if missing
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt=DATE_FORMAT)
    )

    file_handler = RotatingFileHandler(
        log_path / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
    )
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt=DATE_FORMAT,
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in (console_handler, file_handler):
        handler.setLevel(level)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def sanitize_log_data(data: dict) -> dict:
    """Copy of data with secret-looking values redacted, nested dicts included."""
    sanitized = {}
    for key, value in data.items():
        if any(part in str(key).lower() for part in SENSITIVE_KEY_PARTS):
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value
    return sanitized

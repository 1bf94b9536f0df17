"""
Logging setup

JSON (or plain text) log lines on the console and optionally in a file, plus an
audit logger for business events such as voucher redemptions.
"""

import logging
import json
from datetime import datetime
import os

from luxestay.config import get_settings


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter

    One JSON object per line; values passed via `extra=` are merged in.
    """

    RESERVED = set(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in self.RESERVED and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str = None,
    log_format: str = None,
    log_file: str = None,
) -> None:
    """
    Configure the root logger

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_format: "json" or "text"
        log_file: optional log file path (console only when None)
    """
    settings = get_settings()
    log_level = log_level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT
    log_file = log_file or settings.LOG_FILE

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Third-party noise
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Module logger

    Example:
        ```python
        logger = get_logger(__name__)
        logger.info("voucher applied", extra={"code": "LUXE10"})
        ```
    """
    return logging.getLogger(name)


class AuditLogger:
    """
    Audit log

    Records business events: voucher created/disabled, code applied/removed,
    booking confirmed/cancelled.
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def log_event(
        self,
        event_type: str,
        user_id: str = None,
        resource_type: str = None,
        resource_id: str = None,
        action: str = None,
        details: dict = None,
    ):
        """
        Log an audit event

        Args:
            event_type: e.g. voucher.applied, booking.confirmed
            user_id: acting guest, host or admin
            resource_type: voucher, booking
            resource_id: resource id
            action: create, update, apply, remove, confirm, cancel
            details: extra context
        """
        self.logger.info(
            f"[AUDIT] {event_type}",
            extra={
                "event_type": event_type,
                "user_id": user_id,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "action": action,
                "details": details or {},
            },
        )


audit_logger = AuditLogger()

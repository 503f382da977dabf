import logging
import json
import os
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime, timezone

from .compliance import redact_pii


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "lineNo": record.lineno
        }
        if hasattr(record, "session_id"):
            log_record["session_id"] = record.session_id
        if hasattr(record, "action"):
            log_record["action"] = record.action

        return json.dumps(log_record)


def setup_logger(name="smartfi", log_file=None, level=logging.INFO):
    log_file = log_file or os.path.join(os.getenv("SMARTFI_LOG_DIR", "logs"), "smartfi.log")
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if not logger.handlers:
        # File Handler (Daily Rotation)
        file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=30)
        file_handler.setFormatter(JSONFormatter())

        # Console Handler
        console_handler = logging.StreamHandler()
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - [%(levelname)s] - %(message)s')
        console_handler.setFormatter(console_formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    return logger


_audit_logger = None


def get_audit_logger():
    global _audit_logger
    if _audit_logger is None:
        log_dir = os.getenv("SMARTFI_LOG_DIR", "logs")
        _audit_logger = setup_logger("smartfi_audit", os.path.join(log_dir, "audit.log"))
    return _audit_logger


def log_audit_action(session_id, action, details):
    """Audit trail for session and mode changes. Details are PII-redacted."""
    get_audit_logger().info(redact_pii(details), extra={"session_id": session_id, "action": action})

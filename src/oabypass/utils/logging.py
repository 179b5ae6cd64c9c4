"""Structured logging helpers."""
import json
import logging
import os
import sys
import time
from logging.handlers import RotatingFileHandler

logger = logging.getLogger("oabypass")

SENSITIVE_HEADERS = ("authorization", "x-api-key", "api-key", "cookie")


def _build_rotating_handler(log_dir: str, filename: str) -> RotatingFileHandler:
    os.makedirs(log_dir, exist_ok=True)
    max_mb = float(os.getenv("LOG_FILE_MAX_MB", "10"))
    backup_count = int(os.getenv("LOG_FILE_BACKUPS", "5"))
    max_bytes = max(1, int(max_mb * 1024 * 1024))
    backup_count = max(1, backup_count)
    log_path = os.path.join(log_dir, filename)
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(level: str, log_dir: str | None = None) -> None:
    """Configure root logging level and handlers."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        try:
            handlers.append(_build_rotating_handler(log_dir, "oabypass.log"))
        except OSError as exc:
            # Fall back to stdout-only if file logging can't be initialized.
            print(f"[oabypass] file logging disabled: {exc}", file=sys.stderr)
    logging.basicConfig(level=numeric, handlers=handlers, force=True)


def log_event(level: int, message: str, **fields) -> None:
    """Emit a structured log line."""
    payload = {"message": message, "ts": int(time.time())}
    payload.update(fields)
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


def redact_headers(headers, redact_list=SENSITIVE_HEADERS):
    """Return headers dict with sensitive keys masked."""
    redact_set = {item.lower() for item in redact_list}
    safe = {}
    for key, value in headers.items():
        if key.lower() in redact_set:
            safe[key] = "***"
        else:
            safe[key] = value
    return safe

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import get_logs_dir

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "name": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _STANDARD_ATTRS or key in payload:
                continue
            try:
                json.dumps(value)
            except TypeError:
                continue
            payload[key] = value
        return json.dumps(payload, ensure_ascii=False)


def configure_json_logging(
    working_dir: Path,
    name: str = "stlcatalog",
    *,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach a JSONL file handler for *name* under ``<working_dir>/logs``."""

    logs_dir = get_logs_dir(working_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / "stlcatalog.log.jsonl"
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == str(log_path):
            break
    else:
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(JsonLogFormatter())
        logger.addHandler(handler)
    return logger


def configure_console_logging(verbose: bool = False, *, log_path: Optional[Path] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    handlers[0].setFormatter(formatter)
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=handlers)


def redact_secret(value: str | None) -> str:
    if not value:
        return ""
    if len(value) <= 6:
        return "***"
    return f"{value[:3]}***{value[-2:]}"


__all__ = ["JsonLogFormatter", "configure_console_logging", "configure_json_logging", "redact_secret"]

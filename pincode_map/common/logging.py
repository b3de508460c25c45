"""JSON logging with stable schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pincode_map.common.constants import JSON_LOG_FIELDS
from pincode_map.common.fs import ensure_dir
from pincode_map.common.time_utils import utc_timestamp_iso

PACKAGE_LOGGER = "pincode_map"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
            "batch_id": getattr(record, "batch_id", None),
            "postal_code": getattr(record, "postal_code", None),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "processed": getattr(record, "processed", None),
            "total": getattr(record, "total", None),
            "failures": getattr(record, "failures", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "error_code": getattr(record, "error_code", None),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        return json.dumps(payload, ensure_ascii=False)


class RunIdFilter(logging.Filter):
    """Stamp records from library loggers with the active run id."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "run_id", None) is None:
            record.run_id = self.run_id
        return True


def build_logger(run_id: str, data_dir: Path, level: str = "INFO") -> logging.Logger:
    # Handlers live on the package logger so module loggers share them.
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level.upper())
    for handler in list(package_logger.handlers):
        handler.close()
    package_logger.handlers.clear()

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    stream.addFilter(RunIdFilter(run_id))
    package_logger.addHandler(stream)

    log_path = data_dir / "run_meta" / f"{run_id}.log.jsonl"
    ensure_dir(log_path.parent)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    file_handler.addFilter(RunIdFilter(run_id))
    package_logger.addHandler(file_handler)

    return logging.getLogger(f"{PACKAGE_LOGGER}.run.{run_id}")


def log_event(logger: logging.Logger, message: str, **event_fields: Any) -> None:
    logger.info(message, extra=event_fields)


def log_warning(logger: logging.Logger, message: str, **event_fields: Any) -> None:
    logger.warning(message, extra=event_fields)

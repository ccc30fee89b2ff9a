# services/workflow-replicator-service/app/infra/logging.py
from __future__ import annotations
import logging
import os
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_LEVELS: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


class RingBufferHandler(logging.Handler):
    """
    Keeps the most recent log records in memory for the /debug/logs endpoint.
    """

    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._records: Deque[Dict[str, Any]] = deque(maxlen=max(1, capacity))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._records.append(
                {
                    "at": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                }
            )
        except Exception:
            self.handleError(record)

    def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        items = list(self._records)
        if limit is not None and limit >= 0:
            items = items[-limit:] if limit else []
        return items

    def clear(self) -> None:
        self._records.clear()


_buffer: Optional[RingBufferHandler] = None


def get_log_buffer() -> RingBufferHandler:
    global _buffer
    if _buffer is None:
        _buffer = RingBufferHandler()
    return _buffer


def setup_logging(service_name: str = "workflow-replicator-service", *, buffer_capacity: int = 500) -> None:
    """
    Minimal, consistent structured-ish logging, plus the in-memory debug buffer.
    """
    global _buffer
    level = _LEVELS.get(_LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=(
            "%(asctime)s | %(levelname)s | %(name)s | "
            f"svc={service_name} | %(message)s"
        ),
    )

    root = logging.getLogger()
    if _buffer is not None and _buffer in root.handlers:
        root.removeHandler(_buffer)
    _buffer = RingBufferHandler(capacity=buffer_capacity)
    _buffer.setLevel(level)
    root.addHandler(_buffer)

    # quiet noisy deps if needed
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

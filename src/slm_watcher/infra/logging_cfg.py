"""
Structured logging for the watcher.

Watcher components emit one JSON object per log message
(``{"event": ..., "order_id": ..., ...}``). This module renders those
messages twice:

- on the console through a rich handler, with repeated per-tick events
  (``slm_watch_pending``) throttled per order
- into a JSON-lines file, where the event fields are lifted to the top level
  of each record; file writes go through a queue listener thread so the
  event loop never blocks on disk
"""

from __future__ import annotations

import atexit
import json
import logging
import queue
import time
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Iterable, Optional

from rich.logging import RichHandler

THROTTLED_EVENTS = frozenset({"slm_watch_pending"})


def _event_payload(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    """Decode a structured message, or None for plain text."""
    try:
        data = json.loads(record.getMessage())
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


class JsonFormatter(logging.Formatter):
    """One JSON line per record; structured event fields are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": record.created,
            "ts_iso": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
        }
        event = _event_payload(record)
        if event is None:
            payload["msg"] = record.getMessage()
        else:
            payload.update(event)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


class ThrottledFilter(logging.Filter):
    """
    Passes the first occurrence of a throttled event for each order, then
    drops repeats for ``cooldown_sec``. Other records always pass.
    """

    def __init__(self, cooldown_sec: float = 30.0, throttled_events: Optional[Iterable[str]] = None):
        super().__init__()
        self.cooldown_sec = cooldown_sec
        self.throttled_events = frozenset(throttled_events or THROTTLED_EVENTS)
        self._seen: Dict[tuple, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        data = _event_payload(record)
        if data is None or data.get("event") not in self.throttled_events:
            return True

        key = (data["event"], data.get("order_id"))
        now = time.monotonic()
        if key in self._seen and now - self._seen[key] < self.cooldown_sec:
            return False
        self._seen[key] = now
        return True


def _queued_file_handler(file_path: str, level: int) -> QueueHandler:
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(JsonFormatter())
    file_handler.setLevel(level)

    records: queue.Queue = queue.Queue(maxsize=10000)
    listener = QueueListener(records, file_handler, respect_handler_level=True)
    listener.start()
    atexit.register(listener.stop)

    handler = QueueHandler(records)
    handler.setLevel(level)
    return handler


def build_logger(
    name: str = "slm_watcher",
    level: int = logging.INFO,
    file_path: Optional[str] = "slm_watcher.log",
    async_file: bool = True,
    throttle: bool = True,
) -> logging.Logger:
    """
    Build the watcher logger. Calling it again only updates the level.

    Args:
        name: Logger name
        level: Minimum log level
        file_path: JSON-lines log file (None disables file logging)
        async_file: Write the file from a background listener thread
        throttle: Throttle repeated per-tick events on the console
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    console = RichHandler(show_path=False, markup=False, rich_tracebacks=False)
    console.setFormatter(logging.Formatter("%(message)s"))
    console.setLevel(level)
    if throttle:
        console.addFilter(ThrottledFilter())
    logger.addHandler(console)

    if file_path:
        if async_file:
            logger.addHandler(_queued_file_handler(file_path, level))
        else:
            plain = logging.FileHandler(file_path)
            plain.setFormatter(JsonFormatter())
            plain.setLevel(level)
            logger.addHandler(plain)

    logger.propagate = False
    return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data: Any) -> None:
    """
    Log a structured event.

    Usage:
        log_event(log, "slm_exit_order_placed", order_id="230101000000002", quantity=20)
    """
    logger.log(level, json.dumps({"event": event, **data}, default=str))

"""Log setup for the reconciliation worker.

Every record emitted while a tick runs carries that tick's id, so the lines
of one pass can be grouped. Structured fields go through ``extra={...}``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

tick_id_ctx_var: ContextVar[str | None] = ContextVar("tick_id", default=None)

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(tick_id)s] %(message)s"

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "tick_id"}
_MAX_TEXT = 5000
_MAX_ITEMS = 200


@contextmanager
def tick_context(tick_id: str) -> Iterator[str]:
    """Bind ``tick_id`` to every record logged inside the block."""
    token = tick_id_ctx_var.set(tick_id)
    try:
        yield tick_id
    finally:
        tick_id_ctx_var.reset(token)


class TickIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.tick_id = tick_id_ctx_var.get() or "-"
        return True


def _loggable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value[:_MAX_TEXT]
    if isinstance(value, dict):
        return {str(key): _loggable(item) for key, item in list(value.items())[:_MAX_ITEMS]}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_loggable(item) for item in list(value)[:_MAX_ITEMS]]
    return str(value)[:_MAX_TEXT]


class JsonFormatter(logging.Formatter):
    """One JSON object per line: fixed fields first, then the record's extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "tick_id": getattr(record, "tick_id", None) or tick_id_ctx_var.get() or "-",
        }
        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_") or key in payload:
                continue
            payload[key] = _loggable(value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(json_logs: bool = False, level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(TickIdFilter())
    handler.setFormatter(JsonFormatter() if json_logs else logging.Formatter(TEXT_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    # httpx logs every request at INFO; the CDN lookups are logged here already.
    logging.getLogger("httpx").setLevel(logging.WARNING)

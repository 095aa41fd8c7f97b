"""
Opt-in JSON logs for connector events.

Set BOTKIT_LOG_FORMAT=json (or BOTKIT_STRUCTURED_LOGS=1) to get one JSON
object per record; otherwise logging is left alone and events are not emitted.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Optional, Union

Scalar = Union[str, int, float, bool, None]

MAX_FIELD_LEN = 128


def is_structured_logging_enabled() -> bool:
    if (os.environ.get("BOTKIT_LOG_FORMAT") or "").strip().lower() == "json":
        return True
    flag = (os.environ.get("BOTKIT_STRUCTURED_LOGS") or "").strip().lower()
    return flag in {"1", "true", "yes", "on"}


class BotkitJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "botkit_event", None)
        if event:
            entry["event"] = event
            fields = getattr(record, "botkit_fields", None)
            if fields:
                entry["fields"] = fields
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, sort_keys=True, default=str)


def use_json_output(logger: logging.Logger) -> bool:
    """Put BotkitJsonFormatter on the logger's handlers when opted in."""
    if not is_structured_logging_enabled():
        return False
    for handler in logger.handlers:
        if not isinstance(handler.formatter, BotkitJsonFormatter):
            handler.setFormatter(BotkitJsonFormatter())
    return True


def _scalar(value: Scalar) -> Scalar:
    if isinstance(value, str) and len(value) > MAX_FIELD_LEN:
        return value[:MAX_FIELD_LEN] + "..."
    return value


def emit_structured_log(
    logger: logging.Logger,
    *,
    level: int,
    event: str,
    fields: Optional[Dict[str, Scalar]] = None,
) -> None:
    """Log a lifecycle/send/receive event. Fields are flat metadata, never message bodies."""
    if not is_structured_logging_enabled():
        return
    safe = {key: _scalar(value) for key, value in (fields or {}).items()}
    logger.log(level, event, extra={"botkit_event": event, "botkit_fields": safe})

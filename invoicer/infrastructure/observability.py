"""Structured Logging — JSON lines for the billing API.

Invariants:
    - Every record carries timestamp, level, logger, and message
    - Billing identifiers passed through extra= (session, invoice, payment ids,
      invoice number, amounts, error code) become top-level keys
    - setup_logging() replaces the handler it installed before: calling it again
      (tests, reloads) never duplicates output

Design Decisions:
    - Timestamps come from the record, not from format time
    - SQLAlchemy engine logging follows LOG_LEVEL=DEBUG only; at INFO it would
      print every statement
"""

import json
import logging
from datetime import datetime, timezone

LOG_FIELDS = (
    "session_id", "invoice_id", "payment_id", "invoice_number",
    "amount_cents", "status", "error_code", "path",
)
HANDLER_NAME = "invoicer"


def _extra_fields(record: logging.LogRecord) -> dict:
    fields = {}
    for key in LOG_FIELDS:
        value = record.__dict__.get(key)
        if value is None:
            continue
        fields[key] = value if isinstance(value, (int, float, bool)) else str(value)
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extra_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines for development, billing ids appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the application handler on the root logger."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)

    resolved = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(resolved)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if resolved <= logging.DEBUG else logging.WARNING,
    )
    return handler

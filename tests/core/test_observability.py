"""Structured logging — billing ids surface as top-level JSON keys."""

import json
import logging
from uuid import UUID

from invoicer.infrastructure.observability import HANDLER_NAME, JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "invoicer.services.payment_reconciler", logging.INFO, __file__, 1,
        "Payment recorded", None, None,
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_billing_fields():
    invoice_id = UUID(int=7)
    line = JSONFormatter().format(_record(invoice_id=invoice_id, amount_cents=4000))
    entry = json.loads(line)

    assert entry["message"] == "Payment recorded"
    assert entry["level"] == "INFO"
    assert entry["invoice_id"] == str(invoice_id)
    assert entry["amount_cents"] == 4000
    assert "payment_id" not in entry


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        setup_logging("INFO", "json")
        setup_logging("DEBUG", "text")
        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

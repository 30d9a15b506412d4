import json
import logging

from student_api.logging_config import (
    StructuredJsonFormatter, get_logger, log_with_context, request_id_var
)


def test_formatter_emits_structured_json():
    logger = get_logger("students")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "Created student %s", ("12-34567-890",), None,
        extra={"context": {"student_no": "12-34567-890"}, "extra_data": {"duration_ms": 1.5},
               "channel": "students"},
    )
    token = request_id_var.set("req-1")
    try:
        entry = json.loads(StructuredJsonFormatter().format(record))
    finally:
        request_id_var.reset(token)

    assert entry["level"] == "INFO"
    assert entry["message"] == "Created student 12-34567-890"
    assert entry["channel"] == "students"
    assert entry["context"] == {"request_id": "req-1", "student_no": "12-34567-890"}
    assert entry["extra"] == {"duration_ms": 1.5}
    assert entry["timestamp"].endswith("Z")


def test_log_with_context_attaches_channel(caplog):
    logger = get_logger("db")
    with caplog.at_level(logging.INFO, logger=logger.name):
        log_with_context(logger, "WARNING", "Database ping failed", extra_data={"error": "boom"})

    record = caplog.records[-1]
    assert record.levelname == "WARNING"
    assert record.channel == "db"
    assert record.extra_data == {"error": "boom"}

"""
Unit tests for logging context and error payloads
"""

import logging

from utils.core.errors import make_error_payload
from utils.core.log import (
    ContextFilter,
    DynamicPrefixFormatter,
    get_logger,
    project_logger,
    set_logger,
)


def make_record(name="VendorScoring", level=logging.INFO, msg="hello", **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestLoggerContext:
    def test_default_logger(self):
        set_logger(logging.getLogger("VendorScoring"))
        assert get_logger().logger.name == "VendorScoring"

    def test_context_fields_filled(self):
        set_logger(logging.getLogger("VendorScoring"), vendor_name="Acme", tool_name="score_vendor")
        record = make_record()
        ContextFilter().filter(record)
        assert record.vendor_name == "Acme"
        assert record.tool_name == "score_vendor"
        assert record.project_id == "N/A"


class TestDynamicPrefixFormatter:
    def test_plain_line(self):
        record = make_record(
            name="p1.cost_extract",
            request_type="WORKER",
            project_id="p1",
            vendor_name="Acme",
            tool_name="extract",
            questionnaire_type="N/A",
        )
        line = DynamicPrefixFormatter(color=False).format(record)
        assert line.startswith("[+] ")
        assert "PROCUREMENT" in line
        assert "Acme" in line
        assert line.endswith("hello")
        assert "\033[" not in line

    def test_questionnaire_type_wins(self):
        record = make_record(level=logging.WARNING, questionnaire_type="nfr")
        line = DynamicPrefixFormatter(color=False).format(record)
        assert line.startswith("[-] ")
        assert "NFR" in line


class TestProjectLogger:
    def test_writes_errors_to_project_file(self, tmp_path):
        logger = project_logger("p1", "questionnaire_scoring", base_dir=tmp_path)
        logger.info("skipped")
        logger.error("kept")
        for handler in logger.handlers:
            handler.flush()
        content = (tmp_path / "p1" / "questionnaire_scoring.log").read_text()
        assert "kept" in content
        assert "skipped" not in content


class TestErrorPayload:
    def test_payload_shape(self):
        payload = make_error_payload("parse", ValueError("bad header"), {"file": "a.xlsx"})
        assert payload["status"] == "error"
        assert payload["error"] == "bad header"
        assert payload["stage"] == "parse"
        assert payload["file"] == "a.xlsx"
        assert payload["errorType"] == "ValueError"
        assert payload["timestamp"].endswith("Z")

    def test_message_only(self):
        payload = make_error_payload("fetch", "document not loaded")
        assert payload["error"] == "document not loaded"
        assert "errorType" not in payload

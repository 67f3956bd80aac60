"""
Tests for src/utils/logging.py - JSON formatter and correlation IDs.
"""
import asyncio
import json
import logging

from src.utils.logging import (
    StructuredJsonFormatter,
    configure_structured_logging,
    correlation_id_ctx,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="src.services.lead_ingestion", level=logging.INFO, pathname=__file__,
        lineno=1, msg=msg, args=args, exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    def test_generate_is_32_hex_chars(self):
        cid = generate_correlation_id()
        assert len(cid) == 32
        int(cid, 16)

    def test_set_and_get(self):
        token = correlation_id_ctx.set(None)
        try:
            assert get_correlation_id() is None
            set_correlation_id("abc")
            assert get_correlation_id() == "abc"
        finally:
            correlation_id_ctx.reset(token)

    async def test_child_task_inherits_correlation_id(self):
        """Detached ingestion tasks keep the ID of the request that spawned them."""
        token = correlation_id_ctx.set("request-cid")
        try:
            async def read():
                return get_correlation_id()

            seen = await asyncio.create_task(read())
        finally:
            correlation_id_ctx.reset(token)
        assert seen == "request-cid"


class TestStructuredJsonFormatter:
    def test_formats_single_line_json(self):
        output = StructuredJsonFormatter().format(_record())
        assert "\n" not in output
        entry = json.loads(output)
        assert entry["level"] == "INFO"
        assert entry["module"] == "src.services.lead_ingestion"
        assert entry["message"] == "hello world"
        assert entry["timestamp"].endswith("Z")

    def test_includes_correlation_id(self):
        token = correlation_id_ctx.set("cid-42")
        try:
            entry = json.loads(StructuredJsonFormatter().format(_record()))
        finally:
            correlation_id_ctx.reset(token)
        assert entry["correlation_id"] == "cid-42"

    def test_known_extra_fields_included(self):
        record = _record(leadgen_id="L1", reason="hash_mismatch", status_code=400)
        entry = json.loads(StructuredJsonFormatter().format(record))
        assert entry["leadgen_id"] == "L1"
        assert entry["reason"] == "hash_mismatch"
        assert entry["status_code"] == 400

    def test_unknown_extra_fields_dropped(self):
        record = _record(access_token="secret-token")
        output = StructuredJsonFormatter().format(record)
        assert "secret-token" not in output

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(StructuredJsonFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestConfigureStructuredLogging:
    def test_installs_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging("debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredJsonFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_quiets_http_client_loggers(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging("DEBUG")
            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger("httpcore").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_unknown_level_falls_back_to_info(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging("chatty")
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

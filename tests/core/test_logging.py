"""Tests for structlog configuration and scoped context."""

import json

import pytest
import structlog

from scanspine.core.logging import LogContext, bind_context, configure_logging, get_logger, unbind_context


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging("INFO", json_format=True, service="scanspine-test")
        get_logger("scanspine.test").info("engine.run_started", sources=2)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "engine.run_started"
        assert record["sources"] == 2
        assert record["level"] == "info"
        assert record["logger"] == "scanspine.test"
        assert record["service"] == "scanspine-test"
        assert "timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging("ERROR", json_format=True)
        get_logger("scanspine.test").warning("cache.write_failed")
        assert "cache.write_failed" not in capsys.readouterr().err


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(run_id="abc")
        assert structlog.contextvars.get_contextvars()["run_id"] == "abc"
        unbind_context("run_id")
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_log_context(self):
        with LogContext(source="file:///x"):
            assert structlog.contextvars.get_contextvars()["source"] == "file:///x"
        assert "source" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_async_log_context(self):
        async with LogContext(run_id="r1"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "r1"
        assert "run_id" not in structlog.contextvars.get_contextvars()

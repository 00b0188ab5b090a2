"""
Tests for the logging module.
"""

import pytest

from comms_orchestrator.logging import (
    PipelineTimer,
    add_context_info,
    get_company_id,
    get_logger,
    get_project_id,
    get_trace_id,
    logging_context,
)


class TestLoggingContext:
    """Test logging context management."""

    def test_logging_context_sets_values(self):
        with logging_context(
            trace_id="trace_123",
            company_id="company_abc",
            project_id="project_xyz",
        ):
            assert get_trace_id() == "trace_123"
            assert get_company_id() == "company_abc"
            assert get_project_id() == "project_xyz"

    def test_logging_context_restores_values(self):
        """Test that context is restored after exiting."""
        with logging_context(trace_id="outer"):
            assert get_trace_id() == "outer"

            with logging_context(trace_id="inner", project_id="p-1"):
                assert get_trace_id() == "inner"

            assert get_trace_id() == "outer"
            assert get_project_id() is None

        assert get_trace_id() is None

    def test_processor_adds_context(self):
        with logging_context(trace_id="t-1", company_id="c-1", project_id="p-ctx"):
            event = add_context_info(None, "info", {"event": "x", "project_id": "p-explicit"})

        assert event["trace_id"] == "t-1"
        assert event["company_id"] == "c-1"
        assert event["project_id"] == "p-explicit"

    def test_processor_without_context(self):
        assert add_context_info(None, "info", {"event": "x"}) == {"event": "x"}


class TestModuleLoggers:
    def test_dispatcher_uses_shared_logger(self):
        from comms_orchestrator.pipeline import dispatcher

        assert dispatcher.get_logger is get_logger
        assert not hasattr(dispatcher, "structlog")


class TestPipelineTimer:
    """Test pipeline timing functionality."""

    def test_timer_records_stages(self):
        timer = PipelineTimer()

        with timer.stage("summary_update"):
            pass

        with timer.stage("action_detection"):
            pass

        assert timer.stages["summary_update"] >= 0
        assert timer.stages["action_detection"] >= 0

    def test_stage_recorded_on_error(self):
        timer = PipelineTimer()

        with pytest.raises(RuntimeError):
            with timer.stage("summary_update"):
                raise RuntimeError("boom")

        assert "summary_update" in timer.stages

    def test_timer_summary(self):
        timer = PipelineTimer()
        timer.stages["summary_update"] = 100.123

        summary = timer.summary()

        assert summary["total_ms"] >= 0
        assert summary["stages"] == {"summary_update": 100.12}

"""Tests for the structlog configuration and run-context injection."""

import logging

import structlog

from wisdom.core.logging import (
    _inject_context_vars,
    bind_iteration,
    bind_run_id,
    clear_run_context,
    configure_structlog,
    get_iteration,
    get_run_id,
)


class TestConfigureStructlog:
    def test_configure_does_not_raise_in_debug_mode(self) -> None:
        configure_structlog(debug=True)

    def test_configure_does_not_raise_in_prod_mode(self) -> None:
        configure_structlog(debug=False)

    def test_logger_usable_after_configure(self) -> None:
        configure_structlog(debug=True)
        logger = structlog.get_logger("test")
        # Should not raise
        logger.info("test message", key="value")

    def test_stdlib_bridge_is_active_after_configure(self) -> None:
        configure_structlog(debug=False)
        logging.getLogger("test.stdlib").info("stdlib message")


class TestRunContext:
    def teardown_method(self) -> None:
        clear_run_context()

    def test_defaults_outside_a_run(self) -> None:
        clear_run_context()
        assert get_run_id() == ""
        assert get_iteration() is None

    def test_bound_values_are_injected(self) -> None:
        bind_run_id("run-123")
        bind_iteration(4)
        event = _inject_context_vars(logging.getLogger("t"), "info", {"event": "x"})
        assert event["run_id"] == "run-123"
        assert event["iteration"] == 4

    def test_nothing_injected_when_unbound(self) -> None:
        clear_run_context()
        event = _inject_context_vars(logging.getLogger("t"), "info", {"event": "x"})
        assert event == {"event": "x"}

    def test_explicit_fields_win(self) -> None:
        bind_run_id("run-123")
        event = _inject_context_vars(logging.getLogger("t"), "info", {"run_id": "other"})
        assert event["run_id"] == "other"

    def test_clear_resets_both_fields(self) -> None:
        bind_run_id("run-123")
        bind_iteration(2)
        clear_run_context()
        assert get_run_id() == ""
        assert get_iteration() is None

"""
Unit tests for structured logging configuration.

Tests verify:
- Logging configuration works for JSON and console output
- The run_id context variable is set, read and attached to entries
"""
from catalog_cache.core import logging as cache_logging
from catalog_cache.core.logging import (
    add_run_context,
    configure_logging,
    generate_run_id,
    get_logger,
    get_run_id,
    set_run_id,
)


class TestLoggingConfiguration:
    """Test logging configuration and setup."""

    def test_configure_logging_json_output(self):
        """Logging can be configured with JSON output."""
        configure_logging(log_level="INFO", json_output=True)
        logger = get_logger(__name__)

        logger.info("test_message", test_field="test_value")

    def test_configure_logging_console_output(self):
        """Logging can be configured with console output."""
        configure_logging(log_level="DEBUG", json_output=False)
        logger = get_logger(__name__)

        logger.debug("test_message", test_field="test_value")

    def test_service_name_override(self):
        """The service name can be overridden at configuration time."""
        original = cache_logging.SERVICE_NAME
        try:
            configure_logging(log_level="INFO", service_name="catalog_cache_worker")
            assert cache_logging.SERVICE_NAME == "catalog_cache_worker"
        finally:
            cache_logging.SERVICE_NAME = original


class TestRunContext:
    """Test the reconciliation run context."""

    def test_set_and_get_run_id(self):
        """Run IDs are stored per context."""
        set_run_id("run-123")
        assert get_run_id() == "run-123"

        set_run_id(None)
        assert get_run_id() is None

    def test_run_context_added_to_entries(self):
        """Entries carry service, timestamp and the active run_id."""
        set_run_id("run-456")
        try:
            event = add_run_context(None, "info", {"event": "view_reconcile_started"})
        finally:
            set_run_id(None)

        assert event["run_id"] == "run-456"
        assert event["service"] == cache_logging.SERVICE_NAME
        assert "timestamp" in event

    def test_no_run_id_outside_a_pass(self):
        """Entries outside a pass have no run_id."""
        event = add_run_context(None, "info", {"event": "cache_set"})

        assert "run_id" not in event

    def test_generate_run_id(self):
        """Run IDs are UUID4 strings."""
        run_id = generate_run_id()

        assert isinstance(run_id, str)
        assert len(run_id) == 36
        assert run_id.count("-") == 4

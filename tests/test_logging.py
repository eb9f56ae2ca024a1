"""
Tests for structured logging helpers.
"""

from unittest.mock import MagicMock, patch

import pytest

from src.core.logging import (
    PerformanceLogger,
    add_checkout_id,
    clear_context,
    get_checkout_id,
    log_performance,
    set_checkout_id,
)


class TestCheckoutCorrelation:
    """Test suite for the checkout correlation ID."""

    def test_set_checkout_id_generates_uuid(self):
        checkout_id = set_checkout_id()

        assert len(checkout_id) == 36
        assert get_checkout_id() == checkout_id
        clear_context()

    def test_processor_adds_checkout_id(self):
        set_checkout_id("checkout-123")

        event = add_checkout_id(MagicMock(), "info", {"event": "Stock reserved"})

        assert event["checkout_id"] == "checkout-123"
        clear_context()

    def test_cleared_context_adds_nothing(self):
        set_checkout_id("checkout-123")
        clear_context()

        event = add_checkout_id(MagicMock(), "info", {"event": "Stock reserved"})

        assert "checkout_id" not in event
        assert get_checkout_id() is None


class TestPerformanceLogger:
    """Test suite for operation timing."""

    def test_completed_operation_logged(self):
        logger = MagicMock()

        with log_performance(logger, "create_order", user_id="u1"):
            pass

        logger.info.assert_called_once()
        kwargs = logger.info.call_args.kwargs
        assert kwargs["operation"] == "create_order"
        assert kwargs["user_id"] == "u1"
        assert kwargs["duration_ms"] >= 0

    def test_slow_operation_logged_as_warning(self):
        logger = MagicMock()

        with patch("src.core.logging.time") as mock_time:
            mock_time.perf_counter.side_effect = [0.0, 1.0]
            with PerformanceLogger(logger, "create_order"):
                pass

        logger.warning.assert_called_once()
        assert logger.warning.call_args.kwargs["duration_ms"] == 1000.0

    def test_failed_operation_logged_and_reraised(self):
        logger = MagicMock()

        with pytest.raises(ValueError):
            with log_performance(logger, "create_order"):
                raise ValueError("boom")

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["error_type"] == "ValueError"

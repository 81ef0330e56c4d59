"""Unit tests for correlation ID propagation."""

import logging
import threading

import pytest

from whitelist_gatekeeper.core.correlation import (
    CorrelatedLogger,
    correlation_context,
    extract_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    get_trace_context,
)


class TestCorrelationId:
    """Tests for correlation ID functions."""

    def test_generate_correlation_id_format(self) -> None:
        """Generated IDs should have correct format."""
        cid = generate_correlation_id()
        assert cid.startswith("wl-")
        assert len(cid) == 19  # "wl-" + 16 hex chars

    def test_generate_correlation_id_unique(self) -> None:
        """Generated IDs should be unique."""
        ids = {generate_correlation_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_get_correlation_id_none_by_default(self) -> None:
        """get_correlation_id returns None outside context."""
        assert get_correlation_id() is None

    def test_extract_from_headers_case_insensitive(self) -> None:
        """Header lookup ignores case."""
        assert extract_correlation_id({"x-correlation-id": "req-1"}) == "req-1"
        assert extract_correlation_id({"Other": "x"}) is None


class TestCorrelationContext:
    """Tests for correlation_context."""

    def test_context_sets_id(self) -> None:
        """Context manager should set correlation ID."""
        with correlation_context("req-abc") as cid:
            assert cid == "req-abc"
            assert get_correlation_id() == "req-abc"
        assert get_correlation_id() is None

    def test_context_generates_id_if_none(self) -> None:
        """Context manager should generate ID if none provided."""
        with correlation_context() as cid:
            assert cid.startswith("wl-")
            assert get_correlation_id() == cid

    def test_nested_context_restores_outer(self) -> None:
        """Leaving an inner context restores the outer ID and trace."""
        with correlation_context("outer", uuid="abc-123"):
            with correlation_context("inner", username="Steve"):
                assert get_trace_context() == {
                    "uuid": "abc-123",
                    "username": "Steve",
                    "correlation_id": "inner",
                }
            assert get_correlation_id() == "outer"
            assert get_trace_context() == {"uuid": "abc-123", "correlation_id": "outer"}

    def test_context_isolated_between_threads(self) -> None:
        """Threads do not see each other's correlation IDs."""
        seen: list[str | None] = []

        def worker() -> None:
            seen.append(get_correlation_id())

        with correlation_context("main-thread"):
            t = threading.Thread(target=worker)
            t.start()
            t.join()

        assert seen == [None]


class TestCorrelatedLogger:
    """Tests for CorrelatedLogger."""

    def test_log_records_carry_trace(self, caplog: pytest.LogCaptureFixture) -> None:
        """Records include correlation ID and trace context."""
        logger = CorrelatedLogger(logging.getLogger("whitelist_gatekeeper.test"))

        with caplog.at_level(logging.INFO, logger="whitelist_gatekeeper.test"):
            with correlation_context("req-9", uuid="abc-123"):
                logger.info("hello %s", "world")

        record = caplog.records[-1]
        assert record.getMessage() == "hello world"
        assert record.correlation_id == "req-9"
        assert record.uuid == "abc-123"

    def test_existing_extra_preserved(self, caplog: pytest.LogCaptureFixture) -> None:
        """Caller-supplied extra fields are kept."""
        logger = CorrelatedLogger(logging.getLogger("whitelist_gatekeeper.test"))

        with caplog.at_level(logging.WARNING, logger="whitelist_gatekeeper.test"):
            logger.warning("msg", extra={"slot": 4})

        assert caplog.records[-1].slot == 4
        assert caplog.records[-1].correlation_id is None

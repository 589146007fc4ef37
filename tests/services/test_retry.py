"""
Tests for the optimistic retry loop.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from ops_kernel.exceptions import ConcurrentModificationError
from ops_kernel.services.retry import run_with_retry


class TestRunWithRetry:

    def test_success_on_first_attempt(self, session):
        calls = []

        result = run_with_retry(session, lambda: calls.append(1) or "done", operation_name="op")

        assert result == "done"
        assert len(calls) == 1

    def test_conflict_then_success(self, session, captured_logs):
        attempts = []

        def _operation():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConcurrentModificationError("InventoryItem", "SKU-1")
            return "ok"

        assert run_with_retry(session, _operation, operation_name="stock_deduct") == "ok"
        assert len(attempts) == 2

        messages = [r["message"] for r in captured_logs()]
        assert "optimistic_conflict_retry" in messages
        assert "optimistic_retry_succeeded" in messages

    def test_stale_data_is_treated_as_conflict(self, session):
        attempts = []

        def _operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise StaleDataError("row changed")
            return len(attempts)

        assert run_with_retry(session, _operation, operation_name="op") == 3

    def test_exhausted_attempts_raise(self, session):
        def _always_conflicts():
            raise ConcurrentModificationError("Order", "o-1")

        with pytest.raises(ConcurrentModificationError) as exc_info:
            run_with_retry(session, _always_conflicts, operation_name="op", max_attempts=3)

        assert exc_info.value.attempts == 3
        assert exc_info.value.entity_type == "Order"
        assert exc_info.value.code == "CONCURRENT_MODIFICATION"

    def test_other_errors_are_not_retried(self, session):
        attempts = []

        def _fails():
            attempts.append(1)
            raise KeyError("boom")

        with pytest.raises(KeyError):
            run_with_retry(session, _fails, operation_name="op")
        assert len(attempts) == 1

    def test_max_attempts_must_be_positive(self, session):
        with pytest.raises(ValueError):
            run_with_retry(session, lambda: None, operation_name="op", max_attempts=0)

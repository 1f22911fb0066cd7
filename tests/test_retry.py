"""Tests for bounded retries on transient database errors."""
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from erp.core.config import settings
from erp.core.retry import transient_retry, backoff_delay, is_transient
from erp.error_handlers import TransientStoreError


def connection_lost() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection lost"))


class FakeSession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


class FlakyWriter:
    """Fails ``failures`` times with ``error`` before succeeding."""

    def __init__(self, failures: int, error=connection_lost):
        self.session = FakeSession()
        self.failures = failures
        self.error = error
        self.calls = 0

    @transient_retry
    async def save(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error()
        return value


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(settings, "db_retry_attempts", 3)
    monkeypatch.setattr(settings, "db_retry_base_delay", 0.0)
    monkeypatch.setattr(settings, "db_retry_max_delay", 0.0)


class TestTransientRetry:
    """Tests for the retry decorator."""

    async def test_success_without_retry(self):
        writer = FlakyWriter(failures=0)

        assert await writer.save("ok") == "ok"
        assert writer.calls == 1
        assert writer.session.rollbacks == 0

    async def test_recovers_after_transient_errors(self):
        writer = FlakyWriter(failures=2)

        assert await writer.save("ok") == "ok"
        assert writer.calls == 3
        assert writer.session.rollbacks == 2

    async def test_gives_up_after_bounded_attempts(self):
        writer = FlakyWriter(failures=10)

        with pytest.raises(TransientStoreError) as exc_info:
            await writer.save("ok")

        assert writer.calls == 4
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["attempts"] == 4
        assert "connection lost" in exc_info.value.message

    async def test_non_transient_error_is_not_retried(self):
        writer = FlakyWriter(
            failures=1,
            error=lambda: IntegrityError("INSERT", {}, Exception("duplicate key")),
        )

        with pytest.raises(IntegrityError):
            await writer.save("ok")
        assert writer.calls == 1

    async def test_application_errors_propagate(self):
        writer = FlakyWriter(failures=1, error=lambda: ValueError("bad input"))

        with pytest.raises(ValueError):
            await writer.save("ok")
        assert writer.calls == 1


class TestBackoff:
    """Tests for the delay schedule."""

    def test_delay_grows_and_is_capped(self):
        assert 0.5 <= backoff_delay(2, base=0.5, cap=5.0) <= 1.0
        assert 2.5 <= backoff_delay(10, base=0.5, cap=5.0) <= 5.0

    def test_is_transient(self):
        assert is_transient(connection_lost())
        assert not is_transient(IntegrityError("INSERT", {}, Exception("duplicate key")))

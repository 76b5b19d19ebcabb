"""Tests for the per-device quota gate."""

import threading
from datetime import timedelta

import pytest

from reefscan.core.exceptions import QuotaExceededError
from reefscan.services.quota import InMemoryQuotaStore, QuotaGate


@pytest.fixture
def gate(clock) -> QuotaGate:
    return QuotaGate(InMemoryQuotaStore(), limit=3, window=timedelta(hours=24), clock=clock)


# =============================================================================
# check / acquire
# =============================================================================


class TestQuotaCheck:
    """Allow-then-increment state machine."""

    def test_allows_up_to_limit_then_denies(self, gate):
        assert [gate.check('reef-1') for _ in range(4)] == [True, True, True, False]

    def test_denied_call_does_not_change_counter(self, gate):
        for _ in range(5):
            gate.check('reef-1')
        assert gate.status('reef-1').used == 3

    def test_devices_are_independent(self, gate):
        for _ in range(3):
            gate.check('reef-1')
        assert gate.check('reef-2') is True

    def test_window_starts_at_first_call(self, gate, clock):
        first_call = clock()
        gate.check('reef-1')
        assert gate.status('reef-1').reset_at == first_call + timedelta(hours=24)

    def test_window_resets_only_after_reset_time(self, gate, clock):
        for _ in range(3):
            gate.check('reef-1')

        clock.advance(hours=24)
        assert gate.check('reef-1') is False

        clock.advance(seconds=1)
        assert gate.check('reef-1') is True
        status = gate.status('reef-1')
        assert status.used == 1
        assert status.reset_at == clock() + timedelta(hours=24)

    def test_acquire_raises_with_usage(self, gate):
        for _ in range(3):
            gate.acquire('reef-1')

        with pytest.raises(QuotaExceededError) as exc_info:
            gate.acquire('reef-1')

        error = exc_info.value
        assert (error.used, error.limit) == (3, 3)
        assert error.status_code == 429
        assert error.to_dict()['code'] == 'RATE_LIMIT_EXCEEDED'

    def test_concurrent_checks_never_exceed_limit(self, clock):
        gate = QuotaGate(InMemoryQuotaStore(), limit=10, clock=clock)
        allowed = []

        def worker():
            for _ in range(10):
                allowed.append(gate.check('busy-device'))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert allowed.count(True) == 10


# =============================================================================
# status / ensure_capacity
# =============================================================================


class TestQuotaStatus:
    """Read-only views of the counter."""

    def test_unknown_device_reads_as_unused(self, gate):
        status = gate.status('never-seen')
        assert (status.used, status.remaining, status.reset_at) == (0, 3, None)

    def test_status_does_not_consume(self, gate):
        for _ in range(5):
            gate.status('reef-1')
        assert gate.check('reef-1') is True
        assert gate.status('reef-1').used == 1

    def test_expired_window_reads_as_unused(self, gate, clock):
        gate.check('reef-1')
        clock.advance(hours=25)
        assert gate.status('reef-1').used == 0

    def test_ensure_capacity_rejects_without_consuming(self, gate):
        gate.check('reef-1')

        with pytest.raises(QuotaExceededError) as exc_info:
            gate.ensure_capacity('reef-1', 3)

        assert exc_info.value.requested == 3
        assert 'only 2 of 3 remaining' in exc_info.value.message
        assert gate.status('reef-1').used == 1

    def test_ensure_capacity_accepts_exact_fit(self, gate):
        gate.check('reef-1')
        assert gate.ensure_capacity('reef-1', 2).remaining == 2

"""
Per-device quota gate for vision model calls.

Each device gets `limit` calls per window. The window opens on the first call
and resets on the first call after it expires (allow-then-increment):

    no entry        -> count=1, reset_at=now+window, allow
    now > reset_at  -> count=1, reset_at=now+window, allow
    count >= limit  -> deny
    otherwise       -> count += 1, allow

Counters live in a QuotaStore. InMemoryQuotaStore is process-local and is not
persisted: a restart resets every device's quota.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypeVar

from reefscan.core.exceptions import QuotaExceededError
from reefscan.schemas.analysis import QuotaStatus
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class QuotaCounter:
    """Calls used in the current window and when the window ends."""

    count: int
    reset_at: datetime


Transition = Callable[[QuotaCounter | None], tuple[QuotaCounter | None, T]]


# =============================================================================
# Storage
# =============================================================================
class QuotaStore(ABC):
    """Atomic read-modify-write access to per-device counters."""

    @abstractmethod
    def apply(self, device_id: str, transition: Transition) -> T:
        """
        Run transition on the device's counter as one atomic step.

        The transition receives the current counter (None if absent) and returns
        (new_counter, result). The new counter is stored and result returned.
        """

    @abstractmethod
    def peek(self, device_id: str) -> QuotaCounter | None:
        """Current counter without modifying it."""


class InMemoryQuotaStore(QuotaStore):
    """
    Process-local quota counters with per-device locks.

    A registry lock guards creation of device locks; counter updates only take
    the device's own lock, so devices never contend with each other.
    """

    def __init__(self):
        self._counters: dict[str, QuotaCounter] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, device_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = self._locks[device_id] = threading.Lock()
            return lock

    def apply(self, device_id: str, transition: Transition) -> T:
        with self._lock_for(device_id):
            counter, result = transition(self._counters.get(device_id))
            if counter is None:
                self._counters.pop(device_id, None)
            else:
                self._counters[device_id] = counter
            return result

    def peek(self, device_id: str) -> QuotaCounter | None:
        return self._counters.get(device_id)


# =============================================================================
# Gate
# =============================================================================
class QuotaGate:
    """
    Gate in front of the vision model.

    check() consumes one unit at a time and is not batch aware; callers that
    need N units must call ensure_capacity(device_id, N) first.
    """

    def __init__(
        self,
        store: QuotaStore,
        limit: int = 10,
        window: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ):
        self.store = store
        self.limit = limit
        self.window = window
        self.clock = clock

    def check(self, device_id: str) -> bool:
        """
        Consume one unit if available.

        Args:
            device_id: Device identifier

        Returns:
            True if the call is allowed, False if the quota is exhausted
        """
        now = self.clock()

        def transition(counter: QuotaCounter | None) -> tuple[QuotaCounter, bool]:
            if counter is None or now > counter.reset_at:
                return QuotaCounter(count=1, reset_at=now + self.window), True
            if counter.count >= self.limit:
                return counter, False
            return QuotaCounter(count=counter.count + 1, reset_at=counter.reset_at), True

        return self.store.apply(device_id, transition)

    def acquire(self, device_id: str) -> None:
        """
        Consume one unit or raise.

        Raises:
            QuotaExceededError: No units left in the current window
        """
        if self.check(device_id):
            return

        status = self.status(device_id)
        logger.warning(f'Quota exhausted for device {device_id}: {status.used}/{status.limit}')
        raise QuotaExceededError(
            device_id, status.used, status.limit, status.reset_at or self.clock() + self.window
        )

    def status(self, device_id: str) -> QuotaStatus:
        """
        Read-only quota view. An expired window reads as unused.

        Args:
            device_id: Device identifier

        Returns:
            QuotaStatus with used, limit, remaining and reset_at
        """
        counter = self.store.peek(device_id)
        if counter is None or self.clock() > counter.reset_at:
            return QuotaStatus(
                device_id=device_id, used=0, limit=self.limit, remaining=self.limit, reset_at=None
            )

        used = min(counter.count, self.limit)
        return QuotaStatus(
            device_id=device_id,
            used=used,
            limit=self.limit,
            remaining=self.limit - used,
            reset_at=counter.reset_at,
        )

    def ensure_capacity(self, device_id: str, units: int) -> QuotaStatus:
        """
        Verify that `units` calls fit in the current window without consuming any.

        Args:
            device_id: Device identifier
            units: Number of calls about to be made

        Returns:
            Current QuotaStatus

        Raises:
            QuotaExceededError: used + units > limit
        """
        status = self.status(device_id)
        if status.used + units > status.limit:
            logger.warning(
                f'Batch of {units} rejected for device {device_id}: '
                f'{status.remaining} of {status.limit} remaining'
            )
            raise QuotaExceededError(
                device_id,
                status.used,
                status.limit,
                status.reset_at or self.clock() + self.window,
                requested=units,
            )
        return status

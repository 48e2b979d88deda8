"""Per-booking mutual exclusion for settlement operations.

One registry is constructed per process (in the app lifespan) and handed to
the coordinator. Locks only serialise work inside this process; across
processes the conditional status update in the coordinator is what decides.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class BookingLocks:
    """Registry of asyncio locks keyed by booking id."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._waiters: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, booking_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(booking_id, asyncio.Lock())
        self._waiters[booking_id] = self._waiters.get(booking_id, 0) + 1
        try:
            if lock.locked():
                logger.info("Waiting for settlement lock", extra={"booking_id": booking_id})
            async with lock:
                yield
        finally:
            self._waiters[booking_id] -= 1
            # Only bookings with a holder or waiter keep an entry
            if self._waiters[booking_id] == 0:
                del self._waiters[booking_id]
                del self._locks[booking_id]

    def is_held(self, booking_id: int) -> bool:
        lock = self._locks.get(booking_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

"""Per-booking lock registry."""

import asyncio

import pytest

from settlement.core.locks import BookingLocks


@pytest.mark.asyncio
async def test_same_booking_is_serialised():
    locks = BookingLocks()
    order = []

    async def worker(name):
        async with locks.hold(1):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))
    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_bookings_do_not_block():
    locks = BookingLocks()
    async with locks.hold(1):
        assert locks.is_held(1)
        async with locks.hold(2):
            assert locks.is_held(2)


@pytest.mark.asyncio
async def test_idle_entries_are_dropped():
    locks = BookingLocks()
    async with locks.hold(7):
        assert len(locks) == 1
    assert len(locks) == 0
    assert not locks.is_held(7)


@pytest.mark.asyncio
async def test_entry_released_on_error():
    locks = BookingLocks()
    try:
        async with locks.hold(3):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(locks) == 0

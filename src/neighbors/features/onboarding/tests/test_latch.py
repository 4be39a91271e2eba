"""Tests for the finalizer's single-flight latch."""

from src.neighbors.features.onboarding.latch import SingleFlightLatch


def test_second_acquire_while_in_flight_is_dropped():
    latch = SingleFlightLatch()

    assert latch.try_acquire("user-1", "session-1") is True
    assert latch.try_acquire("user-1", "session-1") is False
    assert latch.try_acquire("user-2", "session-2") is True


def test_completed_session_stays_latched():
    latch = SingleFlightLatch()
    latch.try_acquire("user-1", "session-1")

    latch.release("user-1", "session-1", completed=True)

    assert latch.is_in_flight("user-1") is False
    assert latch.try_acquire("user-1", "session-1") is False
    assert latch.try_acquire("user-1", "session-2") is True


def test_unfinished_session_can_retry():
    latch = SingleFlightLatch()
    latch.try_acquire("user-1", "session-1")

    latch.release("user-1", "session-1", completed=False)

    assert latch.try_acquire("user-1", "session-1") is True


def test_completed_entries_expire():
    latch = SingleFlightLatch(completed_ttl_seconds=0)
    latch.try_acquire("user-1", "session-1")
    latch.release("user-1", "session-1", completed=True)

    assert latch.try_acquire("user-1", "session-1") is True

from unittest.mock import MagicMock

import pytest

from linkshield.services.pin_limiter import PIN_ATTEMPTS_KEY, PinAttemptLimiter
from linkshield.services.storage import StorageError


@pytest.fixture
def limiter(kv_store, clock):
    return PinAttemptLimiter(kv_store, max_attempts=5, lockout_seconds=900, cooldown_seconds=3600, clock=clock)


def test_fresh_state_allows_all_attempts(limiter):
    status = limiter.check()

    assert status.allowed
    assert status.remaining_attempts == 5
    assert status.lockout_until is None


def test_failures_count_down(limiter):
    for expected in (4, 3, 2, 1):
        status = limiter.record_failure()
        assert status.allowed
        assert status.remaining_attempts == expected

    assert limiter.check().remaining_attempts == 1


def test_lockout_after_max_failures(limiter, clock):
    for _ in range(4):
        limiter.record_failure()

    status = limiter.record_failure()

    assert not status.allowed
    assert status.remaining_attempts == 0
    assert status.wait_seconds == 900
    assert status.lockout_until.timestamp() == pytest.approx(clock() + 900)

    clock.advance(300)
    status = limiter.check()
    assert not status.allowed
    assert status.wait_seconds == 600


def test_failures_during_lockout_do_not_extend_it(limiter, clock):
    for _ in range(5):
        limiter.record_failure()

    clock.advance(60)
    status = limiter.record_failure()

    assert not status.allowed
    assert status.wait_seconds == 840


def test_lockout_expires(limiter, clock):
    for _ in range(5):
        limiter.record_failure()

    clock.advance(901)
    status = limiter.check()

    assert status.allowed
    assert status.remaining_attempts == 5


def test_success_resets(limiter):
    limiter.record_failure()
    limiter.record_failure()

    assert limiter.record_success()
    assert limiter.check().remaining_attempts == 5


def test_stale_failures_are_forgotten(limiter, clock):
    limiter.record_failure()
    limiter.record_failure()

    clock.advance(3601)

    assert limiter.check().remaining_attempts == 5
    assert limiter.record_failure().remaining_attempts == 4


def test_force_unlock(limiter):
    for _ in range(5):
        limiter.record_failure()

    assert limiter.force_unlock()
    assert limiter.check().allowed


def test_storage_failure_fails_closed(clock):
    store = MagicMock()
    store.get.side_effect = StorageError("boom")
    limiter = PinAttemptLimiter(store, max_attempts=5, lockout_seconds=900, cooldown_seconds=3600, clock=clock)

    for status in (limiter.check(), limiter.record_failure()):
        assert not status.allowed
        assert status.remaining_attempts == 0
        assert status.wait_seconds == 900


def test_corrupt_record_fails_closed(kv_store, limiter):
    kv_store.set(PIN_ATTEMPTS_KEY, "garbage")
    assert not limiter.check().allowed

    kv_store.set(PIN_ATTEMPTS_KEY, {"first_attempt": "soon"})
    assert not limiter.check().allowed


def test_clear_reports_storage_failure(clock):
    store = MagicMock()
    store.delete.side_effect = StorageError("boom")
    limiter = PinAttemptLimiter(store, clock=clock)

    assert not limiter.clear()


@pytest.mark.parametrize("seconds,text", [
    (60, "1 minute"),
    (30, "1 minute"),
    (61, "2 minutes"),
    (900, "15 minutes"),
])
def test_format_lockout_time(seconds, text):
    assert PinAttemptLimiter.format_lockout_time(seconds) == text

import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from linkshield.config import settings
from linkshield.schemas import RateLimitStatus
from linkshield.services.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

PIN_ATTEMPTS_KEY = 'pin_attempts'


class PinAttemptLimiter:
    """
    Failed-attempt limiter for the behavioral-pause PIN.

    ``normal -> locked(until) -> normal``: N consecutive failures lock for a
    fixed period; a success clears the counter, and a longer cooldown window
    forgets stale failures. Any storage problem is reported as "not allowed".
    """

    def __init__(self, store: KeyValueStore,
                 max_attempts: Optional[int] = None,
                 lockout_seconds: Optional[int] = None,
                 cooldown_seconds: Optional[int] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.max_attempts = max_attempts or settings.PIN_MAX_ATTEMPTS
        self.lockout_seconds = lockout_seconds or settings.PIN_LOCKOUT_MINUTES * 60
        self.cooldown_seconds = cooldown_seconds or settings.PIN_COOLDOWN_MINUTES * 60
        self.clock = clock

    def check(self) -> RateLimitStatus:
        try:
            now = self.clock()
            record = self._load()
            if record is None:
                return self._allowed(self.max_attempts)

            lockout_until = record.get('lockout_until')
            if lockout_until and now < lockout_until:
                return self._locked(lockout_until, now)

            if self._is_stale(record, now):
                self.store.delete(PIN_ATTEMPTS_KEY)
                return self._allowed(self.max_attempts)

            return self._allowed(self.max_attempts - int(record['count']))
        except (StorageError, KeyError, TypeError, ValueError) as e:
            logger.error(f"❌ PIN limiter check failed, denying: {e}")
            return self._fail_closed()

    def record_failure(self) -> RateLimitStatus:
        try:
            now = self.clock()
            record = self._load()
            if record is None or self._is_stale(record, now):
                record = {'count': 0, 'first_attempt': now, 'lockout_until': None}

            if record.get('lockout_until') and now < record['lockout_until']:
                return self._locked(record['lockout_until'], now)

            record['count'] = int(record['count']) + 1
            record['last_attempt'] = now

            if record['count'] >= self.max_attempts:
                record['lockout_until'] = now + self.lockout_seconds
                self.store.set(PIN_ATTEMPTS_KEY, record)
                logger.warning(f"🔒 PIN locked for {self.format_lockout_time(self.lockout_seconds)}")
                return self._locked(record['lockout_until'], now)

            self.store.set(PIN_ATTEMPTS_KEY, record)
            return self._allowed(self.max_attempts - record['count'])
        except (StorageError, KeyError, TypeError, ValueError) as e:
            logger.error(f"❌ PIN limiter could not record failure, denying: {e}")
            return self._fail_closed()

    def record_success(self) -> bool:
        return self.clear()

    def clear(self) -> bool:
        try:
            self.store.delete(PIN_ATTEMPTS_KEY)
            return True
        except StorageError as e:
            logger.error(f"❌ Could not clear PIN attempts: {e}")
            return False

    def force_unlock(self) -> bool:
        logger.warning("⚠️ PIN lockout force-cleared")
        return self.clear()

    @staticmethod
    def format_lockout_time(seconds: float) -> str:
        minutes = math.ceil(seconds / 60)
        if minutes == 1:
            return '1 minute'
        return f'{minutes} minutes'

    def _load(self) -> Optional[Dict]:
        record = self.store.get(PIN_ATTEMPTS_KEY)
        if record is not None and not isinstance(record, dict):
            raise ValueError(f"corrupt PIN attempt record: {record!r}")
        return record

    def _is_stale(self, record: Dict, now: float) -> bool:
        lockout_until = record.get('lockout_until')
        if lockout_until:
            return now >= lockout_until
        return now - float(record['first_attempt']) >= self.cooldown_seconds

    def _allowed(self, remaining: int) -> RateLimitStatus:
        return RateLimitStatus(allowed=True, remaining_attempts=max(0, remaining))

    def _locked(self, lockout_until: float, now: float) -> RateLimitStatus:
        return RateLimitStatus(
            allowed=False,
            remaining_attempts=0,
            lockout_until=datetime.fromtimestamp(lockout_until, tz=timezone.utc),
            wait_seconds=math.ceil(lockout_until - now),
        )

    def _fail_closed(self) -> RateLimitStatus:
        return RateLimitStatus(allowed=False, remaining_attempts=0, wait_seconds=self.lockout_seconds)

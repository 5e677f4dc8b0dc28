import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import requests
from pydantic import ValidationError

from linkshield.config import settings
from linkshield.core.denylist import DenylistSnapshot, DenylistStore
from linkshield.schemas import DenylistDocument, DenylistInfo, ErrorKind, LookupOutcome
from linkshield.services.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

CACHED_DOCUMENT_KEY = 'denylist_document'
LAST_SYNC_KEY = 'denylist_last_sync'


class DenylistSyncService:
    """
    Keeps the denylist store in step with the remote snapshot.

    Each successful fetch is validated, persisted and swapped into the
    store as a whole new snapshot. Failures keep the current snapshot.
    """

    def __init__(self, denylist: DenylistStore, store: KeyValueStore,
                 url: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 interval_hours: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.denylist = denylist
        self.store = store
        self.url = url if url is not None else settings.DENYLIST_URL
        self.interval_seconds = (interval_hours or settings.DENYLIST_SYNC_HOURS) * 3600
        self.timeout = settings.DENYLIST_TIMEOUT
        self.retries = settings.DENYLIST_RETRIES
        self.clock = clock

        self.http_session = session or requests.Session()
        self.http_session.headers.update({'User-Agent': f'LinkShield/{settings.VERSION}'})

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def load_cached(self) -> bool:
        """Restore the last persisted remote document into the store"""
        try:
            raw = self.store.get(CACHED_DOCUMENT_KEY)
        except StorageError:
            return False
        if not raw:
            return False

        try:
            document = DenylistDocument.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"⚠️ Cached denylist is invalid, ignoring: {e.error_count()} errors")
            return False

        self.denylist.replace(DenylistSnapshot.merged(document))
        return True

    def should_sync(self) -> bool:
        if not self.url:
            return False
        last = self._last_sync()
        return last is None or self.clock() - last >= self.interval_seconds

    def sync(self, force: bool = False) -> LookupOutcome[DenylistSnapshot]:
        """
        Fetch the remote snapshot and swap it in.

        Args:
            force: Ignore the sync interval

        Returns:
            LookupOutcome with the new snapshot, or the reason nothing changed
        """
        if not self.url:
            return LookupOutcome.failure(ErrorKind.DISABLED, 'No denylist URL configured')
        if not force and not self.should_sync():
            return LookupOutcome.failure(ErrorKind.DISABLED, 'Sync interval not elapsed')

        outcome = self._fetch()
        if not outcome.ok:
            return LookupOutcome.failure(outcome.error, outcome.detail)

        document = outcome.value
        snapshot = DenylistSnapshot.merged(document)
        self.denylist.replace(snapshot)

        try:
            self.store.set(CACHED_DOCUMENT_KEY, document.model_dump(mode='json', by_alias=True))
            self.store.set(LAST_SYNC_KEY, self.clock())
        except StorageError:
            logger.warning("⚠️ Denylist synced but could not be persisted")

        logger.info(f"✓ Denylist synced: version {document.version}, {len(document.domains)} remote domains")
        return LookupOutcome.success(snapshot)

    def info(self) -> DenylistInfo:
        snapshot = self.denylist.current()
        last = self._last_sync()
        return DenylistInfo(
            version=snapshot.version,
            last_updated=snapshot.last_updated,
            source=snapshot.source,
            domain_count=len(snapshot),
            last_sync_at=datetime.fromtimestamp(last, tz=timezone.utc) if last else None,
        )

    def start(self):
        """Run periodic sync on a daemon thread"""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='denylist-sync', daemon=True)
        self._thread.start()
        logger.info("🔄 Denylist background sync started")

    def stop(self):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self.timeout)
            self._thread = None

    def _run(self):
        while not self._stop.is_set():
            try:
                self.sync()
            except Exception as e:
                logger.error(f"❌ Denylist sync error: {e}")
            self._stop.wait(min(self.interval_seconds, 3600))

    def _fetch(self) -> LookupOutcome[DenylistDocument]:
        last_error = LookupOutcome.failure(ErrorKind.UNAVAILABLE)
        for attempt in range(1, self.retries + 2):
            try:
                response = self.http_session.get(self.url, timeout=self.timeout)
            except requests.Timeout:
                logger.warning(f"⚠️ Denylist fetch timeout (attempt {attempt})")
                last_error = LookupOutcome.failure(ErrorKind.TIMEOUT)
                continue
            except requests.RequestException as e:
                logger.warning(f"⚠️ Denylist fetch failed (attempt {attempt}): {e}")
                last_error = LookupOutcome.failure(ErrorKind.UNAVAILABLE, str(e))
                continue

            if response.status_code != 200:
                logger.warning(f"⚠️ Denylist server returned HTTP {response.status_code}")
                last_error = LookupOutcome.failure(ErrorKind.UNAVAILABLE, f"HTTP {response.status_code}")
                continue

            try:
                return LookupOutcome.success(DenylistDocument.model_validate(response.json()))
            except (ValueError, ValidationError) as e:
                # A malformed document will not improve on retry
                logger.error(f"❌ Malformed denylist snapshot: {e}")
                return LookupOutcome.failure(ErrorKind.MALFORMED, str(e))

        return last_error

    def _last_sync(self) -> Optional[float]:
        try:
            value = self.store.get(LAST_SYNC_KEY)
        except StorageError:
            return None
        return float(value) if isinstance(value, (int, float)) else None

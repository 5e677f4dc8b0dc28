import logging
import threading
from collections import Counter
from typing import List, Optional

from pydantic import ValidationError

from linkshield.config import settings
from linkshield.schemas import HistorySummary, InterceptedLink, ThreatLevel
from linkshield.services.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

HISTORY_KEY = 'link_history'


class HistoryService:
    """Bounded, most-recent-first log of intercepted links"""

    def __init__(self, store: KeyValueStore, max_entries: Optional[int] = None):
        self.store = store
        self.max_entries = max_entries or settings.HISTORY_MAX_ENTRIES
        self._lock = threading.Lock()

    def record(self, link: InterceptedLink) -> bool:
        """Prepend a link, evicting the oldest entries past the cap. History is best-effort."""
        try:
            with self._lock:
                entries = self.store.get(HISTORY_KEY, [])
                entries = [link.model_dump(mode='json')] + list(entries)
                self.store.set(HISTORY_KEY, entries[:self.max_entries])
            return True
        except StorageError:
            logger.warning(f"⚠️ Could not record history for {link.original_url}")
            return False

    def list(self, limit: Optional[int] = None) -> List[InterceptedLink]:
        try:
            entries = self.store.get(HISTORY_KEY, [])
        except StorageError:
            return []

        links = []
        for raw in entries[:limit] if limit else entries:
            try:
                links.append(InterceptedLink.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed history entry: {e.error_count()} errors")
        return links

    def clear(self):
        with self._lock:
            self.store.delete(HISTORY_KEY)
        logger.info("History cleared")

    def summary(self) -> HistorySummary:
        links = self.list()
        counts = Counter(link.analysis.threat_level.value for link in links)
        return HistorySummary(
            total=len(links),
            by_threat_level={level.value: counts.get(level.value, 0) for level in ThreatLevel},
            last_intercepted_at=links[0].timestamp if links else None,
        )

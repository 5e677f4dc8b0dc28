import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from linkshield.config import settings
from linkshield.core.normalizer import host_of
from linkshield.schemas import DomainFeedback, FeedbackResponse, FeedbackType
from linkshield.services.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

USER_FEEDBACK_KEY = 'user_domain_feedback'


class FeedbackService:
    """
    Per-domain "this link was safe / unsafe" votes from the user.

    A domain becomes auto-trusted after enough safe votes with no unsafe
    vote outstanding; a single unsafe vote revokes it. When one side
    overtakes the other, the losing count is reset.
    """

    def __init__(self, store: KeyValueStore, auto_trust_threshold: Optional[int] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.auto_trust_threshold = auto_trust_threshold or settings.FEEDBACK_AUTO_TRUST_THRESHOLD
        self.clock = clock
        self._lock = threading.Lock()

    @staticmethod
    def normalize_domain(domain_or_url: str) -> str:
        return host_of(domain_or_url)

    def record(self, domain_or_url: str, feedback: FeedbackType) -> FeedbackResponse:
        """
        Apply one vote.

        Returns:
            The updated entry and whether this vote made the domain auto-trusted

        Raises:
            ValueError: input has no usable host
            StorageError: the votes could not be saved
        """
        domain = self.normalize_domain(domain_or_url)
        if not domain or ' ' in domain:
            raise ValueError(f"Invalid domain: {domain_or_url!r}")

        with self._lock:
            entries = self._load()
            entry = entries.get(domain) or DomainFeedback(domain=domain)
            was_auto_trusted = entry.auto_trusted
            safe, unsafe, auto_trusted = entry.safe_count, entry.unsafe_count, entry.auto_trusted

            if feedback == FeedbackType.SAFE:
                safe += 1
                if unsafe > 0 and safe > unsafe:
                    unsafe = 0
            else:
                unsafe += 1
                auto_trusted = False
                if safe > 0 and unsafe > safe:
                    safe = 0

            if safe >= self.auto_trust_threshold and unsafe == 0:
                auto_trusted = True

            entry = DomainFeedback(
                domain=domain,
                safe_count=safe,
                unsafe_count=unsafe,
                last_feedback=self.clock(),
                auto_trusted=auto_trusted,
            )
            entries[domain] = entry
            self._save(entries)

        newly_auto_trusted = entry.auto_trusted and not was_auto_trusted
        if newly_auto_trusted:
            logger.info(f"✓ {domain} auto-trusted after {entry.safe_count} safe reports")
        elif feedback == FeedbackType.UNSAFE:
            logger.info(f"⚠️ {domain} reported unsafe ({entry.unsafe_count})")
        return FeedbackResponse(feedback=entry, newly_auto_trusted=newly_auto_trusted)

    def get(self, domain_or_url: str) -> Optional[DomainFeedback]:
        return self._load().get(self.normalize_domain(domain_or_url))

    def list_all(self) -> List[DomainFeedback]:
        return sorted(self._load().values(), key=lambda e: e.domain)

    def is_auto_trusted(self, domain_or_url: str) -> bool:
        entry = self.get(domain_or_url)
        return entry is not None and entry.auto_trusted

    def has_negative_feedback(self, domain_or_url: str) -> bool:
        entry = self.get(domain_or_url)
        return entry is not None and entry.unsafe_count > 0

    def clear(self):
        with self._lock:
            self.store.delete(USER_FEEDBACK_KEY)
        logger.info("User feedback cleared")

    def _load(self) -> Dict[str, DomainFeedback]:
        try:
            raw = self.store.get(USER_FEEDBACK_KEY, {})
        except StorageError:
            logger.warning("⚠️ User feedback unavailable, treating as empty")
            return {}
        if not isinstance(raw, dict):
            return {}

        entries = {}
        for domain, data in raw.items():
            try:
                entries[domain] = DomainFeedback.model_validate(data)
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed feedback for {domain}: {e.error_count()} errors")
        return entries

    def _save(self, entries: Dict[str, DomainFeedback]):
        self.store.set(USER_FEEDBACK_KEY, {
            domain: entry.model_dump(mode='json') for domain, entry in entries.items()
        })

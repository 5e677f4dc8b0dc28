import logging
import threading
from typing import FrozenSet, Iterable, List, Optional

from linkshield.core.brand_matcher import BRAND_OFFICIAL_DOMAINS
from linkshield.core.normalizer import host_of
from linkshield.core.trusted_domains import TRUSTED_DOMAINS, find_listed_parent
from linkshield.services.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

USER_WHITELIST_KEY = 'user_whitelist'


class WhitelistService:
    """
    System-curated and user-approved domains.

    The two sets are disjoint: a domain the system already trusts is never
    stored in the user list. Both match the host itself or any subdomain.
    """

    def __init__(self, store: KeyValueStore, system_domains: Optional[Iterable[str]] = None):
        self.store = store
        if system_domains is None:
            system_domains = TRUSTED_DOMAINS | BRAND_OFFICIAL_DOMAINS
        self.system_domains: FrozenSet[str] = frozenset(system_domains)
        self._lock = threading.Lock()

    @staticmethod
    def normalize_domain(domain_or_url: str) -> str:
        return host_of(domain_or_url)

    def list_user(self) -> List[str]:
        try:
            domains = self.store.get(USER_WHITELIST_KEY, [])
        except StorageError:
            logger.warning("⚠️ User whitelist unavailable, treating as empty")
            return []
        return [d for d in domains if isinstance(d, str)]

    def add(self, domain_or_url: str) -> bool:
        """
        Approve a domain.

        Returns:
            True if added; False when already present or already
            trusted by the system list

        Raises:
            ValueError: input has no usable host
            StorageError: the list could not be saved
        """
        domain = self.normalize_domain(domain_or_url)
        if not domain or ' ' in domain:
            raise ValueError(f"Invalid domain: {domain_or_url!r}")

        if domain in self.system_domains:
            return False

        with self._lock:
            current = self.list_user()
            if domain in current:
                return False
            self.store.set(USER_WHITELIST_KEY, current + [domain])
        logger.info(f"✓ Added {domain} to user whitelist")
        return True

    def remove(self, domain_or_url: str) -> bool:
        domain = self.normalize_domain(domain_or_url)
        with self._lock:
            current = self.list_user()
            if domain not in current:
                return False
            self.store.set(USER_WHITELIST_KEY, [d for d in current if d != domain])
        logger.info(f"Removed {domain} from user whitelist")
        return True

    def is_user_whitelisted(self, url: str) -> bool:
        host = self.normalize_domain(url)
        return bool(host) and find_listed_parent(host, frozenset(self.list_user())) is not None

    def is_system_trusted(self, url: str) -> bool:
        host = self.normalize_domain(url)
        return bool(host) and find_listed_parent(host, self.system_domains) is not None

    def is_whitelisted(self, url: str) -> bool:
        return self.is_user_whitelisted(url) or self.is_system_trusted(url)

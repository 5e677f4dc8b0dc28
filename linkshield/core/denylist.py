import json
import logging
import threading
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from pydantic import ValidationError

from linkshield.core.normalizer import DomainNormalizer, host_of
from linkshield.core.trusted_domains import find_listed_parent
from linkshield.schemas import DenylistDocument, DenylistEntry

logger = logging.getLogger(__name__)

BASELINE_FILENAME = 'baseline_denylist.json'


def _clean_domain(domain: str) -> str:
    return DomainNormalizer.strip_www(domain.strip().lower().rstrip('.'))


@lru_cache(maxsize=1)
def load_baseline_entries() -> Tuple[DenylistEntry, ...]:
    """
    Load the bundled baseline denylist with multiple fallback paths

    Returns:
        Tuple of baseline entries (empty when no valid file is found)
    """
    possible_paths = [
        Path(__file__).resolve().parents[1] / 'data' / BASELINE_FILENAME,
        Path.cwd() / 'linkshield' / 'data' / BASELINE_FILENAME,
        Path.cwd() / 'data' / BASELINE_FILENAME,
    ]

    for file_path in possible_paths:
        if not file_path.exists():
            continue
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                document = DenylistDocument.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"❌ Invalid baseline denylist at {file_path}: {e}")
            continue
        except OSError as e:
            logger.error(f"❌ IO error loading baseline denylist: {e}")
            continue

        logger.info(f"✓ Loaded {len(document.domains)} baseline denylist domains from: {file_path}")
        return tuple(document.domains)

    logger.warning("⚠️ No baseline denylist found, using empty list")
    return ()


class DenylistSnapshot:
    """
    Immutable view of known-bad domains.

    Lookups match the exact host or any parent domain, so an entry for
    ``scam.xyz`` also covers ``login.scam.xyz``.
    """

    def __init__(self, entries: Iterable[DenylistEntry], version: str = 'empty',
                 last_updated: Optional[str] = None, source: str = 'bundled'):
        table = {}
        for entry in entries:
            domain = _clean_domain(entry.domain)
            if domain:
                table[domain] = entry
        self._entries: Mapping[str, DenylistEntry] = MappingProxyType(table)
        self._domains = frozenset(table)
        self.version = version
        self.last_updated = last_updated
        self.source = source

    @classmethod
    def bundled(cls) -> "DenylistSnapshot":
        return cls(load_baseline_entries(), version='bundled', source='bundled')

    @classmethod
    def merged(cls, document: DenylistDocument,
               baseline: Iterable[DenylistEntry] = None) -> "DenylistSnapshot":
        """Baseline entries overlaid with a remote document; remote entries win"""
        if baseline is None:
            baseline = load_baseline_entries()
        return cls(
            list(baseline) + list(document.domains),
            version=document.version,
            last_updated=document.last_updated,
            source='remote',
        )

    def lookup(self, url_or_host: str) -> Optional[DenylistEntry]:
        host = host_of(url_or_host)
        if not host:
            return None
        match = find_listed_parent(host, self._domains)
        return self._entries[match] if match else None

    def __contains__(self, url_or_host: str) -> bool:
        return self.lookup(url_or_host) is not None

    def __len__(self) -> int:
        return len(self._entries)


class DenylistStore:
    """
    Owner of the current denylist snapshot.

    Readers grab ``current()`` once per analysis; the sync path builds a new
    snapshot and swaps the reference, so an in-flight read never sees a
    half-updated table.
    """

    def __init__(self, snapshot: Optional[DenylistSnapshot] = None):
        self._snapshot = snapshot if snapshot is not None else DenylistSnapshot.bundled()
        self._write_lock = threading.Lock()

    def current(self) -> DenylistSnapshot:
        return self._snapshot

    def replace(self, snapshot: DenylistSnapshot) -> DenylistSnapshot:
        with self._write_lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info(f"✓ Denylist snapshot replaced: {previous.version} -> {snapshot.version} ({len(snapshot)} domains)")
        return previous

    def lookup(self, url_or_host: str) -> Optional[DenylistEntry]:
        return self._snapshot.lookup(url_or_host)

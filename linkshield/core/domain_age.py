import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import requests

from linkshield.config import settings
from linkshield.core.normalizer import DomainNormalizer, default_normalizer
from linkshield.core.ttl_cache import TTLCache
from linkshield.schemas import DomainAgeResult, ErrorKind, LookupOutcome

logger = logging.getLogger(__name__)

NEW_DOMAIN_DAYS = 30
YOUNG_DOMAIN_DAYS = 180

# Source: https://data.iana.org/rdap/dns.json
RDAP_SERVERS: Dict[str, str] = {
    'com': 'https://rdap.verisign.com/com/v1',
    'net': 'https://rdap.verisign.com/net/v1',
    'org': 'https://rdap.org/org/v1',
    'info': 'https://rdap.afilias.net/rdap/info/v1',
    'biz': 'https://rdap.identitydigital.services/rdap/v1',
    'xyz': 'https://rdap.centralnic.com/xyz/v1',
    'online': 'https://rdap.centralnic.com/online/v1',
    'site': 'https://rdap.centralnic.com/site/v1',
    'top': 'https://rdap.centralnic.com/top/v1',
    'club': 'https://rdap.identitydigital.services/rdap/v1',
    'shop': 'https://rdap.centralnic.com/shop/v1',
    'app': 'https://rdap.nic.google/v1',
    'dev': 'https://rdap.nic.google/v1',
    'io': 'https://rdap.identitydigital.services/rdap/v1',
    'me': 'https://rdap.identitydigital.services/rdap/v1',
    'link': 'https://rdap.identitydigital.services/rdap/v1',
    'click': 'https://rdap.identitydigital.services/rdap/v1',
    'fun': 'https://rdap.centralnic.com/fun/v1',
    'buzz': 'https://rdap.centralnic.com/buzz/v1',
    'space': 'https://rdap.centralnic.com/space/v1',
    'live': 'https://rdap.identitydigital.services/rdap/v1',
    'store': 'https://rdap.centralnic.com/store/v1',
    'id': 'https://rdap.pandi.or.id/v1',
    'co.id': 'https://rdap.pandi.or.id/v1',
    'my': 'https://rdap.mynic.my/v1',
    'sg': 'https://rdap.sgnic.sg/v1',
    'ph': 'https://rdap.dot.ph/v1',
    'uk': 'https://rdap.nominet.uk/v1',
    'de': 'https://rdap.denic.de/v1',
    'au': 'https://rdap.auda.org.au/v1',
    'jp': 'https://rdap.jprs.jp/v1',
    'kr': 'https://rdap.kisa.or.kr/v1',
    'in': 'https://rdap.registry.in/v1',
    'ru': 'https://rdap.tcinet.ru/v1',
    'br': 'https://rdap.registro.br/v1',
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainAgeChecker:
    """Estimates registration age of a domain through RDAP. Advisory only."""

    def __init__(self, session: Optional[requests.Session] = None,
                 normalizer: Optional[DomainNormalizer] = None,
                 now: Callable[[], datetime] = _utcnow,
                 clock: Callable[[], float] = time.monotonic):
        self.enabled = settings.DOMAIN_AGE_ENABLED
        self.timeout = settings.DOMAIN_AGE_TIMEOUT
        self.normalizer = normalizer or default_normalizer
        self.now = now

        self.http_session = session or requests.Session()
        self.http_session.headers.update({
            'User-Agent': f'LinkShield/{settings.VERSION}',
            'Accept': 'application/rdap+json',
        })
        self.cache = TTLCache(
            ttl=settings.DOMAIN_AGE_CACHE_HOURS * 3600,
            max_entries=settings.DOMAIN_AGE_CACHE_SIZE,
            clock=clock,
        )

    def check(self, host: str) -> LookupOutcome[DomainAgeResult]:
        """
        Look up the registration age of a host's registrable domain

        Args:
            host: Hostname or URL

        Returns:
            LookupOutcome with a DomainAgeResult; ``age_in_days`` is None
            when the registry is unknown or the record has no dates
        """
        if not self.enabled:
            return LookupOutcome.failure(ErrorKind.DISABLED)

        parsed = self.normalizer.parse(host)
        if not parsed.parsed_ok or parsed.is_ip or not parsed.suffix:
            return LookupOutcome.failure(ErrorKind.INVALID_INPUT, f"No registrable domain in {host!r}")

        root = parsed.registrable_domain
        cached = self.cache.get(root)
        if cached is not None:
            return LookupOutcome.success(cached)

        server = self.rdap_server(parsed.suffix)
        if not server:
            result = DomainAgeResult(domain=root)
            self.cache.set(root, result)
            return LookupOutcome.success(result)

        try:
            response = self.http_session.get(f"{server}/domain/{root}", timeout=self.timeout)
        except requests.Timeout:
            logger.warning(f"⚠️ RDAP timeout for {root}")
            return LookupOutcome.failure(ErrorKind.TIMEOUT)
        except requests.RequestException as e:
            logger.warning(f"⚠️ RDAP lookup failed for {root}: {e}")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, str(e))

        if response.status_code != 200:
            logger.warning(f"⚠️ RDAP returned HTTP {response.status_code} for {root}")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"⚠️ RDAP returned invalid JSON for {root}: {e}")
            return LookupOutcome.failure(ErrorKind.MALFORMED, str(e))

        result = self.parse_rdap(root, data)
        self.cache.set(root, result)
        logger.info(f"Domain age {root}: {result.age_in_days if result.age_in_days is not None else 'unknown'} days")
        return LookupOutcome.success(result)

    @staticmethod
    def rdap_server(suffix: str) -> Optional[str]:
        """Two-part suffixes (co.id) first, then the last label"""
        if suffix in RDAP_SERVERS:
            return RDAP_SERVERS[suffix]
        return RDAP_SERVERS.get(suffix.rsplit('.', 1)[-1])

    def parse_rdap(self, domain: str, data: Dict) -> DomainAgeResult:
        """
        Extract the registration date from an RDAP ``events`` array.

        Uses the ``registration`` event, falling back to the earliest dated
        event when a registry omits it.
        """
        events = data.get('events') if isinstance(data, dict) else None
        dates = []
        registration = None
        for event in events or []:
            when = self._parse_date(event.get('eventDate')) if isinstance(event, dict) else None
            if when is None:
                continue
            if event.get('eventAction') == 'registration' and registration is None:
                registration = when
            dates.append(when)

        registered = registration or (min(dates) if dates else None)
        if registered is None:
            return DomainAgeResult(domain=domain)

        age_in_days = max(0, (self.now() - registered).days)
        return DomainAgeResult(
            domain=domain,
            age_in_days=age_in_days,
            registration_date=registered,
            is_new_domain=age_in_days < NEW_DOMAIN_DAYS,
            is_young_domain=age_in_days < YOUNG_DOMAIN_DAYS,
        )

    @staticmethod
    def _parse_date(value) -> Optional[datetime]:
        if not isinstance(value, str):
            return None
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

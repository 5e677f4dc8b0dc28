import requests
import threading
import time
from typing import Callable, Dict, List, Optional
from linkshield.config import settings
from linkshield.core.ttl_cache import TTLCache
from linkshield.schemas import ErrorKind, LookupOutcome, ThreatIntelResult
import logging

logger = logging.getLogger(__name__)

THREAT_DESCRIPTIONS = {
    'MALWARE': 'This site may contain malware that can harm your device',
    'SOCIAL_ENGINEERING': 'This site may be attempting to trick you into sharing personal information (phishing)',
    'UNWANTED_SOFTWARE': 'This site may contain unwanted or deceptive software',
    'POTENTIALLY_HARMFUL_APPLICATION': 'This site may contain potentially harmful applications',
}


class SafeBrowsingClient:
    def __init__(self, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Google Safe Browsing v4 lookup client with caching and rate limiting

        Args:
            api_key: Safe Browsing API key (settings value by default)
            session: HTTP session to reuse
            clock: Monotonic clock, injectable for tests
        """
        self.api_key = api_key if api_key is not None else settings.SAFE_BROWSING_API_KEY
        self.api_url = settings.SAFE_BROWSING_URL
        self.timeout = settings.SAFE_BROWSING_TIMEOUT
        self.clock = clock

        # Reuse TCP connections for all API calls
        self.http_session = session or requests.Session()
        self.http_session.headers.update({'User-Agent': f'LinkShield/{settings.VERSION}'})

        self.cache = TTLCache(
            ttl=settings.SAFE_BROWSING_CACHE_SECONDS,
            max_entries=settings.SAFE_BROWSING_CACHE_SIZE,
            clock=clock,
        )

        # API rate limiting (requests per minute)
        self.rate_limit = {'limit': settings.SAFE_BROWSING_RATE_LIMIT, 'window': 60, 'calls': []}
        self._rate_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def check_url(self, url: str) -> LookupOutcome[ThreatIntelResult]:
        """
        Check a URL against Safe Browsing

        Args:
            url: Fully-qualified URL to check

        Returns:
            LookupOutcome with a ThreatIntelResult, or an error kind when the
            service is disabled, rate limited, slow or returned garbage
        """
        if not self.enabled:
            return LookupOutcome.failure(ErrorKind.DISABLED)

        if not url or not url.lower().startswith(('http://', 'https://')):
            return LookupOutcome.failure(ErrorKind.INVALID_INPUT, 'Invalid URL')

        cached = self.cache.get(url)
        if cached is not None:
            return LookupOutcome.success(cached.model_copy(update={'from_cache': True}))

        if not self._check_rate_limit():
            logger.warning("⚠️ Safe Browsing rate limit reached locally, skipping lookup")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, 'rate limited')

        payload = self._build_payload([url])
        try:
            response = self.http_session.post(
                self.api_url,
                params={'key': self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning(f"⚠️ Safe Browsing timeout for {url}")
            return LookupOutcome.failure(ErrorKind.TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"❌ Safe Browsing request error: {e}")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, str(e))

        if response.status_code == 429:
            logger.warning("⚠️ Safe Browsing rate limit exceeded")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, 'HTTP 429')
        if response.status_code != 200:
            logger.warning(f"⚠️ Safe Browsing returned HTTP {response.status_code}")
            return LookupOutcome.failure(ErrorKind.UNAVAILABLE, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"❌ Safe Browsing returned invalid JSON: {e}")
            return LookupOutcome.failure(ErrorKind.MALFORMED, str(e))

        result = self._parse_matches(data, url)
        self.cache.set(url, result)
        if result.is_threat:
            logger.warning(f"🚨 Safe Browsing match for {url}: {result.threat_type}")
        return LookupOutcome.success(result)

    def _build_payload(self, urls: List[str]) -> Dict:
        return {
            'client': {
                'clientId': settings.SAFE_BROWSING_CLIENT_ID,
                'clientVersion': settings.VERSION,
            },
            'threatInfo': {
                'threatTypes': list(THREAT_DESCRIPTIONS),
                'platformTypes': ['ANY_PLATFORM'],
                'threatEntryTypes': ['URL'],
                'threatEntries': [{'url': u} for u in urls],
            },
        }

    def _parse_matches(self, data: Dict, url: str) -> ThreatIntelResult:
        if not isinstance(data, dict):
            return ThreatIntelResult(is_threat=False)

        for match in data.get('matches') or []:
            threat_url = (match.get('threat') or {}).get('url')
            if threat_url and threat_url != url:
                continue
            threat_type = match.get('threatType', 'UNKNOWN')
            return ThreatIntelResult(
                is_threat=True,
                threat_type=threat_type,
                threat_description=THREAT_DESCRIPTIONS.get(threat_type, 'This site was flagged as unsafe'),
            )
        return ThreatIntelResult(is_threat=False)

    def _check_rate_limit(self) -> bool:
        """
        Check if an API call is within the per-minute limit

        Returns:
            True if call is allowed, False if rate limited
        """
        with self._rate_lock:
            now = self.clock()
            self.rate_limit['calls'] = [
                t for t in self.rate_limit['calls'] if now - t < self.rate_limit['window']
            ]
            if len(self.rate_limit['calls']) < self.rate_limit['limit']:
                self.rate_limit['calls'].append(now)
                return True
            return False

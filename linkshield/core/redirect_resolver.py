import logging
import re
import time
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import requests

from linkshield.config import settings
from linkshield.core.normalizer import DomainNormalizer, default_normalizer
from linkshield.schemas import (
    ErrorKind,
    HopType,
    LookupOutcome,
    RedirectChainResult,
    RedirectHop,
    RedirectKind,
)

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024
SUSPICIOUS_CROSS_DOMAIN_HOPS = 2
SUSPICIOUS_TOTAL_REDIRECTS = 4

_META_REFRESH = re.compile(
    r'<meta[^>]+http-equiv=["\']?refresh["\']?[^>]*content=["\']?\s*\d+\s*;\s*url\s*=\s*([^"\'>\s]+)',
    re.IGNORECASE,
)
_JS_REDIRECT = re.compile(
    r'(?:window|self|top|document)\.location(?:\.href)?\s*=\s*["\']([^"\']+)["\']'
    r'|(?:window|self|top|document)\.location\.(?:replace|assign)\(\s*["\']([^"\']+)["\']\s*\)'
)

# (url, status code of the response that led here, how we got here)
_Hop = Tuple[str, Optional[int], Optional[RedirectKind]]


class RedirectChainResolver:
    def __init__(self, session: Optional[requests.Session] = None,
                 max_hops: Optional[int] = None,
                 timeout: Optional[float] = None,
                 total_budget: Optional[float] = None,
                 normalizer: Optional[DomainNormalizer] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Follow a link's redirect chain without rendering it.

        Args:
            session: HTTP session (a new one with our User-Agent by default)
            max_hops: Maximum redirects followed before giving up
            timeout: Per-request timeout in seconds
            total_budget: Wall-clock budget for the whole chain in seconds
            normalizer: Used to derive each hop's registrable domain
            clock: Monotonic clock, injectable for tests
        """
        self.http_session = session or requests.Session()
        self.http_session.headers.update({'User-Agent': f'LinkShield/{settings.VERSION}'})
        self.max_hops = max_hops or settings.REDIRECT_MAX_HOPS
        self.timeout = timeout or settings.REDIRECT_TIMEOUT
        self.total_budget = total_budget or settings.REDIRECT_TOTAL_BUDGET
        self.normalizer = normalizer or default_normalizer
        self.clock = clock

    def resolve(self, url: str) -> LookupOutcome[RedirectChainResult]:
        """
        Resolve the chain of HTTP, meta-refresh and JavaScript redirects.

        A failure on the very first request is reported as an error outcome;
        a failure further down the chain ends it at the last reachable hop.
        """
        parsed = self.normalizer.parse(url)
        if not parsed.parsed_ok:
            return LookupOutcome.failure(ErrorKind.INVALID_INPUT, f"Not a resolvable URL: {url!r}")

        current = self._absolute(parsed.original)
        hops: List[_Hop] = [(current, None, None)]
        visited = {current}
        started = self.clock()

        while True:
            if len(hops) - 1 >= self.max_hops:
                logger.warning(f"⚠️ Redirect hop limit ({self.max_hops}) reached for {url}")
                break
            if self.clock() - started > self.total_budget:
                logger.warning(f"⚠️ Redirect time budget exceeded for {url}")
                break

            try:
                response = self.http_session.get(
                    current, allow_redirects=False, timeout=self.timeout, stream=True
                )
            except requests.Timeout:
                logger.warning(f"Redirect resolution timeout at {current}")
                if len(hops) == 1:
                    return LookupOutcome.failure(ErrorKind.TIMEOUT, current)
                break
            except requests.RequestException as e:
                logger.warning(f"Redirect resolution failed at {current}: {e}")
                if len(hops) == 1:
                    return LookupOutcome.failure(ErrorKind.UNAVAILABLE, str(e))
                break

            try:
                next_url, kind = self._next_location(current, response)
            finally:
                response.close()

            if not next_url:
                break
            if next_url in visited:
                logger.warning(f"⚠️ Redirect loop detected at {next_url}")
                break

            visited.add(next_url)
            hops.append((next_url, response.status_code, kind))
            current = next_url

        return LookupOutcome.success(build_chain(hops, self.normalizer))

    def fallback(self, url: str) -> RedirectChainResult:
        return self.fallback_chain(url, self.normalizer)

    @staticmethod
    def fallback_chain(url: str, normalizer: Optional[DomainNormalizer] = None) -> RedirectChainResult:
        """Chain used when resolution fails: the original URL is both origin and final hop"""
        return build_chain([(url, None, None)], normalizer or default_normalizer)

    def _next_location(self, current: str, response) -> Tuple[Optional[str], Optional[RedirectKind]]:
        if 300 <= response.status_code < 400:
            location = response.headers.get('Location')
            if location:
                return self._http_target(current, location), RedirectKind.HTTP
            return None, None

        content_type = response.headers.get('Content-Type', '')
        if response.status_code != 200 or 'html' not in content_type.lower():
            return None, None

        body = self._read_body(response)
        match = _META_REFRESH.search(body)
        if match:
            return self._http_target(current, match.group(1)), RedirectKind.META_REFRESH

        match = _JS_REDIRECT.search(body)
        if match:
            target = match.group(1) or match.group(2)
            return self._http_target(current, target), RedirectKind.JAVASCRIPT

        return None, None

    @staticmethod
    def _read_body(response) -> str:
        chunk = next(response.iter_content(chunk_size=MAX_BODY_BYTES), b'')
        if isinstance(chunk, str):
            return chunk
        return chunk.decode(response.encoding or 'utf-8', errors='replace')

    @staticmethod
    def _http_target(current: str, location: str) -> Optional[str]:
        target = urljoin(current, location.strip())
        if urlsplit(target).scheme not in ('http', 'https'):
            return None
        return target

    @staticmethod
    def _absolute(text: str) -> str:
        if text.lower().startswith(('http://', 'https://')):
            return text
        return f"https://{text}"


def build_chain(hops: List[_Hop], normalizer: DomainNormalizer) -> RedirectChainResult:
    """Turn visited URLs into typed hops with cross-domain accounting"""
    domains = [normalizer.parse(u).registrable_domain for u, _, _ in hops]

    if len(hops) == 1:
        url = hops[0][0]
        chain = [
            RedirectHop(url=url, domain=domains[0], hop_type=HopType.ORIGIN),
            RedirectHop(url=url, domain=domains[0], hop_type=HopType.FINAL),
        ]
    else:
        chain = []
        for i, ((hop_url, status, kind), domain) in enumerate(zip(hops, domains)):
            if i == 0:
                hop_type = HopType.ORIGIN
            elif i == len(hops) - 1:
                hop_type = HopType.FINAL
            else:
                hop_type = HopType.REDIRECT
            chain.append(RedirectHop(
                url=hop_url, domain=domain, hop_type=hop_type,
                status_code=status, redirect_kind=kind,
            ))

    total_redirects = len(hops) - 1
    cross_domain_hops = sum(1 for a, b in zip(domains, domains[1:]) if a != b)

    return RedirectChainResult(
        final_url=hops[-1][0],
        chain=chain,
        total_redirects=total_redirects,
        cross_domain_hops=cross_domain_hops,
        is_suspicious_redirect=(
            cross_domain_hops >= SUSPICIOUS_CROSS_DOMAIN_HOPS
            or total_redirects >= SUSPICIOUS_TOTAL_REDIRECTS
        ),
    )

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Set

from linkshield.core.normalizer import ParsedUrl
from linkshield.core.trusted_domains import find_listed_parent
from linkshield.schemas import KnownBrand

logger = logging.getLogger(__name__)

BRAND_SCORE_MAX = 40
FUZZY_MIN_KEYWORD_LENGTH = 6

# Suffixes with little abuse history; a clean host on one of these gets the reduced score
LOW_ABUSE_SUFFIXES = frozenset({
    'com', 'net', 'org', 'id', 'co.id', 'or.id', 'go.id', 'ac.id', 'sch.id',
    'co.uk', 'de', 'co.jp', 'sg', 'com.sg', 'my', 'com.my', 'edu', 'gov',
})

_LABEL_SPLIT = re.compile(r'[^\w?]+')


def _brand(name, domains, keywords) -> KnownBrand:
    return KnownBrand(name=name, official_domains=frozenset(domains), keywords=tuple(keywords))


KNOWN_BRANDS = (
    _brand('BCA', ['bca.co.id', 'klikbca.com', 'klikbca.co.id'], ['bca', 'klikbca', 'mybca']),
    _brand('BRI', ['bri.co.id'], ['bri', 'brimo', 'bankbri']),
    _brand('Mandiri', ['bankmandiri.co.id', 'bankmandiri.com', 'livin.id'], ['mandiri', 'livin', 'bankmandiri']),
    _brand('BNI', ['bni.co.id'], ['bni', 'bankbni']),
    _brand('DANA', ['dana.id', 'dana.com'], ['dana', 'danaid']),
    _brand('GoJek', ['gojek.com', 'gopay.co.id'], ['gojek', 'gopay']),
    _brand('Shopee', ['shopee.co.id', 'shopee.com', 'shopeepay.co.id'], ['shopee', 'shopeepay']),
    _brand('Tokopedia', ['tokopedia.com'], ['tokopedia']),
    _brand('Google', ['google.com', 'google.co.id', 'gmail.com', 'youtube.com'], ['google', 'gmail']),
    _brand('Facebook', ['facebook.com', 'fb.com', 'fb.me', 'messenger.com'], ['facebook', 'fb']),
    _brand('Instagram', ['instagram.com'], ['instagram', 'ig']),
    _brand('WhatsApp', ['whatsapp.com', 'wa.me'], ['whatsapp']),
    _brand('SatuSehat', ['satusehat.kemkes.go.id', 'pedulilindungi.id'], ['satusehat', 'pedulilindungi']),
    _brand('PayPal', ['paypal.com', 'paypal.me'], ['paypal']),
    _brand('Netflix', ['netflix.com'], ['netflix']),
    _brand('Microsoft', ['microsoft.com', 'live.com', 'office.com', 'outlook.com'], ['microsoft', 'office365', 'outlook']),
    _brand('Apple', ['apple.com', 'icloud.com'], ['apple', 'icloud', 'itunes']),
    _brand('Amazon', ['amazon.com', 'amazon.co.uk', 'amazon.de', 'amazon.co.jp'], ['amazon']),
    _brand('DHL', ['dhl.com', 'dhl.co.id'], ['dhl']),
    _brand('FedEx', ['fedex.com'], ['fedex']),
)

BRAND_OFFICIAL_DOMAINS: FrozenSet[str] = frozenset(
    domain for brand in KNOWN_BRANDS for domain in brand.official_domains
)


@dataclass(frozen=True)
class BrandMatch:
    brand: KnownBrand
    matched: str
    is_typosquat: bool
    score: int

    @property
    def reason(self) -> str:
        if self.is_typosquat:
            return f"Domain resembles {self.brand.name} (possible typosquatting of '{self.matched}')"
        return f"Potential impersonation of {self.brand.name} detected"


class BrandMatcher:
    def __init__(self, brands: Iterable[KnownBrand] = KNOWN_BRANDS):
        self.brands = tuple(brands)
        self.official_domains = frozenset(d for b in self.brands for d in b.official_domains)

    def is_official_domain(self, host: str) -> bool:
        return find_listed_parent(host, self.official_domains) is not None

    def match(self, parsed: ParsedUrl) -> Optional[BrandMatch]:
        """
        Find the strongest brand impersonation signal for a host.

        Official domains of any known brand short-circuit to no match before
        any substring or fuzzy comparison runs.

        Args:
            parsed: Parsed URL from DomainNormalizer

        Returns:
            The single best BrandMatch, or None
        """
        host = parsed.hostname
        if not host or parsed.is_ip or self.is_official_domain(host):
            return None

        ascii_host = parsed.host.ascii_form
        tokens = self._tokens(host) | self._tokens(ascii_host)
        suffix_labels = set(parsed.suffix.split('.')) if parsed.suffix else set()
        fuzzy_labels = {
            t for t in self._tokens(ascii_host)
            if len(t) >= 4 and t not in suffix_labels
        }

        best = None
        for brand in self.brands:
            found = self._match_brand(brand, host, ascii_host, tokens, fuzzy_labels)
            if found is None:
                continue
            matched, is_typosquat = found
            candidate = BrandMatch(brand, matched, is_typosquat, self._score(parsed))
            if best is None or candidate.score > best.score:
                best = candidate

        if best:
            logger.debug(f"Brand match for {host}: {best.brand.name} via '{best.matched}'")
        return best

    def _match_brand(self, brand: KnownBrand, host: str, ascii_host: str,
                     tokens: Set[str], fuzzy_labels: Set[str]):
        for keyword in brand.keywords:
            if len(keyword) <= brand.min_segment_length_for_exact_match:
                if keyword in tokens:
                    return keyword, False
            elif keyword in host or keyword in ascii_host:
                return keyword, False

        for keyword in brand.keywords:
            if len(keyword) < FUZZY_MIN_KEYWORD_LENGTH:
                continue
            max_distance = 2 if len(keyword) >= 8 else 1
            for label in fuzzy_labels:
                if abs(len(label) - len(keyword)) > max_distance:
                    continue
                if 0 < self._levenshtein_distance(label, keyword) <= max_distance:
                    return label, True
        return None

    def _score(self, parsed: ParsedUrl) -> int:
        """Full score, halved for a clean host on a low-abuse suffix"""
        clean = parsed.hostname.count('-') <= 1 and len(parsed.subdomain_labels) <= 3
        if clean and parsed.suffix in LOW_ABUSE_SUFFIXES:
            return BRAND_SCORE_MAX // 2
        return BRAND_SCORE_MAX

    @staticmethod
    def _tokens(host: str) -> Set[str]:
        return {t for t in _LABEL_SPLIT.split(host) if t}

    def _levenshtein_distance(self, s1: str, s2: str) -> int:
        """Calculate Levenshtein distance between two strings"""
        if len(s1) < len(s2):
            return self._levenshtein_distance(s2, s1)
        if len(s2) == 0:
            return len(s1)

        previous_row = range(len(s2) + 1)
        for i, c1 in enumerate(s1):
            current_row = [i + 1]
            for j, c2 in enumerate(s2):
                insertions = previous_row[j + 1] + 1
                deletions = current_row[j] + 1
                substitutions = previous_row[j] + (c1 != c2)
                current_row.append(min(insertions, deletions, substitutions))
            previous_row = current_row
        return previous_row[-1]

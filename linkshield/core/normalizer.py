import ipaddress
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

import idna
import tldextract

from linkshield.schemas import NormalizedHost

logger = logging.getLogger(__name__)

# Offline extractor: bundled public suffix snapshot only, no cache writes
_tld_extract = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

_HOST_CHARS = re.compile(r"^[\w.\-~%]+$", re.UNICODE)
_HAS_SCHEME = re.compile(r"^(?:[a-z][a-z0-9+.\-]*://|https?:)", re.IGNORECASE)
_LOOSE_HOST = re.compile(r"^(?:[a-z][a-z0-9+.\-]*://)?(?:[^/?#\s@]*@)?([^/?#:\s]+)", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedUrl:
    """Decomposed URL with its normalized host and public-suffix split"""
    original: str
    scheme: str
    host: NormalizedHost
    path: str
    query: str
    fragment: str
    registrable_domain: str
    domain_label: str
    suffix: str
    subdomain_labels: Tuple[str, ...]
    is_ip: bool
    parsed_ok: bool
    # Host labels counted before ``www.`` is stripped
    label_count: int = 0

    @property
    def hostname(self) -> str:
        return self.host.raw

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(label for label in self.host.raw.split('.') if label)


class DomainNormalizer:
    def __init__(self):
        """
        Build the confusable-character table used for brand comparison.

        Maps Cyrillic/Greek look-alikes, Latin letters that carry no NFKD
        decomposition, and digit/symbol substitutions to ASCII letters.
        """
        self.confusables: Dict[str, str] = {
            # Cyrillic
            'а': 'a', 'в': 'b', 'е': 'e', 'ё': 'e', 'к': 'k', 'м': 'm',
            'о': 'o', 'р': 'p', 'с': 'c', 'т': 't', 'у': 'y', 'х': 'x',
            'і': 'i', 'ї': 'i', 'ј': 'j', 'ѕ': 's', 'ԁ': 'd', 'һ': 'h',
            'ԛ': 'q', 'ԝ': 'w', 'ӏ': 'l', 'ɡ': 'g',
            # Greek
            'α': 'a', 'β': 'b', 'ε': 'e', 'η': 'n', 'ι': 'i', 'κ': 'k',
            'ν': 'v', 'ο': 'o', 'ρ': 'p', 'τ': 't', 'υ': 'u', 'χ': 'x',
            'ω': 'w',
            # Latin letters without a decomposition
            'ı': 'i', 'ł': 'l', 'ø': 'o', 'đ': 'd', 'ħ': 'h', 'ŀ': 'l',
            'ɑ': 'a', 'ɩ': 'i', 'ß': 'ss', 'æ': 'ae', 'œ': 'oe',
            # Digit / symbol substitutions
            '0': 'o', '1': 'l', '3': 'e', '4': 'a', '5': 's', '7': 't',
            '8': 'b', '@': 'a', '$': 's', '|': 'l',
        }

    def parse(self, url: str) -> ParsedUrl:
        """
        Parse a URL or bare domain. Never raises.

        Args:
            url: Raw user input (may be empty, malformed or scheme-less)

        Returns:
            ParsedUrl; ``parsed_ok`` is False when the input had to be
            treated as plain text
        """
        text = (url or '').strip()
        parts = self._strict_split(text)
        if parts is None and not _HAS_SCHEME.match(text):
            parts = self._strict_split(f"https://{text}")

        if parts is None:
            host = self.normalize_host(text)
            return ParsedUrl(
                original=text,
                scheme='',
                host=host,
                path='',
                query='',
                fragment='',
                registrable_domain=host.raw,
                domain_label=host.raw,
                suffix='',
                subdomain_labels=(),
                is_ip=False,
                parsed_ok=False,
                label_count=self._count_labels(self.loose_host(text)),
            )

        host = self.normalize_host(parts.hostname)
        is_ip = self._is_ip(host.raw)
        if is_ip:
            registrable, domain_label, suffix, subdomains = host.raw, host.raw, '', ()
        else:
            registrable, domain_label, suffix, subdomains = self._split_domain(host.raw)

        return ParsedUrl(
            original=text,
            scheme=parts.scheme,
            host=host,
            path=parts.path,
            query=parts.query,
            fragment=parts.fragment,
            registrable_domain=registrable,
            domain_label=domain_label,
            suffix=suffix,
            subdomain_labels=subdomains,
            is_ip=is_ip,
            parsed_ok=True,
            label_count=self._count_labels(parts.hostname),
        )

    def normalize_host(self, host: str) -> NormalizedHost:
        """Lower-case, strip ``www.``, decode IDN labels and build the ASCII comparison form"""
        raw = self.strip_www((host or '').strip().lower().rstrip('.'))
        labels = raw.split('.')

        was_punycode = any(label.startswith('xn--') for label in labels)
        was_non_ascii = any(ord(ch) > 127 for ch in raw)

        decoded = '.'.join(self._decode_label(label) for label in labels)
        return NormalizedHost(
            raw=raw,
            ascii_form=self.to_ascii_form(decoded),
            was_punycode=was_punycode,
            was_non_ascii=was_non_ascii,
        )

    def to_ascii_form(self, text: str) -> str:
        out = []
        for ch in text.lower():
            if ch in self.confusables:
                out.append(self.confusables[ch])
            elif ord(ch) < 128:
                out.append(ch)
            else:
                base = ''.join(
                    c for c in unicodedata.normalize('NFKD', ch)
                    if not unicodedata.combining(c)
                )
                if base and base.isascii():
                    out.append(base)
                elif base and base[0] in self.confusables:
                    out.append(self.confusables[base[0]])
                else:
                    out.append('?')
        return ''.join(out)

    @staticmethod
    def loose_host(text: str) -> str:
        """
        Best-effort host of text that failed strict parsing

        Drops scheme, userinfo, port and everything after the authority so
        that list lookups still see the real domain of e.g.
        ``https://scam.xyz:99999/``. Returns '' when nothing host-like is left.
        """
        match = _LOOSE_HOST.match((text or '').strip())
        if not match:
            return ''
        return DomainNormalizer.strip_www(match.group(1).lower().rstrip('.'))

    @staticmethod
    def strip_www(host: str) -> str:
        return host[4:] if host.startswith('www.') else host

    def _strict_split(self, candidate: str) -> Optional[SplitResult]:
        try:
            parts = urlsplit(candidate)
            if parts.scheme not in ('http', 'https') or not parts.hostname:
                return None
            parts.port  # raises ValueError for a non-numeric port
        except ValueError:
            return None

        if not (_HOST_CHARS.match(parts.hostname) or self._is_ip(parts.hostname)):
            return None
        return parts

    @staticmethod
    def _count_labels(host: str) -> int:
        return len([label for label in (host or '').strip().rstrip('.').split('.') if label])

    @staticmethod
    def _is_ip(host: str) -> bool:
        try:
            ipaddress.ip_address(host)
            return True
        except ValueError:
            return False

    @staticmethod
    def _split_domain(host: str) -> Tuple[str, str, str, Tuple[str, ...]]:
        ext = _tld_extract(host)
        if not ext.suffix or not ext.domain:
            return host, ext.domain or host, ext.suffix, ()

        subdomains = tuple(ext.subdomain.split('.')) if ext.subdomain else ()
        return f"{ext.domain}.{ext.suffix}", ext.domain, ext.suffix, subdomains

    @staticmethod
    def _decode_label(label: str) -> str:
        if not label.startswith('xn--'):
            return label
        try:
            return idna.decode(label)
        except (idna.IDNAError, UnicodeError) as e:
            logger.debug(f"Could not decode IDN label {label!r}: {e}")
            return label


default_normalizer = DomainNormalizer()


def host_of(url_or_domain: str) -> str:
    """Normalized display host (lower-case, no ``www.``) for a URL or bare domain"""
    return default_normalizer.parse(url_or_domain).hostname


def is_same_or_subdomain(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")

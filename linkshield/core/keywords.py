import re
from typing import List, Optional, Tuple

from linkshield.core.normalizer import ParsedUrl

HIGH_WEIGHT = 15
HIGH_TIER_CAP = 20
LOW_WEIGHT = 5
LOW_TIER_CAP = 10
KEYWORD_SCORE_MAX = 20
MIN_DISTINCT_MATCHES = 2

HIGH_WEIGHT_KEYWORDS = (
    'login', 'signin', 'logon', 'verify', 'verifikasi', 'verification',
    'secure', 'security', 'password', 'passwd', 'account', 'akun',
    'confirm', 'konfirmasi', 'credential', 'authenticate', 'auth',
    'suspended', 'locked', 'unlock', 'recover', 'restore', 'reset',
    'banking', 'wallet', 'dompet', 'validate', 'update',
)

LOW_WEIGHT_KEYWORDS = (
    'support', 'service', 'help', 'helpdesk', 'customer', 'promo', 'bonus',
    'hadiah', 'undian', 'claim', 'klaim', 'winner', 'pemenang', 'free',
    'gratis', 'billing', 'invoice', 'payment', 'alert', 'warning', 'notice',
    'official', 'resmi', 'urgent',
)

_TOKEN_SPLIT = re.compile(r'[^a-z0-9]+')


class KeywordScorer:
    """
    Tiered suspicious-keyword scoring over host labels and path segments.

    Query strings and fragments are never tokenized. Each token counts for
    at most one keyword (the longest it contains) and a score needs at
    least two distinct keywords.
    """

    def __init__(self, high=HIGH_WEIGHT_KEYWORDS, low=LOW_WEIGHT_KEYWORDS):
        self.high = frozenset(high)
        self.low = frozenset(low)
        self._by_length = sorted(self.high | self.low, key=len, reverse=True)

    def tokens(self, parsed: ParsedUrl) -> List[str]:
        text = f"{parsed.hostname} {parsed.path}".lower()
        return [t for t in _TOKEN_SPLIT.split(text) if t]

    def score(self, parsed: ParsedUrl) -> Tuple[int, Optional[str]]:
        matched = set()
        for token in self.tokens(parsed):
            keyword = self._keyword_in(token)
            if keyword:
                matched.add(keyword)

        if len(matched) < MIN_DISTINCT_MATCHES:
            return 0, None

        high_hits = len(matched & self.high)
        low_hits = len(matched & self.low)
        high_score = min(high_hits * HIGH_WEIGHT, HIGH_TIER_CAP)
        low_score = min(low_hits * LOW_WEIGHT, LOW_TIER_CAP)
        total = min(high_score + low_score, KEYWORD_SCORE_MAX)

        found = ', '.join(sorted(matched))
        return total, f"Contains suspicious keywords: {found}"

    def _keyword_in(self, token: str) -> Optional[str]:
        for keyword in self._by_length:
            if keyword in token:
                return keyword
        return None

from typing import FrozenSet, Optional

from linkshield.core.normalizer import ParsedUrl

TLD_SCORE = 20

# General-purpose TLDs (.info, .net, .org) are intentionally absent
RISKY_TLDS: FrozenSet[str] = frozenset({
    'xyz', 'top', 'click', 'win', 'loan', 'icu', 'link', 'work', 'buzz',
    'surf', 'cam', 'bar', 'rest', 'monster', 'bid', 'racing', 'download',
    'zip', 'mov',
    # Free / near-free ccTLDs
    'tk', 'ga', 'cf', 'ml', 'gq', 'cc', 'pw',
})


class TldRiskClassifier:
    def __init__(self, risky_tlds: FrozenSet[str] = RISKY_TLDS):
        self.risky_tlds = risky_tlds

    def top_level(self, parsed: ParsedUrl) -> Optional[str]:
        if parsed.is_ip or not parsed.labels:
            return None
        return parsed.labels[-1]

    def score(self, parsed: ParsedUrl):
        """Returns (score, reason) for the host's top-level domain"""
        tld = self.top_level(parsed)
        if tld and tld in self.risky_tlds:
            return TLD_SCORE, f"Uses a high-risk top-level domain (.{tld})"
        return 0, None

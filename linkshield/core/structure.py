from typing import List, Tuple

from linkshield.core.normalizer import ParsedUrl

IP_LITERAL_SCORE = 20
DEEP_SUBDOMAIN_SCORE = 10
HYPHEN_SCORE = 10
IDN_SCORE = 15
STRUCTURE_SCORE_MAX = 100

MAX_LABELS = 4
MAX_HYPHENS = 2


class StructuralAnalyzer:
    """Scores the shape of the host: IP literals, label depth, hyphens and IDN labels"""

    def analyze(self, parsed: ParsedUrl) -> Tuple[int, List[str]]:
        if parsed.is_ip:
            return IP_LITERAL_SCORE, ["Uses a raw IP address instead of a domain name"]

        score = 0
        reasons = []

        if parsed.label_count > MAX_LABELS:
            score += DEEP_SUBDOMAIN_SCORE
            reasons.append(f"Excessive subdomain depth ({parsed.label_count} labels)")

        hyphens = parsed.domain_label.count('-')
        if hyphens > MAX_HYPHENS:
            score += HYPHEN_SCORE
            reasons.append(f"Domain name contains many hyphens ({hyphens})")

        if parsed.host.was_punycode:
            score += IDN_SCORE
            reasons.append("Internationalized (Punycode) domain name")
        elif parsed.host.was_non_ascii:
            score += IDN_SCORE
            reasons.append("Domain contains non-ASCII characters (possible homoglyph attack)")

        return min(score, STRUCTURE_SCORE_MAX), reasons

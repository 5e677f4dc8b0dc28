import logging
from typing import Iterable, Optional

from linkshield.config import settings
from linkshield.core.brand_matcher import BrandMatcher
from linkshield.core.denylist import DenylistSnapshot, DenylistStore
from linkshield.core.keywords import KeywordScorer
from linkshield.core.normalizer import DomainNormalizer, default_normalizer
from linkshield.core.path_analysis import PathAnalyzer
from linkshield.core.structure import StructuralAnalyzer
from linkshield.core.tld_risk import TldRiskClassifier
from linkshield.core.trusted_domains import is_trusted_domain
from linkshield.schemas import AnalysisResult, ScoreBreakdown, ThreatLevel

logger = logging.getLogger(__name__)


class RiskScorer:
    def __init__(self, denylist: Optional[DenylistStore] = None,
                 normalizer: Optional[DomainNormalizer] = None):
        """
        Initialize RiskScorer with its sub-analyzers and verdict thresholds

        Args:
            denylist: Store holding the current denylist snapshot. A bundled
                baseline store is created when omitted.
            normalizer: URL/host normalizer (shared default when omitted)
        """
        self.denylist = denylist if denylist is not None else DenylistStore()
        self.normalizer = normalizer or default_normalizer

        self.brand_matcher = BrandMatcher()
        self.tld_classifier = TldRiskClassifier()
        self.structure_analyzer = StructuralAnalyzer()
        self.keyword_scorer = KeywordScorer()
        self.path_analyzer = PathAnalyzer()

        # Verdict thresholds
        self.thresholds = {
            'danger': settings.DANGER_THRESHOLD,
            'warning': settings.WARNING_THRESHOLD,
        }

    def analyze_url(self, url: str, snapshot: Optional[DenylistSnapshot] = None) -> AnalysisResult:
        """
        Score a URL and classify it.

        Deterministic for a given URL and denylist snapshot. Malformed input
        is scored as plain text rather than rejected.

        Args:
            url: Raw URL or bare domain
            snapshot: Denylist snapshot to consult (the store's current one by default)

        Returns:
            AnalysisResult with breakdown and ordered reasons
        """
        snapshot = snapshot if snapshot is not None else self.denylist.current()
        parsed = self.normalizer.parse(url)
        host = parsed.hostname
        reasons = []

        if not parsed.parsed_ok and host:
            reasons.append("URL could not be parsed; analysed as plain text")

        blocked = False
        lookup_host = host if parsed.parsed_ok else self.normalizer.loose_host(parsed.original)
        denylist_match = snapshot.lookup(lookup_host) if lookup_host else None
        if denylist_match:
            blocked = True
            reasons.append(f"Domain is on the known scam list ({denylist_match.category.value})")

        malware_reason = self.path_analyzer.malware_delivery_pattern(parsed)
        if malware_reason:
            blocked = True
            reasons.append(malware_reason)

        brand_score = 0
        brand_match = self.brand_matcher.match(parsed)
        if brand_match:
            brand_score = brand_match.score
            reasons.append(brand_match.reason)

        tld_score, tld_reason = self.tld_classifier.score(parsed)
        if tld_reason:
            reasons.append(tld_reason)

        structure_score, structure_reasons = self.structure_analyzer.analyze(parsed)
        reasons.extend(structure_reasons)

        keyword_score, keyword_reason = self.keyword_scorer.score(parsed)
        if keyword_reason:
            reasons.append(keyword_reason)

        path_score = 0
        if host and not self._is_known_good(host):
            path_score, path_reasons = self.path_analyzer.analyze(parsed)
            reasons.extend(path_reasons)

        details = ScoreBreakdown(
            brand_impersonation_score=brand_score,
            tld_score=tld_score,
            structure_score=structure_score,
            keyword_score=keyword_score,
            path_analysis_score=path_score,
        )
        score = max(0, min(100, details.total()))
        threat_level = ThreatLevel.BLOCKED if blocked else self.classify(score)

        return AnalysisResult(
            url=url,
            score=score,
            threat_level=threat_level,
            is_suspicious=threat_level != ThreatLevel.SAFE,
            details=details,
            reasons=reasons,
            denylist_match=denylist_match,
        )

    def classify(self, score: int) -> ThreatLevel:
        if score >= self.thresholds['danger']:
            return ThreatLevel.DANGER
        elif score >= self.thresholds['warning']:
            return ThreatLevel.WARNING
        else:
            return ThreatLevel.SAFE

    def with_adjustments(self, result: AnalysisResult, penalty: int = 0,
                         floor: Optional[int] = None,
                         reasons: Iterable[str] = ()) -> AnalysisResult:
        """Apply a chain penalty and/or a score floor, then re-classify"""
        score = min(100, result.score + penalty)
        if floor is not None:
            score = max(score, floor)

        if result.threat_level == ThreatLevel.BLOCKED:
            level = ThreatLevel.BLOCKED
        else:
            level = self.classify(score)

        return result.model_copy(update={
            'score': score,
            'threat_level': level,
            'is_suspicious': level != ThreatLevel.SAFE,
            'reasons': list(result.reasons) + list(reasons),
        })

    @staticmethod
    def fallback_result(url: str) -> AnalysisResult:
        """Conservative result used when analysis itself fails"""
        return AnalysisResult(url=url or '', score=0, threat_level=ThreatLevel.SAFE, is_suspicious=False)

    def _is_known_good(self, host: str) -> bool:
        return self.brand_matcher.is_official_domain(host) or is_trusted_domain(host)

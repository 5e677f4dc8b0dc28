import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional

from linkshield.config import settings
from linkshield.core.domain_age import DomainAgeChecker
from linkshield.core.redirect_resolver import RedirectChainResolver
from linkshield.core.risk_scorer import RiskScorer
from linkshield.core.safe_link import SafeLinkHeuristic
from linkshield.core.threat_intel import SafeBrowsingClient
from linkshield.schemas import (
    AnalysisResult,
    DecisionAction,
    DecisionReason,
    ErrorKind,
    ExternalSignals,
    InterceptedLink,
    InterceptionDecision,
    RedirectChainResult,
    ThreatLevel,
)
from linkshield.services.history_service import HistoryService
from linkshield.services.whitelist_service import WhitelistService

logger = logging.getLogger(__name__)

# Extra time granted to a future beyond the collaborator's own HTTP timeout
FUTURE_GRACE_SECONDS = 1.0


class InterceptionService:
    def __init__(self, scorer: RiskScorer,
                 whitelist: WhitelistService,
                 history: HistoryService,
                 redirect_resolver: Optional[RedirectChainResolver] = None,
                 threat_intel: Optional[SafeBrowsingClient] = None,
                 domain_age: Optional[DomainAgeChecker] = None,
                 safe_link: Optional[SafeLinkHeuristic] = None,
                 protection_enabled: Optional[bool] = None,
                 max_workers: int = 4):
        """
        Decision pipeline for an intercepted link.

        Args:
            scorer: Local risk scorer (owns the denylist store)
            whitelist: User and system whitelist
            history: Where analysed links are recorded
            redirect_resolver: Follows redirects; None skips resolution
            threat_intel: Safe Browsing client; None skips the lookup
            domain_age: RDAP client; None skips the lookup
            safe_link: Heuristic bypass (built from the scorer when omitted)
            protection_enabled: Global switch (settings value by default)
            max_workers: Threads for concurrent external lookups
        """
        self.scorer = scorer
        self.whitelist = whitelist
        self.history = history
        self.redirect_resolver = redirect_resolver
        self.threat_intel = threat_intel
        self.domain_age = domain_age
        self.safe_link = safe_link or SafeLinkHeuristic(scorer)
        self.protection_enabled = (
            settings.PROTECTION_ENABLED if protection_enabled is None else protection_enabled
        )
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='linkshield-lookup')

    def intercept(self, url: str, source: Optional[str] = None,
                  protection_enabled: Optional[bool] = None) -> InterceptionDecision:
        """
        Decide what happens to a tapped link. First matching step wins.

        Args:
            url: Raw link as intercepted
            source: App or channel the link came from
            protection_enabled: Per-request override of the global switch

        Returns:
            InterceptionDecision (allow, confirm or block)
        """
        enabled = self.protection_enabled if protection_enabled is None else protection_enabled
        if not enabled:
            return InterceptionDecision(action=DecisionAction.ALLOW, reason=DecisionReason.PROTECTION_DISABLED)

        if self.whitelist.is_user_whitelisted(url):
            logger.info(f"✓ User-whitelisted link passed through: {url}")
            return InterceptionDecision(action=DecisionAction.ALLOW, reason=DecisionReason.USER_WHITELISTED)

        try:
            bypass = self.safe_link.check(url)
            if bypass.is_safe:
                return InterceptionDecision(action=DecisionAction.ALLOW, reason=DecisionReason.HEURISTIC_SAFE)

            link = self.analyze(url, source)
        except Exception:
            logger.exception(f"❌ Analysis failed for {url}, falling back to safe result")
            link = InterceptedLink(original_url=url, source=source, analysis=RiskScorer.fallback_result(url))
            self.history.record(link)
            return InterceptionDecision(
                action=DecisionAction.ALLOW, reason=DecisionReason.ANALYSIS_FAILED, link=link,
            )

        self.history.record(link)
        return self._decide(link)

    def analyze(self, url: str, source: Optional[str] = None) -> InterceptedLink:
        """Resolve redirects, score and fold in external signals"""
        snapshot = self.scorer.denylist.current()
        unavailable: List[str] = []

        chain = self._resolve_chain(url, unavailable)
        final_url = chain.final_url

        threat_future = None
        if self.scorer.normalizer.parse(final_url).parsed_ok:
            threat_future = self._submit(self.threat_intel, 'check_url', self._absolute(final_url))
        age_future = self._submit(self.domain_age, 'check', final_url)

        analysis = self.scorer.analyze_url(final_url, snapshot)
        if final_url != url:
            analysis = self._more_severe(analysis, self.scorer.analyze_url(url, snapshot))

        threat = self._await(
            threat_future, settings.SAFE_BROWSING_TIMEOUT, 'threat_intel', unavailable
        )
        age = self._await(
            age_future, settings.DOMAIN_AGE_TIMEOUT, 'domain_age', unavailable
        )

        penalty = 0
        floor = None
        reasons = []

        if chain.is_suspicious_redirect:
            penalty = settings.REDIRECT_PENALTY
            reasons.append(
                f"Suspicious redirect chain ({chain.total_redirects} redirects, "
                f"{chain.cross_domain_hops} cross-domain)"
            )

        if threat and threat.is_threat:
            floor = settings.THREAT_INTEL_SCORE_FLOOR
            label = threat.threat_description or threat.threat_type or "unsafe site"
            reasons.append(f"Flagged by Google Safe Browsing: {label}")

        if age and age.age_in_days is not None:
            if age.is_new_domain:
                reasons.append(f"Domain was registered only {age.age_in_days} days ago")
            elif age.is_young_domain:
                reasons.append(f"Domain is less than 6 months old ({age.age_in_days} days)")

        if penalty or floor is not None or reasons:
            analysis = self.scorer.with_adjustments(analysis, penalty=penalty, floor=floor, reasons=reasons)

        return InterceptedLink(
            original_url=url,
            final_url=final_url if final_url != url else None,
            source=source,
            analysis=analysis,
            redirect_info=chain,
            external_signals=ExternalSignals(threat_intel=threat, domain_age=age, unavailable=unavailable),
        )

    def shutdown(self):
        self.executor.shutdown(wait=False)

    def _decide(self, link: InterceptedLink) -> InterceptionDecision:
        level = link.analysis.threat_level
        if level == ThreatLevel.BLOCKED:
            logger.warning(f"🚨 Blocked link: {link.original_url}")
            return InterceptionDecision(
                action=DecisionAction.BLOCK, reason=DecisionReason.BLOCKED, can_override=False, link=link,
            )
        if level in (ThreatLevel.DANGER, ThreatLevel.WARNING):
            logger.info(f"⚠️ Confirmation required ({level.value}, score {link.analysis.score}): {link.original_url}")
            return InterceptionDecision(action=DecisionAction.CONFIRM, reason=DecisionReason.ANALYZED, link=link)
        return InterceptionDecision(action=DecisionAction.ALLOW, reason=DecisionReason.ANALYZED, link=link)

    def _resolve_chain(self, url: str, unavailable: List[str]) -> RedirectChainResult:
        resolver = self.redirect_resolver
        if resolver is None:
            return RedirectChainResolver.fallback_chain(url)

        future = self.executor.submit(resolver.resolve, url)
        chain = self._await(future, resolver.total_budget + resolver.timeout, 'redirect', unavailable)
        return chain if chain is not None else resolver.fallback(url)

    def _submit(self, client, method: str, arg: str) -> Optional[Future]:
        if client is None:
            return None
        return self.executor.submit(getattr(client, method), arg)

    @staticmethod
    def _await(future: Optional[Future], timeout: float, name: str, unavailable: List[str]):
        """Wait for a lookup; anything but a successful outcome means "no signal\""""
        if future is None:
            return None
        try:
            outcome = future.result(timeout=timeout + FUTURE_GRACE_SECONDS)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(f"⚠️ {name} lookup timed out")
            unavailable.append(name)
            return None
        except Exception as e:
            logger.error(f"❌ {name} lookup raised: {e}")
            unavailable.append(name)
            return None

        if not outcome.ok:
            if outcome.error not in (ErrorKind.DISABLED, ErrorKind.INVALID_INPUT):
                unavailable.append(name)
            return None
        return outcome.value

    @staticmethod
    def _more_severe(a: AnalysisResult, b: AnalysisResult) -> AnalysisResult:
        if a.threat_level == ThreatLevel.BLOCKED:
            return a
        if b.threat_level == ThreatLevel.BLOCKED:
            return b
        return b if b.score > a.score else a

    @staticmethod
    def _absolute(url: str) -> str:
        if url.lower().startswith(('http://', 'https://')):
            return url
        return f"https://{url}"

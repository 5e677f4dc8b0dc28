import logging
from typing import Optional
from urllib.parse import unquote

from linkshield.config import settings
from linkshield.core.normalizer import ParsedUrl
from linkshield.core.risk_scorer import RiskScorer
from linkshield.core.trusted_domains import find_listed_parent, is_trusted_domain
from linkshield.schemas import SafeLinkResult

logger = logging.getLogger(__name__)

DANGEROUS_EXTENSIONS = (
    '.apk', '.exe', '.msi', '.bat', '.cmd', '.scr', '.pif', '.com',
    '.vbs', '.js', '.jar',
)

URL_SHORTENERS = frozenset({
    'bit.ly', 'tinyurl.com', 't.co', 'goo.gl', 'ow.ly', 'is.gd',
    'buff.ly', 'adf.ly', 'bit.do', 'mcaf.ee', 'su.pr', 'dlvr.it',
    'fb.me', 'lnkd.in', 'youtu.be', 'amzn.to', 'rb.gy', 'cutt.ly',
    'shorturl.at', 'tiny.cc', 'bc.vc', 'v.gd', 'clck.ru', 'rebrand.ly',
    's.id', 'linktr.ee', 'qr.ae', 'surl.li', 'shorturl.asia', 'u.to',
})


class SafeLinkHeuristic:
    """
    Fast "obviously safe" check that lets a link skip deep analysis.

    Checks run in order and the first failing one is reported: trusted
    domain (curated, official brand or auto-trusted by user feedback),
    HTTPS, no dangerous download, not a shortener, not on the denylist,
    not reported unsafe by the user, low local score.
    """

    def __init__(self, scorer: RiskScorer, max_score: Optional[int] = None, feedback=None):
        self.scorer = scorer
        self.feedback = feedback
        self.max_score = settings.HEURISTIC_BYPASS_MAX_SCORE if max_score is None else max_score

    def check(self, url: str) -> SafeLinkResult:
        parsed = self.scorer.normalizer.parse(url)
        host = parsed.hostname
        signals = {
            'is_trusted_domain': False,
            'is_https': False,
            'has_no_dangerous_file': False,
            'is_not_shortener': False,
            'is_not_denylisted': False,
            'has_no_negative_feedback': False,
            'has_low_score': False,
        }

        if not parsed.parsed_ok or not host:
            return SafeLinkResult(is_safe=False, reason="URL could not be parsed", signals=signals)

        signals['is_trusted_domain'] = (
            is_trusted_domain(host)
            or self.scorer.brand_matcher.is_official_domain(host)
            or (self.feedback is not None and self.feedback.is_auto_trusted(host))
        )
        if not signals['is_trusted_domain']:
            return SafeLinkResult(is_safe=False, reason="Domain is not in trusted list", signals=signals)

        signals['is_https'] = parsed.scheme == 'https'
        if not signals['is_https']:
            return SafeLinkResult(is_safe=False, reason="Connection is not HTTPS", signals=signals)

        signals['has_no_dangerous_file'] = self.dangerous_extension(parsed) is None
        if not signals['has_no_dangerous_file']:
            return SafeLinkResult(is_safe=False, reason="Link points to a potentially dangerous file", signals=signals)

        signals['is_not_shortener'] = not self.is_shortener(host)
        if not signals['is_not_shortener']:
            return SafeLinkResult(is_safe=False, reason="Link uses a URL shortener", signals=signals)

        snapshot = self.scorer.denylist.current()
        signals['is_not_denylisted'] = snapshot.lookup(host) is None
        if not signals['is_not_denylisted']:
            return SafeLinkResult(is_safe=False, reason="Domain is on the known scam list", signals=signals)

        signals['has_no_negative_feedback'] = self.feedback is None or not self.feedback.has_negative_feedback(host)
        if not signals['has_no_negative_feedback']:
            return SafeLinkResult(is_safe=False, reason="Domain was reported unsafe by the user", signals=signals)

        analysis = self.scorer.analyze_url(url, snapshot)
        signals['has_low_score'] = analysis.score < self.max_score
        if not signals['has_low_score']:
            return SafeLinkResult(is_safe=False, reason=f"Risk score too high ({analysis.score})", signals=signals)

        logger.debug(f"✓ Heuristic bypass for {host}")
        return SafeLinkResult(is_safe=True, reason="Trusted HTTPS link", signals=signals)

    @staticmethod
    def dangerous_extension(parsed: ParsedUrl) -> Optional[str]:
        path = unquote(parsed.path).lower().rstrip('/')
        for ext in DANGEROUS_EXTENSIONS:
            if path.endswith(ext):
                return ext
        return None

    @staticmethod
    def is_shortener(host: str) -> bool:
        return find_listed_parent(host, URL_SHORTENERS) is not None

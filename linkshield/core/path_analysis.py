import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, unquote

from linkshield.core.normalizer import ParsedUrl

PATH_SCORE_MAX = 15

LOGIN_PATH_SCORE = 8
ENCODED_DATA_SCORE = 5
EMAIL_SCORE = 5
PHONE_SCORE = 5
DEEP_PATH_SCORE = 3
BANKING_PATH_SCORE = 5
APP_DOWNLOAD_SCORE = 10

MAX_PATH_SEGMENTS = 5

LOGIN_PATH_TERMS = frozenset({
    'login', 'signin', 'sign-in', 'logon', 'masuk', 'checkout', 'payment',
    'pay', 'bayar', 'verify', 'verification', 'otp', 'billing',
    'reset-password', 'account-recovery',
})

BANKING_PATH_TERMS = (
    'internet-banking', 'internetbanking', 'e-banking', 'ebanking',
    'ibank', 'mobile-banking', 'm-banking', 'e-wallet', 'ewallet',
    'topup', 'top-up', 'transfer-dana',
)

APP_EXTENSIONS = ('.apk', '.exe', '.msi', '.xapk', '.apks')

INVITATION_TERMS = (
    'undangan', 'pernikahan', 'wedding', 'invitation', 'invite', 'nikah',
    'resepsi', 'walimah', 'tasyakuran', 'khitanan',
)

_BASE64_VALUE = re.compile(r'^[A-Za-z0-9+/_-]{20,}={0,2}$')
_EMAIL = re.compile(r'[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}')
_PHONE = re.compile(r'(?<!\d)(?:\+?62|0)8\d{7,11}(?!\d)|(?<!\d)\+\d{9,15}(?!\d)')


class PathAnalyzer:
    """
    Scores the path and query for phishing-kit patterns.

    Hosts that belong to a known brand or the trusted list are skipped by
    the caller; this class only looks at the URL text.
    """

    def analyze(self, parsed: ParsedUrl) -> Tuple[int, List[str]]:
        path = unquote(parsed.path).lower()
        segments = [s for s in path.split('/') if s]
        query_values = [v for _, v in parse_qsl(parsed.query, keep_blank_values=False)]
        url_text = unquote(f"{parsed.path}?{parsed.query}")

        score = 0
        reasons = []

        if any(self._is_login_segment(s) for s in segments):
            score += LOGIN_PATH_SCORE
            reasons.append("URL path matches a login/payment page pattern")

        if any(_BASE64_VALUE.match(v) for v in query_values):
            score += ENCODED_DATA_SCORE
            reasons.append("URL carries encoded data (possible Base64 payload)")

        if _EMAIL.search(url_text):
            score += EMAIL_SCORE
            reasons.append("URL contains an email address")

        if _PHONE.search(url_text):
            score += PHONE_SCORE
            reasons.append("URL contains a phone number")

        if len(segments) > MAX_PATH_SEGMENTS:
            score += DEEP_PATH_SCORE
            reasons.append(f"Deeply nested URL path ({len(segments)} segments)")

        if any(term in path for term in BANKING_PATH_TERMS):
            score += BANKING_PATH_SCORE
            reasons.append("URL path mimics a banking/financial portal")

        if self.app_download(parsed):
            score += APP_DOWNLOAD_SCORE
            reasons.append("Link downloads an application file directly")

        return min(score, PATH_SCORE_MAX), reasons

    def app_download(self, parsed: ParsedUrl) -> Optional[str]:
        """Return the application extension the path ends with, if any"""
        path = unquote(parsed.path).lower().rstrip('/')
        for ext in APP_EXTENSIONS:
            if path.endswith(ext):
                return ext
        return None

    def malware_delivery_pattern(self, parsed: ParsedUrl) -> Optional[str]:
        """
        Detect an application payload dressed up as an invitation.

        Returns:
            Reason string when the URL matches, else None
        """
        ext = self.app_download(parsed)
        if not ext:
            return None

        text = unquote(f"{parsed.hostname}/{parsed.path}?{parsed.query}").lower()
        if any(term in text for term in INVITATION_TERMS):
            return f"Invitation-themed link delivers an application file ({ext})"
        return None

    @staticmethod
    def _is_login_segment(segment: str) -> bool:
        if segment in LOGIN_PATH_TERMS:
            return True
        stem = segment.rsplit('.', 1)[0]
        return stem in LOGIN_PATH_TERMS or any(
            part in LOGIN_PATH_TERMS for part in re.split(r'[-_]', stem)
        )

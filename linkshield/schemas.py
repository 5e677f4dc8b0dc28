from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


# ==========================================
# 🧱 SHARED ENUMS
# ==========================================

class ThreatLevel(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"
    BLOCKED = "blocked"


class HopType(str, Enum):
    ORIGIN = "origin"
    REDIRECT = "redirect"
    FINAL = "final"


class RedirectKind(str, Enum):
    HTTP = "http"
    META_REFRESH = "meta_refresh"
    JAVASCRIPT = "javascript"


class ScamCategory(str, Enum):
    FAKE_BANK = "fake_bank"
    LOTTERY_SCAM = "lottery_scam"
    PHISHING = "phishing"
    MALWARE = "malware"
    CRYPTO_SCAM = "crypto_scam"
    SHOPPING_SCAM = "shopping_scam"
    IMPERSONATION = "impersonation"
    OTHER = "other"


class ErrorKind(str, Enum):
    DISABLED = "disabled"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    INVALID_INPUT = "invalid_input"


class DecisionAction(str, Enum):
    ALLOW = "allow"
    CONFIRM = "confirm"
    BLOCK = "block"


class DecisionReason(str, Enum):
    PROTECTION_DISABLED = "protection_disabled"
    USER_WHITELISTED = "user_whitelisted"
    HEURISTIC_SAFE = "heuristic_safe"
    ANALYZED = "analyzed"
    BLOCKED = "blocked"
    ANALYSIS_FAILED = "analysis_failed"


class FeedbackType(str, Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"


# ==========================================
# 🔁 COLLABORATOR RESULTS
# ==========================================

@dataclass(frozen=True)
class LookupOutcome(Generic[T]):
    """
    Result of an external lookup: either a value or an error kind.

    Collaborators never raise for network problems; callers check ``ok``
    and treat a failed outcome as "no signal".
    """
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "LookupOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: Optional[str] = None) -> "LookupOutcome[T]":
        return cls(error=error, detail=detail)


# ==========================================
# 🔍 ANALYSIS MODELS
# ==========================================

class NormalizedHost(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    ascii_form: str
    was_punycode: bool = False
    was_non_ascii: bool = False


class KnownBrand(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    official_domains: frozenset[str]
    keywords: tuple[str, ...]
    min_segment_length_for_exact_match: int = 3


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand_impersonation_score: int = Field(0, ge=0, le=100)
    tld_score: int = Field(0, ge=0, le=100)
    structure_score: int = Field(0, ge=0, le=100)
    keyword_score: int = Field(0, ge=0, le=100)
    path_analysis_score: int = Field(0, ge=0, le=100)

    def total(self) -> int:
        return (
            self.brand_impersonation_score
            + self.tld_score
            + self.structure_score
            + self.keyword_score
            + self.path_analysis_score
        )


class DenylistEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    category: ScamCategory = ScamCategory.OTHER
    description: Optional[str] = None


class DenylistDocument(BaseModel):
    """Remote snapshot document, camelCase on the wire"""
    model_config = ConfigDict(populate_by_name=True)

    version: str
    last_updated: str = Field(alias="lastUpdated")
    domains: List[DenylistEntry] = []


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    score: int = Field(0, ge=0, le=100)
    threat_level: ThreatLevel = ThreatLevel.SAFE
    is_suspicious: bool = False
    details: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    reasons: List[str] = []
    denylist_match: Optional[DenylistEntry] = None


class RedirectHop(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    domain: str
    hop_type: HopType
    status_code: Optional[int] = None
    redirect_kind: Optional[RedirectKind] = None


class RedirectChainResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_url: str
    chain: List[RedirectHop] = []
    total_redirects: int = 0
    cross_domain_hops: int = 0
    is_suspicious_redirect: bool = False


class ThreatIntelResult(BaseModel):
    is_threat: bool = False
    threat_type: Optional[str] = None
    threat_description: Optional[str] = None
    from_cache: bool = False


class DomainAgeResult(BaseModel):
    domain: str
    age_in_days: Optional[int] = None
    registration_date: Optional[datetime] = None
    is_new_domain: bool = False
    is_young_domain: bool = False


class ExternalSignals(BaseModel):
    threat_intel: Optional[ThreatIntelResult] = None
    domain_age: Optional[DomainAgeResult] = None
    unavailable: List[str] = []


class InterceptedLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_url: str
    final_url: Optional[str] = None
    source: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    analysis: AnalysisResult
    redirect_info: Optional[RedirectChainResult] = None
    external_signals: Optional[ExternalSignals] = None


class InterceptionDecision(BaseModel):
    action: DecisionAction
    reason: DecisionReason
    can_override: bool = True
    link: Optional[InterceptedLink] = None


class SafeLinkResult(BaseModel):
    is_safe: bool
    reason: str
    signals: Dict[str, bool] = {}


class RateLimitStatus(BaseModel):
    allowed: bool
    remaining_attempts: int
    lockout_until: Optional[datetime] = None
    wait_seconds: int = 0


class DomainFeedback(BaseModel):
    domain: str
    safe_count: int = 0
    unsafe_count: int = 0
    last_feedback: Optional[datetime] = None
    auto_trusted: bool = False


# ==========================================
# 📥 REQUEST / RESPONSE MODELS
# ==========================================

class AnalyzeRequest(BaseModel):
    url: str
    source: Optional[str] = None


class WhitelistRequest(BaseModel):
    domain: str


class WhitelistResponse(BaseModel):
    user_domains: List[str]
    system_domain_count: int


class FeedbackRequest(BaseModel):
    domain: str
    feedback: FeedbackType


class FeedbackResponse(BaseModel):
    feedback: DomainFeedback
    newly_auto_trusted: bool = False


class DenylistInfo(BaseModel):
    version: str
    last_updated: Optional[str] = None
    source: str
    domain_count: int
    last_sync_at: Optional[datetime] = None


class HistorySummary(BaseModel):
    total: int
    by_threat_level: Dict[str, int]
    last_intercepted_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    protection_enabled: bool
    details: Dict[str, Any] = {}

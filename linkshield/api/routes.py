from fastapi import APIRouter, Depends, HTTPException, Request, Response
from typing import List
import logging

from linkshield.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    DenylistInfo,
    DomainFeedback,
    FeedbackRequest,
    FeedbackResponse,
    HistorySummary,
    InterceptedLink,
    InterceptionDecision,
    RateLimitStatus,
    WhitelistRequest,
    WhitelistResponse,
)
from linkshield.services.container import Services
from linkshield.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request) -> Services:
    """Dependency for FastAPI routes"""
    return request.app.state.services


def _require_url(body: AnalyzeRequest) -> str:
    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    return url


# ============================================================================
# INTERCEPTION & ANALYSIS
# ============================================================================

@router.post("/intercept", response_model=InterceptionDecision)
def intercept_link(body: AnalyzeRequest, services: Services = Depends(get_services)):
    return services.interception.intercept(_require_url(body), source=body.source)


@router.post("/analyze", response_model=AnalysisResult)
def analyze_url(body: AnalyzeRequest, services: Services = Depends(get_services)):
    """Local score only: no redirects, no external lookups, nothing recorded"""
    return services.scorer.analyze_url(_require_url(body))


# ============================================================================
# WHITELIST
# ============================================================================

def _whitelist_response(services: Services) -> WhitelistResponse:
    return WhitelistResponse(
        user_domains=services.whitelist.list_user(),
        system_domain_count=len(services.whitelist.system_domains),
    )


@router.get("/whitelist", response_model=WhitelistResponse)
def list_whitelist(services: Services = Depends(get_services)):
    return _whitelist_response(services)


@router.post("/whitelist", response_model=WhitelistResponse, status_code=201)
def add_to_whitelist(body: WhitelistRequest, services: Services = Depends(get_services)):
    try:
        services.whitelist.add(body.domain)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=503, detail="Whitelist storage unavailable")
    return _whitelist_response(services)


@router.get("/whitelist/check")
def check_whitelist(url: str, services: Services = Depends(get_services)):
    return {
        "url": url,
        "user_whitelisted": services.whitelist.is_user_whitelisted(url),
        "system_trusted": services.whitelist.is_system_trusted(url),
    }


@router.delete("/whitelist/{domain}", response_model=WhitelistResponse)
def remove_from_whitelist(domain: str, services: Services = Depends(get_services)):
    try:
        removed = services.whitelist.remove(domain)
    except StorageError:
        raise HTTPException(status_code=503, detail="Whitelist storage unavailable")
    if not removed:
        raise HTTPException(status_code=404, detail=f"{domain} is not in the user whitelist")
    return _whitelist_response(services)


# ============================================================================
# USER FEEDBACK
# ============================================================================

@router.post("/feedback", response_model=FeedbackResponse)
def submit_feedback(body: FeedbackRequest, services: Services = Depends(get_services)):
    """Record a safe/unsafe vote; enough safe votes auto-trust the domain"""
    try:
        return services.feedback.record(body.domain, body.feedback)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=503, detail="Feedback storage unavailable")


@router.get("/feedback", response_model=List[DomainFeedback])
def list_feedback(services: Services = Depends(get_services)):
    return services.feedback.list_all()


# ============================================================================
# HISTORY
# ============================================================================

@router.get("/history", response_model=List[InterceptedLink])
def list_history(limit: int = 50, services: Services = Depends(get_services)):
    return services.history.list(limit=max(1, limit))


@router.get("/history/summary", response_model=HistorySummary)
def history_summary(services: Services = Depends(get_services)):
    return services.history.summary()


@router.delete("/history", status_code=204)
def clear_history(services: Services = Depends(get_services)):
    try:
        services.history.clear()
    except StorageError:
        raise HTTPException(status_code=503, detail="History storage unavailable")
    return Response(status_code=204)


# ============================================================================
# DENYLIST
# ============================================================================

@router.get("/denylist", response_model=DenylistInfo)
def denylist_info(services: Services = Depends(get_services)):
    return services.denylist_sync.info()


@router.post("/denylist/sync", response_model=DenylistInfo)
def sync_denylist(services: Services = Depends(get_services)):
    outcome = services.denylist_sync.sync(force=True)
    if not outcome.ok:
        logger.warning(f"⚠️ Manual denylist sync did not complete: {outcome.error.value}")
        raise HTTPException(status_code=502, detail=f"Denylist sync failed: {outcome.error.value}")
    return services.denylist_sync.info()


# ============================================================================
# BEHAVIORAL PAUSE PIN LIMITER
# ============================================================================

@router.get("/pin/status", response_model=RateLimitStatus)
def pin_status(services: Services = Depends(get_services)):
    return services.pin_limiter.check()


@router.post("/pin/failure", response_model=RateLimitStatus)
def pin_failure(services: Services = Depends(get_services)):
    return services.pin_limiter.record_failure()


@router.post("/pin/success", response_model=RateLimitStatus)
def pin_success(services: Services = Depends(get_services)):
    services.pin_limiter.record_success()
    return services.pin_limiter.check()

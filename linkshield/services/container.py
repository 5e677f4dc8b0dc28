import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from linkshield.config import settings
from linkshield.core.denylist import DenylistStore
from linkshield.core.domain_age import DomainAgeChecker
from linkshield.core.redirect_resolver import RedirectChainResolver
from linkshield.core.risk_scorer import RiskScorer
from linkshield.core.safe_link import SafeLinkHeuristic
from linkshield.core.threat_intel import SafeBrowsingClient
from linkshield.services.denylist_sync import DenylistSyncService
from linkshield.services.feedback_service import FeedbackService
from linkshield.services.history_service import HistoryService
from linkshield.services.interception_service import InterceptionService
from linkshield.services.pin_limiter import PinAttemptLimiter
from linkshield.services.storage import KeyValueStore
from linkshield.services.whitelist_service import WhitelistService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived collaborators shared by all requests"""
    store: KeyValueStore
    denylist: DenylistStore
    scorer: RiskScorer
    whitelist: WhitelistService
    history: HistoryService
    feedback: FeedbackService
    pin_limiter: PinAttemptLimiter
    denylist_sync: DenylistSyncService
    interception: InterceptionService

    def shutdown(self):
        self.denylist_sync.stop()
        self.interception.shutdown()


def build_services(session_factory: Optional[sessionmaker] = None,
                   with_network: bool = True) -> Services:
    """
    Wire the pipeline.

    Args:
        session_factory: SQLAlchemy session factory (app default when omitted)
        with_network: Build the redirect, Safe Browsing and RDAP clients
    """
    store = KeyValueStore(session_factory)
    denylist = DenylistStore()
    scorer = RiskScorer(denylist=denylist)
    whitelist = WhitelistService(store)
    history = HistoryService(store)
    feedback = FeedbackService(store)

    interception = InterceptionService(
        scorer=scorer,
        whitelist=whitelist,
        history=history,
        redirect_resolver=RedirectChainResolver() if with_network else None,
        threat_intel=SafeBrowsingClient() if with_network else None,
        domain_age=DomainAgeChecker() if with_network else None,
        safe_link=SafeLinkHeuristic(scorer, feedback=feedback),
    )

    services = Services(
        store=store,
        denylist=denylist,
        scorer=scorer,
        whitelist=whitelist,
        history=history,
        feedback=feedback,
        pin_limiter=PinAttemptLimiter(store),
        denylist_sync=DenylistSyncService(denylist, store),
        interception=interception,
    )
    logger.info(f"✓ Services ready (protection {'on' if settings.PROTECTION_ENABLED else 'off'})")
    return services

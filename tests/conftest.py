import pytest
from sqlalchemy.orm import sessionmaker

from linkshield.core.denylist import DenylistSnapshot, DenylistStore
from linkshield.core.risk_scorer import RiskScorer
from linkshield.database import build_engine, init_db
from linkshield.schemas import DenylistEntry, ScamCategory
from linkshield.services.storage import KeyValueStore


class FakeClock:
    """Manually advanced clock returning epoch seconds"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def kv_store(session_factory):
    return KeyValueStore(session_factory)


@pytest.fixture
def denylist():
    snapshot = DenylistSnapshot(
        [
            DenylistEntry(domain="known-scam.xyz", category=ScamCategory.FAKE_BANK),
            DenylistEntry(domain="www.lottery-winner.com", category=ScamCategory.LOTTERY_SCAM),
            DenylistEntry(domain="bad.medium.com", category=ScamCategory.PHISHING),
        ],
        version="test-1",
        source="test",
    )
    return DenylistStore(snapshot)


@pytest.fixture
def scorer(denylist):
    return RiskScorer(denylist=denylist)

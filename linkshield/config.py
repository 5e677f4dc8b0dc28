from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    # API Configuration
    APP_NAME: str = "LinkShield"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Persistence (whitelist, history, PIN attempts, cached denylist)
    DATABASE_URL: str = "sqlite:///./linkshield.db"

    # Interception
    PROTECTION_ENABLED: bool = True
    HISTORY_MAX_ENTRIES: int = 50
    FEEDBACK_AUTO_TRUST_THRESHOLD: int = 3

    # Risk Scoring Thresholds
    WARNING_THRESHOLD: int = 35
    DANGER_THRESHOLD: int = 50
    THREAT_INTEL_SCORE_FLOOR: int = 80
    REDIRECT_PENALTY: int = 15
    HEURISTIC_BYPASS_MAX_SCORE: int = 20

    # Redirect resolution
    REDIRECT_MAX_HOPS: int = 10
    REDIRECT_TIMEOUT: float = 5.0
    REDIRECT_TOTAL_BUDGET: float = 10.0

    # Google Safe Browsing v4
    SAFE_BROWSING_API_KEY: Optional[str] = None
    SAFE_BROWSING_URL: str = "https://safebrowsing.googleapis.com/v4/threatMatches:find"
    SAFE_BROWSING_CLIENT_ID: str = "linkshield"
    SAFE_BROWSING_TIMEOUT: float = 5.0
    SAFE_BROWSING_CACHE_SECONDS: int = 300
    SAFE_BROWSING_CACHE_SIZE: int = 500
    SAFE_BROWSING_RATE_LIMIT: int = 60

    # Domain age (RDAP)
    DOMAIN_AGE_ENABLED: bool = True
    DOMAIN_AGE_TIMEOUT: float = 5.0
    DOMAIN_AGE_CACHE_HOURS: int = 24
    DOMAIN_AGE_CACHE_SIZE: int = 200

    # Remote denylist snapshot
    DENYLIST_URL: Optional[str] = None
    DENYLIST_SYNC_ENABLED: bool = True
    DENYLIST_SYNC_HOURS: float = 6
    DENYLIST_TIMEOUT: float = 15.0
    DENYLIST_RETRIES: int = 2

    # Behavioral pause PIN
    PIN_MAX_ATTEMPTS: int = 5
    PIN_LOCKOUT_MINUTES: int = 15
    PIN_COOLDOWN_MINUTES: int = 60

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()

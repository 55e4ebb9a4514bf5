"""
Trust Score Service — Configuration

All settings load from environment variables with safe defaults for development.
In production, set TRUST_ENV=production to enforce required values.
"""
import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        self.ENVIRONMENT = os.getenv("TRUST_ENV", "development")

        # === Database ===
        self.NEO4J_URI = os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.NEO4J_USER = os.getenv("NEO4J_USER", "neo4j")
        self.NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD", "trust_dev_password")
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

        if self.is_production and self.NEO4J_PASSWORD == "trust_dev_password":
            raise RuntimeError("NEO4J_PASSWORD must be set in production. Add it to .env")

        # === Scoring ===
        self.TRUST_AGGREGATION = os.getenv("TRUST_AGGREGATION", "category_mean")
        self.TRUST_ENDORSEMENT_TARGET = int(os.getenv("TRUST_ENDORSEMENT_TARGET", "5"))
        self.TRUST_VERIFICATION_TARGET = int(os.getenv("TRUST_VERIFICATION_TARGET", "10"))
        self.TRUST_RECENCY_DAYS = int(os.getenv("TRUST_RECENCY_DAYS", "30"))
        self.TRUST_RECENT_VERIFICATIONS = int(os.getenv("TRUST_RECENT_VERIFICATIONS", "5"))
        self.TRUST_SUGGESTION_TARGET = int(os.getenv("TRUST_SUGGESTION_TARGET", "70"))
        self.TRUST_HISTORY_LIMIT = int(os.getenv("TRUST_HISTORY_LIMIT", "100"))
        self.TRUST_ENFORCE_BADGE_CRITERIA = _env_bool("TRUST_ENFORCE_BADGE_CRITERIA")
        self.TRUST_SOCIAL_METRIC = os.getenv("TRUST_SOCIAL_METRIC", "none")

        # === Cache ===
        self.CACHE_TTL_SCORE = int(os.getenv("CACHE_TTL_SCORE", "3600"))
        self.LOCK_TTL = int(os.getenv("LOCK_TTL", "30"))

        # === Background refresh ===
        self.TRUST_REFRESH_MAX_AGE_HOURS = int(os.getenv("TRUST_REFRESH_MAX_AGE_HOURS", "24"))
        self.TRUST_REFRESH_BATCH = int(os.getenv("TRUST_REFRESH_BATCH", "200"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

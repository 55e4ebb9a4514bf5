"""Shared fixtures: an in-memory store, a fixed clock and a cache that never connects."""
from datetime import datetime, timedelta, timezone

import pytest

from app.compute.cache import ScoreCache
from app.compute.store import InMemoryTrustStore
from app.trust.weights import EngineConfig

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def complete_profile(profile_id: str = "p-1", age_days: int = 120, **overrides):
    data = {
        "id": profile_id,
        "created_at": days_ago(age_days).isoformat(),
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "bio": "Analyst",
        "avatar_url": "https://example.com/ada.png",
    }
    data.update(overrides)
    return data


def verification(quality: float = 80, status: str = "verified", age_days: float = 10, method: str = "email"):
    return {
        "status": status,
        "method": method,
        "created_at": days_ago(age_days).isoformat(),
        "quality_score": quality,
        "evidence_quality": quality,
        "method_quality": quality,
        "confidence_level": quality,
        "completeness": quality,
    }


def endorsement(endorser_id: str, quality: float = 90, age_days: float = 3):
    return {
        "endorser_id": endorser_id,
        "quality_score": quality,
        "created_at": days_ago(age_days).isoformat(),
    }


def seed_established_profile(store: InMemoryTrustStore, profile_id: str = "p-1"):
    """Ten verified records at quality 80, five fresh endorsements from distinct people."""
    store.add_profile(complete_profile(profile_id))
    for i in range(10):
        store.add_verification(profile_id, verification(
            quality=80, age_days=50 - i, method="email" if i % 2 else "phone",
        ))
    for i in range(5):
        store.add_endorsement(profile_id, endorsement(f"peer-{i}"))


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryTrustStore()


@pytest.fixture
def cache():
    return ScoreCache(enabled=False)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def client(store, cache, config):
    from fastapi.testclient import TestClient

    from app.compute.pipeline import get_cache, get_engine_config, get_store
    from app.main_trust import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_engine_config] = lambda: config
    yield TestClient(app)
    app.dependency_overrides.clear()

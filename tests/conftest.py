"""Shared fixtures for investor CRM tests."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from investor_crm.cache import LocalCache
from investor_crm.config import Settings
from investor_crm.pipeline import InvestorPipeline
from investor_crm.store import InvestorStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture()
def cache_path(tmp_path: Path) -> Path:
    return tmp_path / "investors.json"


@pytest.fixture()
def store(tmp_db: Path) -> InvestorStore:
    return InvestorStore(tmp_db)


@pytest.fixture()
def cache(cache_path: Path) -> LocalCache:
    return LocalCache(cache_path)


@pytest.fixture()
def pipeline(cache: LocalCache, store: InvestorStore) -> InvestorPipeline:
    return InvestorPipeline(cache, store)


@pytest.fixture()
def settings(tmp_db: Path, cache_path: Path) -> Settings:
    """Settings with fake keys pointing at temp storage."""
    return Settings(
        cache_path=cache_path,
        db_path=tmp_db,
        apollo_api_key="test-apollo-key",
        apollo_base_url="https://api.apollo.test/v1",
        anthropic_api_key="",
        gmail_access_token="test-gmail-token",
        gmail_base_url="https://gmail.test/v1/users/me",
    )

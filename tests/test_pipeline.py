"""Tests for the investor pipeline service."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from investor_crm.cache import LocalCache
from investor_crm.config import Settings
from investor_crm.models import EmailMatch, Investor
from investor_crm.pipeline import InvestorNotFoundError, InvestorPipeline
from investor_crm.store import InvestorStore


def test_add_assigns_defaults_and_next_id(pipeline: InvestorPipeline) -> None:
    first = pipeline.add(name="Jane", company="Acme")
    second = pipeline.add(name="Raj", id=99, type="angel", commitment=25_000)
    assert first.id == 1
    assert second.id == 2
    assert first.stage == "identified"
    assert first.priority == "medium"
    assert first.pitch_angle == "neutral-auction"
    assert first.source == "manual"
    assert second.type == "angel"
    assert second.commitment == 0


def test_add_uses_max_id_plus_one(pipeline: InvestorPipeline) -> None:
    pipeline.replace_all([Investor(id=7, name="A"), Investor(id=3, name="B")])
    assert pipeline.add(name="C").id == 8


def test_add_persists_to_both_mirrors(
    pipeline: InvestorPipeline, cache: LocalCache, store: InvestorStore
) -> None:
    inv = pipeline.add(name="Jane")
    assert [i.id for i in cache.load()] == [inv.id]
    assert store.get(inv.id) is not None


def test_get_missing_raises(pipeline: InvestorPipeline) -> None:
    with pytest.raises(InvestorNotFoundError) as excinfo:
        pipeline.get(42)
    assert excinfo.value.investor_id == 42


def test_update_applies_partial_changes(pipeline: InvestorPipeline, store: InvestorStore) -> None:
    inv = pipeline.add(name="Jane", notes="first")
    updated = pipeline.update(inv.id, stage="contacted", id=500)
    assert updated.id == inv.id
    assert updated.stage == "contacted"
    assert updated.notes == "first"
    stored = store.get(inv.id)
    assert stored is not None
    assert stored.stage == "contacted"


def test_log_activity_sets_last_contact(pipeline: InvestorPipeline) -> None:
    inv = pipeline.add(name="Jane")
    when = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)
    updated = pipeline.log_activity(inv.id, "call", "Intro call", now=when)
    assert updated.last_contact == when
    assert [(a.type, a.note, a.date) for a in updated.activities] == [("call", "Intro call", when)]
    assert pipeline.get(inv.id).activities == updated.activities


def test_reassign_stage(pipeline: InvestorPipeline) -> None:
    a = pipeline.add(name="A")
    b = pipeline.add(name="B")
    pipeline.add(name="C")
    moved = pipeline.reassign_stage([a.id, b.id], "outreach-ready")
    assert [i.id for i in moved] == [a.id, b.id]
    assert [i.stage for i in pipeline.investors] == ["outreach-ready", "outreach-ready", "identified"]


def test_delete(pipeline: InvestorPipeline, cache: LocalCache, store: InvestorStore) -> None:
    inv = pipeline.add(name="Jane")
    pipeline.delete(inv.id)
    assert pipeline.investors == []
    assert cache.load() == []
    assert store.get(inv.id) is None
    with pytest.raises(InvestorNotFoundError):
        pipeline.delete(inv.id)


def test_list_investors_filters(pipeline: InvestorPipeline) -> None:
    pipeline.add(name="Zed", type="angel")
    pipeline.add(name="Amy", type="crypto-vc")
    pipeline.add(name="Bo", type="angel")
    assert [i.name for i in pipeline.list_investors(type="angel")] == ["Bo", "Zed"]


def test_hydrate_prefers_remote_rows(cache: LocalCache, store: InvestorStore) -> None:
    cache.save_all([Investor(id=1, name="Local")])
    store.save_all([Investor(id=2, name="Remote")])
    pipeline = InvestorPipeline(cache, store)
    assert [i.name for i in pipeline.investors] == ["Remote"]
    assert [i.name for i in cache.load()] == ["Remote"]


def test_hydrate_falls_back_to_cache(cache: LocalCache, store: InvestorStore) -> None:
    cache.save_all([Investor(id=1, name="Local")])
    pipeline = InvestorPipeline(cache, store)
    assert [i.name for i in pipeline.investors] == ["Local"]


def test_hydrate_from_cache_seeds_empty_row_store(cache: LocalCache, store: InvestorStore) -> None:
    cache.save_all([Investor(id=n, name=f"Investor {n}") for n in range(1, 6)])
    InvestorPipeline(cache, store).add(name="New")

    restarted = InvestorPipeline(cache, store)
    assert len(restarted.investors) == 6
    assert len(store.load()) == 6
    assert len(cache.load()) == 6


def test_hydrate_does_not_seed_unreachable_row_store(cache: LocalCache) -> None:
    cache.save_all([Investor(id=1, name="Local")])
    remote = MagicMock()
    remote.load.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    InvestorPipeline(cache, remote)
    remote.save_all.assert_not_called()


def test_remote_failures_are_logged_not_raised(cache: LocalCache) -> None:
    remote = MagicMock()
    remote.load.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    remote.upsert.side_effect = OperationalError("INSERT", {}, Exception("db down"))
    pipeline = InvestorPipeline(cache, remote)

    inv = pipeline.add(name="Jane")
    assert [i.id for i in cache.load()] == [inv.id]
    remote.upsert.assert_called_once()


def test_without_remote(cache: LocalCache) -> None:
    pipeline = InvestorPipeline(cache)
    pipeline.add(name="Solo")
    assert InvestorPipeline(cache).investors[0].name == "Solo"


def test_from_settings(settings: Settings) -> None:
    pipeline = InvestorPipeline.from_settings(settings)
    pipeline.add(name="Jane")
    assert settings.cache_path.exists()
    assert settings.db_path.exists()


def test_apply_email_matches(pipeline: InvestorPipeline) -> None:
    known = pipeline.add(name="Jane", email="jane@acme.vc")
    blank = pipeline.add(name="Raj")
    sent = datetime(2025, 3, 1, tzinfo=UTC)
    matches = [
        EmailMatch(investor_id=known.id, email="other@acme.vc", subject="Deck", date="", timestamp=sent),
        EmailMatch(
            investor_id=blank.id,
            email="raj@fund.com",
            subject="Intro",
            date="",
            timestamp=sent - timedelta(days=1),
        ),
        EmailMatch(investor_id=999, email="x@y.com", subject="?", date="", timestamp=sent),
    ]
    updated = pipeline.apply_email_matches(matches)

    assert [i.id for i in updated] == [known.id, blank.id]
    jane = pipeline.get(known.id)
    raj = pipeline.get(blank.id)
    assert jane.email == "jane@acme.vc"
    assert raj.email == "raj@fund.com"
    assert raj.last_contact == sent - timedelta(days=1)
    assert jane.activities[-1].type == "email"
    assert jane.activities[-1].note == 'Email sent: "Deck"'

"""Tests for data models and taxonomies."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from investor_crm.config import Settings
from investor_crm.models import (
    INVESTOR_TYPES,
    PIPELINE_STAGES,
    PITCH_ANGLES,
    Activity,
    Investor,
    InvestorType,
    PipelineStage,
    StoreChange,
    stage_info,
    type_info,
)


def test_investor_defaults() -> None:
    inv = Investor(id=1, name="Jane Doe")
    assert inv.type == InvestorType.OTHER
    assert inv.stage == PipelineStage.IDENTIFIED
    assert inv.priority == "medium"
    assert inv.pitch_angle == "neutral-auction"
    assert inv.commitment == 0
    assert inv.email is None
    assert inv.last_contact is None
    assert inv.activities == []
    assert inv.source == "manual"


def test_investor_parses_iso_last_contact() -> None:
    inv = Investor(id=1, name="A", last_contact="2025-02-01T10:00:00Z")
    assert inv.last_contact == datetime(2025, 2, 1, 10, 0, tzinfo=UTC)


def test_investor_rejects_unparseable_date() -> None:
    with pytest.raises(ValidationError):
        Investor(id=1, name="A", last_contact="last tuesday")


@pytest.mark.parametrize("value", [None, ""])
def test_investor_empty_commitment_is_zero(value: object) -> None:
    assert Investor(id=1, name="A", commitment=value).commitment == 0


def test_investor_rejects_non_numeric_commitment() -> None:
    with pytest.raises(ValidationError):
        Investor(id=1, name="A", commitment="lots")


def test_investor_text_fields_coerced() -> None:
    inv = Investor(id=1, name="A", company=None, aum=2_500_000, notes=None)
    assert inv.company == ""
    assert inv.aum == "2500000"
    assert inv.notes == ""


def test_investor_keeps_unknown_stage_and_type() -> None:
    inv = Investor(id=1, name="A", stage="on-hold", type="sovereign-dao")
    assert inv.stage == "on-hold"
    assert inv.type == "sovereign-dao"


def test_investor_json_round_trip_keeps_activities() -> None:
    inv = Investor(
        id=3,
        name="A",
        activities=[Activity(type="call", date=datetime(2025, 1, 2, tzinfo=UTC), note="intro")],
    )
    restored = Investor.model_validate_json(inv.model_dump_json())
    assert restored == inv


def test_activity_defaults_to_now() -> None:
    act = Activity(type="note")
    assert act.note == ""
    assert act.date.tzinfo is not None


def test_taxonomies_cover_enums() -> None:
    assert set(INVESTOR_TYPES) == set(InvestorType)
    assert set(PIPELINE_STAGES) == set(PipelineStage)
    orders = [info.order for info in PIPELINE_STAGES.values()]
    assert orders == sorted(orders)


def test_pitch_angles_declared_order() -> None:
    assert list(PITCH_ANGLES) == [
        "jito-for-sui",
        "order-flow-infrastructure",
        "execution-market-intelligence",
        "neutral-auction",
        "founder-pedigree",
    ]


def test_lookup_helpers_fall_back() -> None:
    assert stage_info("contacted").label == "Contacted"
    assert stage_info("on-hold").label == "Unknown"
    assert type_info("crypto-vc").label == "Crypto/Web3 VC"
    assert type_info("mystery").label == "Other"


def test_store_change_defaults() -> None:
    change = StoreChange(event="DELETE", investor_id=4)
    assert change.record is None
    assert isinstance(change.detected_at, datetime)


def test_settings_reject_bad_gmail_limits(tmp_path) -> None:
    with pytest.raises(ValidationError):
        Settings(db_path=tmp_path / "x.db", gmail_max_messages=0)
    with pytest.raises(ValidationError):
        Settings(db_path=tmp_path / "x.db", gmail_sync_interval_seconds=0)

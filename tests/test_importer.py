"""Tests for the bulk investor importer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from investor_crm.importer import (
    ImportStats,
    InvestorImporter,
    InvestorImportError,
    build_investor,
    load_rows,
)
from investor_crm.models import Investor
from investor_crm.pipeline import InvestorPipeline


@pytest.fixture()
def importer(pipeline: InvestorPipeline) -> InvestorImporter:
    return InvestorImporter(pipeline)


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def test_build_investor_classifies_and_suggests_angle() -> None:
    inv = build_investor({"name": "Acme", "type": "Web3 Venture Fund"}, 5)
    assert inv.id == 5
    assert inv.type == "crypto-vc"
    assert inv.pitch_angle == "jito-for-sui"
    assert inv.source == "import"
    assert inv.stage == "identified"
    assert inv.priority == "medium"


def test_build_investor_keeps_known_values() -> None:
    raw = {
        "firm": "Big Pension",
        "type": "angel",
        "stage": "Contacted",
        "priority": "HIGH",
        "pitchAngle": "order-flow-infrastructure",
        "commitment": "$25,000",
        "lastContact": "2025-01-15T00:00:00Z",
        "_source": "angel",
    }
    inv = build_investor(raw, 1)
    assert inv.name == "Big Pension"
    assert inv.company == "Big Pension"
    assert inv.type == "angel"
    assert inv.stage == "contacted"
    assert inv.priority == "high"
    assert inv.pitch_angle == "order-flow-infrastructure"
    assert inv.commitment == 25_000
    assert inv.last_contact is not None
    assert inv.source == "angel"


def test_build_investor_unknown_stage_defaults() -> None:
    inv = build_investor({"name": "A", "stage": "someday", "priority": "urgent"}, 1)
    assert inv.stage == "identified"
    assert inv.priority == "medium"


def test_build_investor_ignores_bad_commitment() -> None:
    assert build_investor({"name": "A", "commitment": "TBD"}, 1).commitment == 0


def test_build_investor_requires_name() -> None:
    with pytest.raises(ValueError):
        build_investor({"notes": "no name here"}, 1)


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def test_load_rows_json(tmp_path: Path) -> None:
    path = tmp_path / "investors.json"
    path.write_text(json.dumps([{"name": "A"}, {"name": "B"}]))
    assert [r["name"] for r in load_rows(path)] == ["A", "B"]


def test_load_rows_csv(tmp_path: Path) -> None:
    path = tmp_path / "angels.csv"
    path.write_text("name,company,type\nJane,Acme,Angel\nRaj,,\n", encoding="utf-8")
    rows = load_rows(path)
    assert rows[0] == {"name": "Jane", "company": "Acme", "type": "Angel"}
    assert rows[1]["name"] == "Raj"


@pytest.mark.parametrize("content", ["", "{}", "[]", "[1, 2]", "{broken"])
def test_load_rows_rejects_bad_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.json"
    path.write_text(content)
    with pytest.raises(InvestorImportError):
        load_rows(path)


def test_load_rows_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvestorImportError):
        load_rows(tmp_path / "missing.json")


# ---------------------------------------------------------------------------
# Import runs
# ---------------------------------------------------------------------------


def test_import_replaces_collection(importer: InvestorImporter, pipeline: InvestorPipeline) -> None:
    pipeline.add(name="Old")
    stats = importer.import_rows([{"name": "A"}, {"company": "B Capital"}, {"notes": "nameless"}])

    assert isinstance(stats, ImportStats)
    assert stats.created == 2
    assert stats.skipped == 1
    assert stats.total == 3
    assert len(stats.errors) == 1
    assert stats.errors[0].startswith("Row 3:")
    assert [(i.id, i.name) for i in pipeline.investors] == [(1, "A"), (2, "B Capital")]


def test_import_append_continues_ids(importer: InvestorImporter, pipeline: InvestorPipeline) -> None:
    pipeline.replace_all([Investor(id=4, name="Kept")])
    importer.import_rows([{"name": "New"}], replace=False)
    assert [(i.id, i.name) for i in pipeline.investors] == [(4, "Kept"), (5, "New")]


def test_import_with_no_valid_rows_leaves_collection(
    importer: InvestorImporter, pipeline: InvestorPipeline
) -> None:
    pipeline.add(name="Keep me")
    stats = importer.import_rows([{"notes": "x"}])
    assert stats.created == 0
    assert [i.name for i in pipeline.investors] == ["Keep me"]


def test_import_file(importer: InvestorImporter, pipeline: InvestorPipeline, tmp_path: Path) -> None:
    path = tmp_path / "list.json"
    path.write_text(json.dumps([{"name": "Acme University Endowment", "type": ""}]))
    stats = importer.import_file(path)
    assert stats.created == 1
    assert pipeline.investors[0].type == "pension-endowment"

"""Bulk importer for investor lists.

Reads loosely structured rows (a JSON array or a CSV export from a
spreadsheet, AngelList, a fund directory, ...) and turns each one into an
:class:`Investor`. Rows that carry no recognised investor type are run through
:func:`classify_investor_type`, and every imported investor gets a pitch angle
suggested for its type.

By default an import replaces the current collection, matching the
"import file" flow of the dashboard; pass ``replace=False`` to append.
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from investor_crm.engine import classify_investor_type, suggest_pitch_angle
from investor_crm.models import (
    PITCH_ANGLES,
    Investor,
    InvestorType,
    PipelineStage,
    Priority,
)
from investor_crm.pipeline import InvestorPipeline

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {t.value for t in InvestorType}
_KNOWN_STAGES = {s.value for s in PipelineStage}
_KNOWN_PRIORITIES = {p.value for p in Priority}


class InvestorImportError(Exception):
    """Raised when an import file cannot be read as a list of rows."""


@dataclass
class ImportStats:
    """Tracks what was imported during a run."""

    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.skipped


def _text(raw: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def _commitment(raw: Mapping[str, Any]) -> int:
    value = raw.get("commitment")
    if value in (None, ""):
        return 0
    try:
        return int(float(str(value).replace(",", "").replace("$", "")))
    except ValueError:
        logger.warning("Ignoring non-numeric commitment %r", value)
        return 0


def build_investor(raw: Mapping[str, Any], investor_id: int) -> Investor:
    """Map one loose row to an investor with id *investor_id*.

    Raises:
        ValueError: the row has no usable name.
    """
    name = _text(raw, "name", "company", "firm")
    if not name:
        raise ValueError("row has no name, company or firm")

    declared = _text(raw, "type").lower()
    investor_type = declared if declared in _KNOWN_TYPES else classify_investor_type(raw)

    stage = _text(raw, "stage").lower()
    priority = _text(raw, "priority").lower()
    pitch_angle = _text(raw, "pitch_angle", "pitchAngle")

    return Investor(
        id=investor_id,
        name=name,
        company=_text(raw, "company", "firm"),
        email=_text(raw, "email") or None,
        type=investor_type,
        stage=stage if stage in _KNOWN_STAGES else PipelineStage.IDENTIFIED,
        priority=priority if priority in _KNOWN_PRIORITIES else Priority.MEDIUM,
        pitch_angle=pitch_angle if pitch_angle in PITCH_ANGLES else suggest_pitch_angle(investor_type),
        commitment=_commitment(raw),
        notes=_text(raw, "notes", "description"),
        next_action=_text(raw, "next_action", "nextAction"),
        last_contact=_text(raw, "last_contact", "lastContact") or None,
        source=_text(raw, "source", "_source") or "import",
        website=_text(raw, "website"),
        twitter=_text(raw, "twitter"),
        location=_text(raw, "location"),
        focus=_text(raw, "focus"),
        aum=_text(raw, "aum"),
        activities=raw.get("activities") or [],
    )


def load_rows(path: Path | str) -> list[dict[str, Any]]:
    """Read rows from a ``.json`` array or a ``.csv`` file with a header."""
    path = Path(path)
    try:
        if path.suffix.lower() == ".csv":
            with path.open(newline="", encoding="utf-8-sig") as fh:
                rows: Any = list(csv.DictReader(fh))
        else:
            rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, csv.Error) as exc:
        raise InvestorImportError(f"Error reading {path}: {exc}") from exc

    if not isinstance(rows, list) or not rows:
        raise InvestorImportError(f"{path} does not contain a non-empty list of investors")
    if not all(isinstance(r, dict) for r in rows):
        raise InvestorImportError(f"{path} contains entries that are not objects")
    return rows


class InvestorImporter:
    """Import investor rows into a pipeline.

    Usage::

        importer = InvestorImporter(pipeline)
        stats = importer.import_file("angels.csv", replace=False)
        print(stats.created, stats.errors)
    """

    def __init__(self, pipeline: InvestorPipeline) -> None:
        self._pipeline = pipeline

    def import_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        *,
        replace: bool = True,
    ) -> ImportStats:
        stats = ImportStats()
        existing = [] if replace else self._pipeline.investors
        next_id = max((i.id for i in existing), default=0) + 1
        built: list[Investor] = []

        for idx, raw in enumerate(rows, start=1):
            try:
                investor = build_investor(raw, next_id)
            except (ValueError, ValidationError) as exc:
                msg = f"Row {idx}: {exc}"
                logger.warning("Skipping import %s", msg)
                stats.errors.append(msg)
                stats.skipped += 1
                continue
            built.append(investor)
            next_id += 1
            stats.created += 1

        if not built:
            logger.warning("No importable rows; collection left unchanged")
            return stats
        self._pipeline.replace_all([*existing, *built])
        logger.info("Imported %d investors (%d skipped)", stats.created, stats.skipped)
        return stats

    def import_file(self, path: Path | str, *, replace: bool = True) -> ImportStats:
        return self.import_rows(load_rows(path), replace=replace)

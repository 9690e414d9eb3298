"""Investor pipeline service.

Owns the in-memory investor collection and mirrors every mutation into the
local JSON cache and, when configured, the remote row store. The scoring
engine never touches storage; callers read the collection from here and pass
it to :mod:`investor_crm.engine`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from investor_crm.cache import LocalCache
from investor_crm.config import Settings
from investor_crm.engine import filter_investors
from investor_crm.models import (
    DEFAULT_PITCH_ANGLE,
    Activity,
    EmailMatch,
    Investor,
    InvestorType,
    PipelineStage,
    Priority,
)
from investor_crm.store import InvestorStore, PersistencePort

logger = logging.getLogger(__name__)


class InvestorNotFoundError(KeyError):
    """Raised when an investor id is not in the collection."""

    def __init__(self, investor_id: int) -> None:
        self.investor_id = investor_id
        super().__init__(f"Investor {investor_id} not found")


class InvestorPipeline:
    """The investor collection plus its persistence mirrors.

    Usage::

        pipeline = InvestorPipeline.from_settings(settings)
        inv = pipeline.add(name="Jane Doe", company="Acme Ventures")
        pipeline.log_activity(inv.id, "email", "Sent intro")
    """

    def __init__(
        self,
        cache: PersistencePort,
        remote: PersistencePort | None = None,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._investors: list[Investor] = []
        self.hydrate()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> InvestorPipeline:
        settings = settings or Settings()  # type: ignore[call-arg]
        remote = InvestorStore(settings.db_path) if settings.remote_enabled else None
        return cls(LocalCache(settings.cache_path), remote)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def hydrate(self) -> list[Investor]:
        """Reload the collection; remote rows win over the local cache."""
        remote_rows: list[Investor] = []
        remote_ok = False
        if self._remote is not None:
            try:
                remote_rows = self._remote.load()
                remote_ok = True
            except SQLAlchemyError:
                logger.exception("Error fetching investors from row store")
        if remote_rows:
            self._investors = remote_rows
            self._cache.save_all(remote_rows)
            logger.info("Hydrated %d investors from row store", len(remote_rows))
        else:
            self._investors = self._cache.load()
            logger.info("Hydrated %d investors from local cache", len(self._investors))
            # An empty row store is seeded so later upserts don't shadow the cache.
            if self._remote is not None and remote_ok and self._investors:
                try:
                    self._remote.save_all(self._investors)
                except SQLAlchemyError:
                    logger.exception("Error seeding row store from local cache")
        return list(self._investors)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def investors(self) -> list[Investor]:
        return list(self._investors)

    def get(self, investor_id: int) -> Investor:
        for investor in self._investors:
            if investor.id == investor_id:
                return investor
        raise InvestorNotFoundError(investor_id)

    def list_investors(self, **filters: Any) -> list[Investor]:
        """Filter and sort the collection; see :func:`engine.filter_investors`."""
        return filter_investors(self._investors, **filters)

    def next_id(self) -> int:
        return max((i.id for i in self._investors), default=0) + 1

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, **fields: Any) -> Investor:
        """Create an investor from add-form fields and assign the next id."""
        fields.pop("id", None)
        investor = Investor(
            **{
                "type": InvestorType.OTHER,
                "stage": PipelineStage.IDENTIFIED,
                "priority": Priority.MEDIUM,
                "pitch_angle": DEFAULT_PITCH_ANGLE,
                "source": "manual",
                **fields,
                "id": self.next_id(),
                "commitment": 0,
                "last_contact": None,
                "activities": [],
            }
        )
        self._investors.append(investor)
        self._persist(investor)
        logger.info("Added investor %d (%s)", investor.id, investor.name)
        return investor

    def update(self, investor_id: int, **changes: Any) -> Investor:
        """Apply a partial edit. The id cannot change."""
        current = self.get(investor_id)
        changes.pop("id", None)
        data = current.model_dump()
        data.update(changes)
        updated = Investor.model_validate(data)
        self._replace(updated)
        return updated

    def log_activity(
        self,
        investor_id: int,
        activity_type: str,
        note: str = "",
        *,
        now: datetime | None = None,
    ) -> Investor:
        """Append an activity and mark it as the latest contact."""
        when = now or datetime.now(UTC)
        current = self.get(investor_id)
        updated = current.model_copy(
            update={
                "activities": [
                    *current.activities,
                    Activity(type=activity_type, date=when, note=note),
                ],
                "last_contact": when,
            }
        )
        self._replace(updated)
        return updated

    def reassign_stage(self, investor_ids: Iterable[int], stage: str) -> list[Investor]:
        """Move several investors to *stage* at once."""
        moved = []
        for investor_id in investor_ids:
            moved.append(self.update(investor_id, stage=stage))
        logger.info("Moved %d investors to %s", len(moved), stage)
        return moved

    def delete(self, investor_id: int) -> None:
        self.get(investor_id)
        self._investors = [i for i in self._investors if i.id != investor_id]
        self._cache.delete(investor_id)
        if self._remote is not None:
            try:
                self._remote.delete(investor_id)
            except SQLAlchemyError:
                logger.exception("Error deleting investor %d from row store", investor_id)
        logger.info("Deleted investor %d", investor_id)

    def replace_all(self, investors: Iterable[Investor]) -> list[Investor]:
        """Replace the whole collection (bulk import)."""
        self._investors = list(investors)
        self._cache.save_all(self._investors)
        if self._remote is not None:
            try:
                self._remote.save_all(self._investors)
            except SQLAlchemyError:
                logger.exception("Error bulk saving investors to row store")
        return list(self._investors)

    def apply_email_matches(self, matches: Iterable[EmailMatch]) -> list[Investor]:
        """Record sent emails found by the Gmail sync."""
        updated: list[Investor] = []
        for match in matches:
            try:
                current = self.get(match.investor_id)
            except InvestorNotFoundError:
                logger.warning("Email match for unknown investor %d", match.investor_id)
                continue
            investor = current.model_copy(
                update={
                    "email": current.email or match.email,
                    "last_contact": match.timestamp,
                    "activities": [
                        *current.activities,
                        Activity(
                            type="email",
                            date=match.timestamp,
                            note=f'Email sent: "{match.subject}"',
                        ),
                    ],
                }
            )
            self._replace(investor)
            updated.append(investor)
        return updated

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _replace(self, investor: Investor) -> None:
        self._investors = [investor if i.id == investor.id else i for i in self._investors]
        self._persist(investor)

    def _persist(self, investor: Investor) -> None:
        self._cache.upsert(investor)
        if self._remote is not None:
            try:
                self._remote.upsert(investor)
            except SQLAlchemyError:
                logger.exception("Error upserting investor %d to row store", investor.id)

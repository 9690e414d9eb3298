"""SQLAlchemy-backed row store for investor records.

This is the remote mirror of the investor collection. Each investor is one
row; activities are kept as a JSON array and ``last_contact`` as ISO text so
the table reads the same from any SQL client.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import Column, Integer, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from investor_crm.models import Investor, StoreChange

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[StoreChange], None]
Unsubscribe = Callable[[], None]


class PersistencePort(Protocol):
    """What the pipeline needs from a storage backend."""

    def load(self) -> list[Investor]: ...

    def save_all(self, investors: Iterable[Investor]) -> None: ...

    def upsert(self, investor: Investor) -> Investor: ...

    def delete(self, investor_id: int) -> bool: ...

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe: ...


class ChangeFeed:
    """In-process fan-out of :class:`StoreChange` events to subscribers."""

    def __init__(self) -> None:
        self._callbacks: list[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Register *callback*; the returned function removes it again."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _emit(self, change: StoreChange) -> None:
        logger.debug("Store change: %s investor %d", change.event, change.investor_id)
        for cb in list(self._callbacks):
            try:
                cb(change)
            except Exception:
                logger.exception("Error in store change callback")


# ---------------------------------------------------------------------------
# SQLAlchemy ORM model
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


class InvestorRow(Base):
    __tablename__ = "investors"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, index=True)
    company = Column(String, default="")
    email = Column(String, nullable=True)
    type = Column(String, default="other", index=True)
    stage = Column(String, default="identified", index=True)
    priority = Column(String, default="medium")
    pitch_angle = Column(String, default="neutral-auction")
    commitment = Column(Integer, default=0)
    notes = Column(Text, default="")
    next_action = Column(Text, default="")
    last_contact = Column(String, nullable=True)
    source = Column(String, default="manual")
    website = Column(String, default="")
    twitter = Column(String, default="")
    location = Column(String, default="")
    focus = Column(String, default="")
    aum = Column(String, default="")
    activities = Column(Text, default="[]")


def to_row(investor: Investor) -> dict[str, Any]:
    """Flatten an investor into column values."""
    data = investor.model_dump(mode="json", include=set(Investor.model_fields))
    data["commitment"] = investor.commitment or 0
    data["activities"] = json.dumps(data.get("activities") or [])
    return data


def from_row(row: InvestorRow) -> Investor:
    return Investor(
        id=row.id,
        name=row.name,
        company=row.company or "",
        email=row.email,
        type=row.type or "other",
        stage=row.stage or "identified",
        priority=row.priority or "medium",
        pitch_angle=row.pitch_angle or "neutral-auction",
        commitment=row.commitment or 0,
        notes=row.notes or "",
        next_action=row.next_action or "",
        last_contact=row.last_contact or None,
        source=row.source or "",
        website=row.website or "",
        twitter=row.twitter or "",
        location=row.location or "",
        focus=row.focus or "",
        aum=row.aum or "",
        activities=json.loads(row.activities) if row.activities else [],
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class InvestorStore(ChangeFeed):
    """Row store for the investor collection.

    *db_path* is either a filesystem path (opened as SQLite) or a full
    SQLAlchemy URL.
    """

    def __init__(self, db_path: Path | str = "investor_crm.db") -> None:
        super().__init__()
        url = str(db_path) if "://" in str(db_path) else f"sqlite:///{db_path}"
        self._engine = create_engine(url, echo=False)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine)

    def _session(self) -> Session:
        return self._session_factory()

    def load(self) -> list[Investor]:
        with self._session() as session:
            rows = session.query(InvestorRow).order_by(InvestorRow.name).all()
            return [from_row(r) for r in rows]

    def get(self, investor_id: int) -> Investor | None:
        with self._session() as session:
            row = session.get(InvestorRow, investor_id)
            return from_row(row) if row else None

    def upsert(self, investor: Investor) -> Investor:
        with self._session() as session:
            event = self._write(session, investor)
            session.commit()
        self._emit(StoreChange(event=event, investor_id=investor.id, record=investor))
        return investor

    def save_all(self, investors: Iterable[Investor]) -> None:
        """Make the table hold exactly *investors*."""
        records = list(investors)
        keep = {inv.id for inv in records}
        changes: list[StoreChange] = []
        with self._session() as session:
            for row in session.query(InvestorRow).all():
                if row.id not in keep:
                    session.delete(row)
                    changes.append(StoreChange(event="DELETE", investor_id=row.id))
            for inv in records:
                event = self._write(session, inv)
                changes.append(StoreChange(event=event, investor_id=inv.id, record=inv))
            session.commit()
        logger.info("Saved %d investors to row store", len(records))
        for change in changes:
            self._emit(change)

    def delete(self, investor_id: int) -> bool:
        with self._session() as session:
            row = session.get(InvestorRow, investor_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
        self._emit(StoreChange(event="DELETE", investor_id=investor_id))
        return True

    @staticmethod
    def _write(session: Session, investor: Investor) -> str:
        data = to_row(investor)
        row = session.get(InvestorRow, investor.id)
        if row:
            for key, value in data.items():
                if key != "id" and hasattr(row, key):
                    setattr(row, key, value)
            return "UPDATE"
        session.add(InvestorRow(**{k: v for k, v in data.items() if hasattr(InvestorRow, k)}))
        return "INSERT"

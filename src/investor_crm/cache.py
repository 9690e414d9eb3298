"""Local JSON cache of the investor collection."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from investor_crm.models import Investor, StoreChange
from investor_crm.store import ChangeFeed

logger = logging.getLogger(__name__)


class LocalCache(ChangeFeed):
    """Keeps the whole collection as one JSON array on disk."""

    def __init__(self, path: Path | str = "investors.json") -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Investor]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache %s: %s", self._path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring cache %s: expected a JSON array", self._path)
            return []

        investors: list[Investor] = []
        for item in data:
            try:
                investors.append(Investor.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid cached record: %s", exc)
        return investors

    def save_all(self, investors: Iterable[Investor]) -> None:
        payload = [
            inv.model_dump(mode="json", include=set(Investor.model_fields)) for inv in investors
        ]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)

    def upsert(self, investor: Investor) -> Investor:
        investors = self.load()
        for idx, existing in enumerate(investors):
            if existing.id == investor.id:
                investors[idx] = investor
                event = "UPDATE"
                break
        else:
            investors.append(investor)
            event = "INSERT"
        self.save_all(investors)
        self._emit(StoreChange(event=event, investor_id=investor.id, record=investor))
        return investor

    def delete(self, investor_id: int) -> bool:
        investors = self.load()
        remaining = [i for i in investors if i.id != investor_id]
        if len(remaining) == len(investors):
            return False
        self.save_all(remaining)
        self._emit(StoreChange(event="DELETE", investor_id=investor_id))
        return True

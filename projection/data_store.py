"""Historical actuals and transition overrides, keyed by version id."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Protocol

from projection.errors import DataStoreError
from projection.inputs import HistoricalActuals, TransitionYear


class HistoricalDataStore(Protocol):
    async def historical_actuals(self, version_id: str) -> list[HistoricalActuals]: ...

    async def transition_years(self, version_id: str) -> list[TransitionYear]: ...


class InMemoryDataStore:
    """Records held in dicts. Unknown versions have no records."""

    def __init__(self):
        self._historical: dict[str, list[HistoricalActuals]] = {}
        self._transition: dict[str, list[TransitionYear]] = {}

    def put_historical(self, version_id: str, rows: Iterable[HistoricalActuals]) -> None:
        self._historical[version_id] = sorted(rows, key=lambda r: r.year)

    def put_transition(self, version_id: str, rows: Iterable[TransitionYear]) -> None:
        self._transition[version_id] = sorted(rows, key=lambda r: r.year)

    async def historical_actuals(self, version_id: str) -> list[HistoricalActuals]:
        return list(self._historical.get(version_id, ()))

    async def transition_years(self, version_id: str) -> list[TransitionYear]:
        return list(self._transition.get(version_id, ()))


class JsonDataStore:
    """One JSON document:

        {"versions": {"<id>": {"historical": [...], "transition": [...]}}}

    Historical rows may be model rows (revenue, staffCost, ...) or full
    statement rows (totalRevenues, salaries, ...).
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _version(self, version_id: str) -> dict:
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DataStoreError(f"{self.path}: invalid JSON ({e})") from e
        return data.get("versions", {}).get(version_id, {})

    async def historical_actuals(self, version_id: str) -> list[HistoricalActuals]:
        rows = self._version(version_id).get("historical", [])
        return [
            HistoricalActuals.from_statement(r) if "totalRevenues" in r else HistoricalActuals.from_dict(r)
            for r in rows
        ]

    async def transition_years(self, version_id: str) -> list[TransitionYear]:
        return [TransitionYear.from_dict(r) for r in self._version(version_id).get("transition", [])]

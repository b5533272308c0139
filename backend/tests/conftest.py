"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap for import paths plus an in-memory stand-in for
    the motor database used by survivor service, cache and router tests.
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


_MISSING = object()


def _get_path(doc: dict, path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(doc: dict, path: str, value: Any) -> None:
    parts = path.split(".")
    current = doc
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _match(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        value = _get_path(doc, key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            if "$exists" in cond and (value is not _MISSING) != bool(cond["$exists"]):
                return False
            if "$in" in cond and value not in cond["$in"]:
                return False
            continue
        if value is _MISSING or value != cond:
            return False
    return True


class _Cursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the survivor code paths."""

    def __init__(self):
        self.docs: list[dict] = []
        self.fail_ids: set[Any] = set()
        self.indexes: list[Any] = []

    def _check(self, query: dict) -> None:
        if query.get("_id") in self.fail_ids:
            raise RuntimeError(f"read failed for {query.get('_id')}")

    async def find_one(self, query, projection=None):
        self._check(query)
        for doc in self.docs:
            if _match(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        query = query or {}
        return _Cursor([copy.deepcopy(d) for d in self.docs if _match(d, query)])

    async def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if _match(doc, query):
                for path, value in update.get("$set", {}).items():
                    _set_path(doc, path, copy.deepcopy(value))
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
        for path, value in {**update.get("$setOnInsert", {}), **update.get("$set", {})}.items():
            _set_path(doc, path, copy.deepcopy(value))
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc.get("_id"))

    async def delete_one(self, query):
        for idx, doc in enumerate(self.docs):
            if _match(doc, query):
                del self.docs[idx]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc.get("_id"))

    async def create_index(self, keys, **kwargs):
        self.indexes.append(keys)
        return str(keys)


class FakeDb:
    def __init__(self):
        self._collections: dict[str, FakeCollection] = {}

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection()
        return self._collections[name]

    async def command(self, name: str):
        return {"ok": 1.0}


def member(name: str | None = None, *, enabled: bool = True, status: str | None = "active", email: str = "") -> dict:
    survivor: dict[str, Any] = {"enabled": enabled}
    if status is not None:
        survivor["status"] = status
    doc: dict[str, Any] = {"participation": {"survivor": survivor}}
    if name:
        doc["displayName"] = name
    if email:
        doc["email"] = email
    return doc


def final(home: str, away: str, winner: str | None) -> dict:
    return {"h": home, "a": away, "status": "STATUS_FINAL", "winner": winner}


def seed_pool(db: FakeDb, pool_id: str, members: dict[str, dict]) -> None:
    db.pool_rosters.docs.append({"_id": pool_id, "members": copy.deepcopy(members)})


def seed_picks(db: FakeDb, participant_id: str, picks: dict[int, str]) -> None:
    db.survivor_picks.docs.append({
        "_id": participant_id,
        "picks": {str(week): {"team": team} for week, team in picks.items()},
    })


def seed_week(db: FakeDb, week: int, games: dict[str, dict]) -> None:
    db.game_results.docs.append({"_id": week, "games": games})


def seed_status(db: FakeDb, participant_id: str, **fields) -> None:
    db.survivor_status.docs.append({"_id": participant_id, **fields})


@pytest.fixture
def fake_db(monkeypatch):
    import app.database as database

    db = FakeDb()
    monkeypatch.setattr(database, "db", db, raising=False)
    return db

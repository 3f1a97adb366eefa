"""
backend/tests/fake_mongo.py

Purpose:
    In-memory stand-in for the Motor collections the match store, audit log
    and worker state touch. Covers the query operators those modules use:
    equality (None matches missing), dotted paths, $ne, $in, $gte, $lte,
    $exists and top-level $or; updates support $set and $unset.
"""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

_MISSING = object()


def _get_path(doc: dict, dotted: str) -> Any:
    cur: Any = doc
    for part in dotted.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _match_value(actual: Any, expected: Any) -> bool:
    if isinstance(expected, dict) and expected and all(str(k).startswith("$") for k in expected):
        for op, arg in expected.items():
            value = None if actual is _MISSING else actual
            if op == "$ne":
                if value == arg:
                    return False
            elif op == "$in":
                if value not in arg:
                    return False
            elif op == "$gte":
                if actual is _MISSING or value is None or value < arg:
                    return False
            elif op == "$lte":
                if actual is _MISSING or value is None or value > arg:
                    return False
            elif op == "$exists":
                if (actual is not _MISSING) != bool(arg):
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if expected is None:
        return actual is _MISSING or actual is None
    return actual is not _MISSING and actual == expected


def matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in expected):
                return False
            continue
        if not _match_value(_get_path(doc, key), expected):
            return False
    return True


def _project(doc: dict, projection: dict | None) -> dict:
    out = copy.deepcopy(doc)
    if not projection:
        return out
    keep = {k for k, v in projection.items() if v}
    return {k: v for k, v in out.items() if k in keep or k == "_id"}


def _apply_update(doc: dict, update: dict) -> None:
    for dotted, value in (update.get("$set") or {}).items():
        parts = dotted.split(".")
        node = doc
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = copy.deepcopy(value)
    for dotted in (update.get("$unset") or {}):
        parts = dotted.split(".")
        node = doc
        for part in parts[:-1]:
            node = node.get(part, {})
        node.pop(parts[-1], None)


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs
        self._skip = 0
        self._limit: int | None = None

    def sort(self, key, direction: int = 1):
        keys = key if isinstance(key, list) else [(key, direction)]
        for field, order in reversed(keys):
            self._docs.sort(
                key=lambda d: (
                    (0, "") if _get_path(d, field) in (_MISSING, None) else (1, _get_path(d, field))
                ),
                reverse=order < 0,
            )
        return self

    def skip(self, value: int):
        self._skip = int(value)
        return self

    def limit(self, value: int):
        self._limit = int(value) if value else None
        return self

    async def to_list(self, length: int | None = None):
        docs = self._docs[self._skip:]
        for cap in (self._limit, length):
            if cap:
                docs = docs[:cap]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self, docs: list[dict] | None = None, unique_sparse: tuple[str, ...] = ()):
        self.docs: list[dict] = [copy.deepcopy(d) for d in (docs or [])]
        self.unique_sparse = unique_sparse
        self.fail_on_insert: set[str] = set()
        self.fail_on_update: set[Any] = set()
        self.writes = 0

    def _check_unique(self, candidate: dict, ignore_id: Any = None) -> None:
        for field in self.unique_sparse:
            value = candidate.get(field, _MISSING)
            # Sparse indexes skip missing fields only; an explicit null is indexed.
            if value is _MISSING:
                continue
            for doc in self.docs:
                if doc.get("_id") != ignore_id and doc.get(field, _MISSING) == value:
                    raise DuplicateKeyError(f"E11000 duplicate key error {field}: {value}")

    def find(self, query: dict | None = None, projection: dict | None = None) -> FakeCursor:
        query = query or {}
        return FakeCursor([_project(d, projection) for d in self.docs if matches(d, query)])

    async def find_one(self, query: dict | None = None, projection: dict | None = None):
        query = query or {}
        for doc in self.docs:
            if matches(doc, query):
                return _project(doc, projection)
        return None

    async def count_documents(self, query: dict) -> int:
        return sum(1 for d in self.docs if matches(d, query))

    async def insert_one(self, doc: dict):
        if str(doc.get("external_id")) in self.fail_on_insert:
            raise RuntimeError(f"simulated insert failure for {doc.get('external_id')}")
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.docs.append(stored)
        self.writes += 1
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one_and_update(self, query: dict, update: dict, return_document=ReturnDocument.BEFORE, **_kw):
        for doc in self.docs:
            if not matches(doc, query):
                continue
            if doc.get("_id") in self.fail_on_update:
                raise RuntimeError(f"simulated update failure for {doc.get('_id')}")
            before = copy.deepcopy(doc)
            candidate = copy.deepcopy(doc)
            _apply_update(candidate, update)
            self._check_unique(candidate, ignore_id=doc.get("_id"))
            _apply_update(doc, update)
            self.writes += 1
            return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before
        return None

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        for doc in self.docs:
            if matches(doc, query):
                _apply_update(doc, update)
                self.writes += 1
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            new_doc = {k: v for k, v in query.items() if not k.startswith("$")}
            new_doc.setdefault("_id", ObjectId())
            _apply_update(new_doc, update)
            self.docs.append(new_doc)
            self.writes += 1
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=new_doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)


def make_fake_db(**collections: FakeCollection) -> SimpleNamespace:
    db = SimpleNamespace(
        football_matches=FakeCollection(unique_sparse=("external_id",)),
        audit_logs=FakeCollection(),
        worker_state=FakeCollection(),
        admin_users=FakeCollection(),
    )
    for name, collection in collections.items():
        setattr(db, name, collection)
    return db

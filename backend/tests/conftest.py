"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for backend and root-level tool
    modules, plus an in-memory database fixture wired into app.database.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_TESTS_DIR), str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


@pytest.fixture
def fake_db(monkeypatch):
    import app.database as _db
    from fake_mongo import make_fake_db

    db = make_fake_db()
    monkeypatch.setattr(_db, "db", db, raising=False)
    return db

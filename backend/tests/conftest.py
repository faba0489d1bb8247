# File: backend/tests/conftest.py
# Version: v0.2.0
"""
Test bootstrap:
- put the project root on sys.path so 'backend.*' imports work without an install,
- point DB_URL and the editable-parameter directory at a temp dir before the
  app modules read their settings,
- create the tables once per session.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]  # repo root (../.. from this file)
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_TMP = Path(tempfile.mkdtemp(prefix="oligoforge-tests-"))
os.environ.setdefault("DB_URL", f"sqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("OLIGOFORGE_CONFIG_DIR", str(_TMP / "config"))
os.environ.setdefault("FIDELITY_DATA_DIR", str(_TMP / "fidelity"))


@pytest.fixture(scope="session", autouse=True)
def _database():
    from backend.app.db.session import init_db

    init_db()
    yield


@pytest.fixture
def rng():
    import random

    return random.Random(20240917)

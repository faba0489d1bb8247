# File: backend/tests/test_api_health.py
# Version: v0.2.1
"""
Basic smoke test for health endpoints.
"""
from fastapi.testclient import TestClient

from backend.app.main import app


def test_health():
    client = TestClient(app)
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["app"] == "OligoForge"


def test_healthz():
    client = TestClient(app)
    assert client.get("/healthz").json() == {"status": "ok"}


def test_lifespan_creates_tables():
    from sqlalchemy import inspect

    from backend.app.db.session import engine

    assert not app.router.on_startup
    with TestClient(app) as client:
        assert client.get("/healthz").status_code == 200
    tables = set(inspect(engine).get_table_names())
    assert {"primer_runs", "assembly_runs"} <= tables

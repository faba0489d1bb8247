# File: backend/tests/test_analysis_api.py
# Version: v0.2.0
"""
Tests for the analysis API (stems, fold, Tm, equilibrium).

These tests use httpx.AsyncClient over ASGITransport to hit the FastAPI app in-memory.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from backend.app.main import app

pytestmark = pytest.mark.asyncio


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_stems_basic_ok():
    async with _client() as ac:
        payload = {"sequence": "ACGT" * 10, "min_stem_len": 2, "merge_max_gap": 2}
        resp = await ac.post("/api/v1/analysis/stems", json=payload)
        assert resp.status_code == 200
        data = resp.json()
        assert data["length"] == 40
        assert isinstance(data["regions"], list)
        for r in data["regions"]:
            assert r["kind"] == "stems"
            assert 0 <= r["start"] <= r["end"] <= data["length"]


async def test_stems_validation():
    async with _client() as ac:
        bad_payload = {"sequence": "", "min_stem_len": 0, "merge_max_gap": -1}
        resp = await ac.post("/api/v1/analysis/stems", json=bad_payload)
        assert resp.status_code == 422


async def test_fold_hairpin_and_dimer():
    async with _client() as ac:
        r1 = await ac.post("/api/v1/analysis/fold", json={"sequence": "GCGCGCAAAAGCGCGC"})
        assert r1.status_code == 200
        assert r1.json()["kind"] == "hairpin"
        assert len(r1.json()["dotBracket"]) == 16
        r2 = await ac.post("/api/v1/analysis/fold", json={"sequence": "ACGTTGCAAGGC", "partner": "GCCTTGCAACGT"})
        assert r2.status_code == 200
        assert r2.json()["kind"] == "dimer"
        assert r2.json()["dg"] < 0


async def test_tm_endpoint_and_invalid_base():
    async with _client() as ac:
        ok = await ac.post("/api/v1/analysis/tm", json={"sequence": "ATGCATGCATGCATGCATGC"})
        assert ok.status_code == 200
        assert 55.0 <= ok.json()["tm"] <= 65.0
        assert ok.json()["parameterSet"] == "santalucia2004"
        bad = await ac.post("/api/v1/analysis/tm", json={"sequence": "ATGCXXATGC"})
        assert bad.status_code == 400
        assert bad.json()["error"] == "InvalidInput"


async def test_equilibrium_endpoint():
    template = "ATGCATGCATGCATGCATGC" + "GATTACAGGCT" * 6 + "TCGAGCTCAAGCTTGCCTAG"
    async with _client() as ac:
        resp = await ac.post("/api/v1/analysis/equilibrium", json={
            "forward": "ATGCATGCATGCATGCATGC",
            "reverse": "CTAGGCAAGCTTGAGCTCGA",
            "template": template,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert 0.0 <= data["efficiency"] <= 1.0
        for fr in data["fractions"].values():
            assert sum(fr.values()) == pytest.approx(1.0, abs=1e-6)

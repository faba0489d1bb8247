# File: backend/tests/test_assembly_api.py
# Version: v0.1.0
"""
Assembly endpoints: enzymes, fidelity of a supplied set, optimize (persisted
runs) and stored optimizer parameters.
"""
import random

from fastapi.testclient import TestClient

from backend.app.main import app

client = TestClient(app)


def _construct(length: int, seed: int) -> str:
    r = random.Random(seed)
    seq = "".join(r.choice("ACGT") for _ in range(length))
    for site in ("GGTCTC", "GAGACC"):
        seq = seq.replace(site, "GGTATC")
    return seq


def test_enzyme_catalog():
    body = client.get("/api/v1/assembly/enzymes").json()
    names = {e["name"] for e in body["enzymes"]}
    assert {"BsaI", "BsmBI", "Esp3I", "BbsI", "SapI"} <= names
    sapi = next(e for e in body["enzymes"] if e["name"] == "SapI")
    assert sapi["overhangLength"] == 3
    assert body["default"] == "BsaI"
    assert body["standardSites"]


def test_fidelity_report():
    r = client.post("/api/v1/assembly/fidelity", json={"overhangs": ["GGAG", "AATG", "GCTT", "CGCT"]})
    assert r.status_code == 200
    body = r.json()
    assert 0.0 < body["fidelity"]["assemblyFidelity"] <= 1.0
    assert body["expectedSuccess"]["coloniesToScreen"] >= 3


def test_fidelity_rejects_wrong_length():
    r = client.post("/api/v1/assembly/fidelity", json={"overhangs": ["GGAGA"], "enzyme": "BsaI"})
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidInput"


def test_fidelity_unknown_enzyme_is_400():
    r = client.post("/api/v1/assembly/fidelity", json={"overhangs": ["GGAG"], "enzyme": "EcoRI"})
    assert r.status_code == 400


def test_parameters_roundtrip():
    params = client.get("/api/v1/assembly/parameters").json()
    assert params["constraints"]["minFragmentSize"] >= 1
    params["maxIterations"] = 500
    r = client.put("/api/v1/assembly/parameters", json=params)
    assert r.status_code == 200
    assert client.get("/api/v1/assembly/parameters").json()["maxIterations"] == 500


def test_optimize_records_a_run():
    payload = {
        "sequence": _construct(1200, seed=8),
        "fragmentCount": 4,
        "algorithm": "greedy",
        "constraints": {"minFragmentSize": 150, "searchRadius": 30},
        "seed": 3,
    }
    r = client.post("/api/v1/assembly/optimize", json=payload)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["runId"]
    assert body["algorithm"] == "greedy"
    assert len(body["overhangs"]) == 3
    assert len(body["fragments"]) == 4
    assert body["partial"] is False

    detail = client.get(f"/api/v1/assembly/runs/{body['runId']}").json()
    assert detail["fragmentCount"] == 4
    assert detail["result"]["overhangs"] == body["overhangs"]
    assert any(run["id"] == body["runId"] for run in client.get("/api/v1/assembly/runs").json())


def test_optimize_infeasible_is_partial_not_error():
    payload = {
        "sequence": _construct(600, seed=2),
        "fragmentCount": 3,
        "constraints": {"minFragmentSize": 50, "searchRadius": 20, "forbiddenRegions": [[350, 460]]},
    }
    r = client.post("/api/v1/assembly/optimize", json=payload)
    assert r.status_code == 200
    body = r.json()
    assert body["partial"] is True
    assert body["warning"]


def test_optimize_validation():
    r = client.post("/api/v1/assembly/optimize", json={"sequence": "ACGT" * 50, "fragmentCount": 1})
    assert r.status_code == 422

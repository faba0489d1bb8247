# File: backend/tests/test_primers_api.py
# Version: v0.1.0
"""
Primer endpoints end-to-end: parameters, design (persisted runs), scoring and
error mapping.
"""
from fastapi.testclient import TestClient

from backend.app.main import app

client = TestClient(app)
TEMPLATE = "ATGC" * 9
DESIGN_PARAMS = {"forwardLength": 20, "targetTm": 60.0, "shortlist": 2, "maxPairs": 2}


def test_parameters_roundtrip():
    r = client.get("/api/v1/primers/parameters")
    assert r.status_code == 200
    params = r.json()
    assert params["primerLengthMin"] <= params["primerLengthMax"]

    params["maxPairs"] = 3
    r = client.put("/api/v1/primers/parameters", json=params)
    assert r.status_code == 200
    assert client.get("/api/v1/primers/parameters").json()["maxPairs"] == 3


def test_parameters_reject_inverted_bounds():
    r = client.put("/api/v1/primers/parameters", json={"primerLengthMin": 30, "primerLengthMax": 20})
    assert r.status_code == 422


def test_design_records_a_run():
    r = client.post("/api/v1/primers/design", json={"sequence": TEMPLATE, "start": 0, "parameters": DESIGN_PARAMS})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["runId"]
    best = body["pairs"][0]
    assert best["forward"]["sequence"] == "ATGCATGCATGCATGCATGC"
    assert 0 <= best["composite"] <= 100
    assert best["score"]["tier"] == best["tier"]

    listed = client.get("/api/v1/primers/runs").json()
    assert any(run["id"] == body["runId"] for run in listed)

    detail = client.get(f"/api/v1/primers/runs/{body['runId']}").json()
    assert detail["status"] == "completed"
    assert detail["result"]["pairs"][0]["forward"]["sequence"] == best["forward"]["sequence"]


def test_design_failure_is_400_and_recorded():
    params = dict(DESIGN_PARAMS, primerGCMin=80.0, primerGCMax=100.0)
    r = client.post("/api/v1/primers/design", json={"sequence": TEMPLATE, "parameters": params})
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidInput"
    assert r.json()["detail"].startswith("No valid primer pair")
    assert any(run["status"] == "failed" for run in client.get("/api/v1/primers/runs").json())


def test_design_rejects_non_dna():
    r = client.post("/api/v1/primers/design", json={"sequence": "ACGTXXACGTACGTACGTACGTACGT"})
    assert r.status_code == 400


def test_unknown_run_is_404():
    assert client.get("/api/v1/primers/runs/does-not-exist").status_code == 404


def test_score_pair_without_template():
    r = client.post("/api/v1/primers/score", json={
        "forward": "AGCGGATAACAATTTCACACAGG",
        "reverse": "GTAAAACGACGGCCAGT",
        "includeEquilibrium": False,
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert 0 <= body["composite"] <= 100
    assert body["preset"] == "amplification"
    assert "tmDiff" in body["scores"]


def test_score_unknown_preset_is_400():
    r = client.post("/api/v1/primers/score", json={
        "forward": "AGCGGATAACAATTTCACACAGG", "reverse": "GTAAAACGACGGCCAGT", "preset": "nope",
    })
    assert r.status_code == 400

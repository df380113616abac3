import asyncio

import pytest
from fastapi.testclient import TestClient

from portprobe import store as scan_store
from portprobe.config import Settings
from portprobe.main import app
from portprobe.models import PortRange, build_config
from portprobe.scan_core import run_fleet_scan
from portprobe.store import new_scan, store


@pytest.fixture
def client(fake_network, monkeypatch):
    net = fake_network({"10.0.0.1": {22, 443}})
    monkeypatch.setattr(app.state, "connector", net)
    monkeypatch.setattr(app.state, "settings", Settings(timeout_ms=200))
    with TestClient(app) as c:
        yield c
    store.clear()


def test_fleet_scan_runs_to_completion(client) -> None:
    resp = client.post("/scan/fleet", json={"targets": ["10.0.0.1", "10.0.0.2"], "ports": "20-25,443"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "in_progress"
    scan_id = body["scan_id"]

    assert client.get(f"/scan/{scan_id}/status").json() == {"scan_id": scan_id, "status": "done"}
    results = client.get(f"/scan/{scan_id}/results").json()
    assert results["status"] == "done"
    assert results["report"] == {"results": [{"target": "10.0.0.1", "proto": "tcp", "ports": [22, 443]}]}


def test_fleet_scan_include_empty(client) -> None:
    resp = client.post(
        "/scan/fleet",
        json={"targets": ["10.0.0.1", "10.0.0.2"], "scope": "quick", "include_empty": True},
    )
    scan_id = resp.json()["scan_id"]
    report = client.get(f"/scan/{scan_id}/results").json()["report"]
    assert [r["target"] for r in report["results"]] == ["10.0.0.1", "10.0.0.2"]
    assert report["results"][1]["ports"] == []


@pytest.mark.parametrize(
    "body",
    [
        {"targets": [], "ports": "22"},
        {"targets": ["10.0.0.1"], "ports": "0-10"},
        {"targets": ["10.0.0.1"], "scope": "galaxy"},
        {"targets": ["10.0.0.1"], "ports": "22", "scope": "quick"},
        {"targets": ["10.0.0.1"], "per_connect_timeout_ms": 0},
    ],
)
def test_fleet_scan_rejects_bad_requests(client, body) -> None:
    resp = client.post("/scan/fleet", json=body)
    assert resp.status_code == 422
    assert store == {}


def test_unknown_scan(client) -> None:
    assert client.get("/scan/nope/status").json() == {"scan_id": "nope", "status": "not_found"}
    assert client.get("/scan/nope/results").json()["report"] is None
    assert client.post("/scan/nope/cancel").json()["status"] == "not_found"


def test_cancel_after_completion_keeps_result(client) -> None:
    scan_id = client.post("/scan/fleet", json={"targets": ["10.0.0.1"], "ports": "22"}).json()["scan_id"]
    assert client.post(f"/scan/{scan_id}/cancel").json()["status"] == "done"
    assert client.get(f"/scan/{scan_id}/results").json()["report"]["results"][0]["ports"] == [22]


def test_scopes_listing(client) -> None:
    assert client.get("/scan/scopes").json() == {"scopes": {"quick": [1, 1024], "wide": [1, 49152]}}


def test_cancelled_background_scan_has_no_report(fake_network) -> None:
    config = build_config(port_range=PortRange(low=1, high=10))

    async def run():
        entry = new_scan("s1")
        entry["cancel"].set()
        await run_fleet_scan("s1", ["10.0.0.1"], config, store, connector=fake_network())

    try:
        asyncio.run(run())
        assert store["s1"]["status"] == "cancelled"
        assert store["s1"]["report"] is None
    finally:
        store.clear()


def test_failed_background_scan_records_error() -> None:
    config = build_config(port_range=PortRange(low=1, high=2))

    async def broken(host, port):
        raise RuntimeError("connector exploded")

    async def run():
        new_scan("s2")
        await run_fleet_scan("s2", ["10.0.0.1"], config, store, connector=broken)

    try:
        asyncio.run(run())
        assert store["s2"]["status"] == "failed"
        assert "exploded" in store["s2"]["error"]
    finally:
        store.clear()


def test_scan_cancelled_mid_flight_is_not_marked_done(fake_network) -> None:
    config = build_config(port_range=PortRange(low=20, high=25))
    net = fake_network({"10.0.0.1": {22}})

    async def run():
        entry = new_scan("s3")

        async def connector(host, port):
            entry["cancel"].set()
            return await net(host, port)

        await run_fleet_scan("s3", ["10.0.0.1"], config, store, connector=connector)

    try:
        asyncio.run(run())
        assert store["s3"]["status"] == "cancelled"
        assert store["s3"]["report"] is None
    finally:
        store.clear()


def test_store_evicts_oldest_finished_scans(monkeypatch) -> None:
    monkeypatch.setattr(scan_store, "MAX_FINISHED_SCANS", 2)
    try:
        for scan_id in ("old", "mid", "new"):
            new_scan(scan_id)["status"] = "done"
        new_scan("running")
        new_scan("latest")
        assert list(store) == ["mid", "new", "running", "latest"]
    finally:
        store.clear()

"""Startup probes and dependency status."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from catalog import main
from catalog.core.errors import UnavailableError
from catalog.core.health import DependencyStatus, probe_dependency


def test_probe_succeeds_after_retries():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("not yet")

    assert probe_dependency("database", flaky, attempts=5, delay_seconds=0) is True
    assert len(calls) == 3


def test_probe_gives_up_after_fixed_attempts():
    calls = []

    def down():
        calls.append(1)
        raise ConnectionError("down")

    assert probe_dependency("storage", down, attempts=3, delay_seconds=0) is False
    assert len(calls) == 3


def test_dependency_status():
    status = DependencyStatus(database=True, storage=False)

    assert status.ready is False
    status.require_database()
    with pytest.raises(UnavailableError) as exc_info:
        status.require_storage()
    assert exc_info.value.status_code == 503
    assert status.as_dict() == {"database": "connected", "storage": "unavailable"}


def test_lifespan_probes_run_off_the_event_loop(monkeypatch):
    probed = {}

    def fake_probe(name, check, attempts=5, delay_seconds=2.0):
        try:
            asyncio.get_running_loop()
            probed[name] = "event loop"
        except RuntimeError:
            probed[name] = "worker thread"
        return name == "database"

    monkeypatch.setattr(main, "probe_dependency", fake_probe)

    with TestClient(main.app):
        status = main.app.state.dependency_status

    assert probed == {"database": "worker thread", "storage": "worker thread"}
    assert status == DependencyStatus(database=True, storage=False)


def test_cors_origins_come_from_profile():
    origin = main.profile.cors_origins[0]

    response = TestClient(main.app).options(
        "/api/products",
        headers={"Origin": origin, "Access-Control-Request-Method": "GET"},
    )

    assert response.headers["access-control-allow-origin"] == origin

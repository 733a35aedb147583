from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families


AUTH_HEADER = {"Authorization": "Bearer test-token"}


def _read_metric(
    client: TestClient,
    metric: str,
    labels: Optional[Dict[str, str]] = None,
) -> float:
    response = client.get("/metrics")
    response.raise_for_status()
    text = response.text
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name != metric:
                continue
            sample_labels = dict(sample.labels)
            if labels is None and not sample_labels:
                return float(sample.value)
            if labels is not None and sample_labels == labels:
                return float(sample.value)
    return 0.0


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PASSPORT_API_TOKEN", "test-token")
    from passport.config import clear_config_cache

    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def client() -> TestClient:
    from passport.db import init_db
    from passport.main import create_app

    init_db()
    test_client = TestClient(create_app())
    try:
        yield test_client
    finally:
        test_client.close()


def test_role_resolution_counter_tracks_tier(client):
    labels = {"tier": "no_access"}
    before = _read_metric(client, "passport_role_resolutions_total", labels)

    response = client.post(
        "/v1/oidc/resolve",
        json={"identity": {"id": 1}, "client_id": "nobody"},
        headers=AUTH_HEADER,
    )
    assert response.status_code == 200

    after = _read_metric(client, "passport_role_resolutions_total", labels)
    assert after == before + 1


def test_secret_verification_counter(client):
    labels = {"result": "unknown_client"}
    before = _read_metric(client, "passport_client_secret_verifications_total", labels)

    client.post(
        "/v1/oidc/clients/verify",
        json={"client_id": "ghost", "client_secret": "x"},
        headers=AUTH_HEADER,
    )

    after = _read_metric(client, "passport_client_secret_verifications_total", labels)
    assert after == before + 1


def test_admin_action_counter(client):
    labels = {"action": "create_client"}
    before = _read_metric(client, "passport_admin_actions_total", labels)

    response = client.post(
        "/v1/admin/clients",
        json={"client_id": "acme", "name": "Acme", "redirect_uri": "https://acme.example/cb"},
        headers=AUTH_HEADER,
    )
    assert response.status_code == 201

    after = _read_metric(client, "passport_admin_actions_total", labels)
    assert after == before + 1


def test_request_counter_collapses_numeric_ids(client):
    labels = {"method": "GET", "path": "/v1/admin/clients/:id", "status": "404"}
    before = _read_metric(client, "api_requests_total", labels)

    client.get("/v1/admin/clients/12345", headers=AUTH_HEADER)

    after = _read_metric(client, "api_requests_total", labels)
    assert after == before + 1

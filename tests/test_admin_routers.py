from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

AUTH_HEADER = {"Authorization": "Bearer test-token"}


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PASSPORT_API_TOKEN", "test-token")
    monkeypatch.delenv("PASSPORT_ADMIN_API", raising=False)
    monkeypatch.delenv("PASSPORT_ROLE_CATALOG", raising=False)
    from passport.config import clear_config_cache

    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture()
def app():
    from passport.db import init_db
    from passport.main import create_app

    init_db()
    return create_app()


@pytest.fixture()
def client(app):
    test_client = TestClient(app, raise_server_exceptions=False)
    try:
        yield test_client
    finally:
        test_client.close()


def _create_client(client, client_id="acme", **extra):
    payload = {
        "client_id": client_id,
        "name": client_id.title(),
        "redirect_uri": f"https://{client_id}.example.org/callback",
    }
    payload.update(extra)
    response = client.post("/v1/admin/clients", json=payload, headers=AUTH_HEADER)
    assert response.status_code == 201, response.text
    return response.json()


def test_missing_token_is_rejected(client):
    response = client.get("/v1/admin/clients")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.headers["content-type"].startswith("application/problem+json")


def test_wrong_token_is_forbidden(client):
    response = client.get("/v1/admin/clients", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 403


def test_unconfigured_token_disables_api(client, monkeypatch):
    from passport.config import clear_config_cache

    monkeypatch.delenv("PASSPORT_API_TOKEN")
    clear_config_cache()

    response = client.get("/v1/admin/clients", headers=AUTH_HEADER)

    assert response.status_code == 503


def test_client_lifecycle(client):
    created = _create_client(client)
    assert len(created["client_secret"]) >= 32
    assert "secret_hash" not in created

    listing = client.get("/v1/admin/clients", headers=AUTH_HEADER).json()
    assert listing["total"] == 1
    assert listing["items"][0]["client_id"] == "acme"
    assert "client_secret" not in listing["items"][0]

    patched = client.patch(
        f"/v1/admin/clients/{created['id']}",
        json={"name": "Acme Corp", "regenerate_secret": True},
        headers=AUTH_HEADER,
    )
    assert patched.status_code == 200
    body = patched.json()
    assert body["name"] == "Acme Corp"
    assert body["client_secret"] and body["client_secret"] != created["client_secret"]

    fetched = client.get(f"/v1/admin/clients/{created['id']}", headers=AUTH_HEADER)
    assert fetched.json()["name"] == "Acme Corp"


def test_duplicate_client_returns_conflict(client):
    _create_client(client)

    response = client.post(
        "/v1/admin/clients",
        json={"client_id": "acme", "name": "Other", "redirect_uri": "https://x.example/cb"},
        headers=AUTH_HEADER,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate"


def test_unknown_client_returns_not_found(client):
    response = client.get("/v1/admin/clients/999", headers=AUTH_HEADER)

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == "not_found"
    assert payload["details"] == {"entity": "client", "key": "999"}


def test_inactive_clients_hidden_unless_requested(client):
    _create_client(client, "acme")
    _create_client(client, "legacy", is_active=False)

    active = client.get("/v1/admin/clients", headers=AUTH_HEADER).json()
    everything = client.get(
        "/v1/admin/clients", params={"include_inactive": True}, headers=AUTH_HEADER
    ).json()

    assert [c["client_id"] for c in active["items"]] == ["acme"]
    assert everything["total"] == 2


def test_role_mapping_endpoints(client):
    _create_client(client)
    coarse = client.put(
        "/v1/admin/role-mappings/coarse-role",
        json={"client_id": "acme", "coarse_role_key": "administrator", "role": "administrator"},
        headers=AUTH_HEADER,
    )
    assert coarse.status_code == 200
    assert coarse.json()["priority"] == 5

    entity = client.put(
        "/v1/admin/role-mappings/entity-class",
        json={"client_id": "acme", "entity_class_id": 3, "role": "author", "priority": 2},
        headers=AUTH_HEADER,
    )
    assert entity.status_code == 200
    assert entity.json()["entity_class_id"] == "3"

    listing = client.get(
        "/v1/admin/role-mappings",
        params={"client_id": "acme", "kind": "entity_class"},
        headers=AUTH_HEADER,
    ).json()
    assert [m["id"] for m in listing["items"]] == [entity.json()["id"]]

    deleted = client.delete(f"/v1/admin/role-mappings/{coarse.json()['id']}", headers=AUTH_HEADER)
    assert deleted.status_code == 204
    missing = client.delete(f"/v1/admin/role-mappings/{coarse.json()['id']}", headers=AUTH_HEADER)
    assert missing.status_code == 404


def test_unknown_role_is_a_validation_error(client):
    _create_client(client)
    response = client.put(
        "/v1/admin/role-mappings/coarse-role",
        json={"client_id": "acme", "coarse_role_key": "editor", "role": "overlord"},
        headers=AUTH_HEADER,
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "validation_error"
    assert payload["details"] == {"field": "role"}


def test_role_options(client):
    response = client.get("/v1/admin/role-mappings/roles", headers=AUTH_HEADER)

    assert response.status_code == 200
    options = response.json()
    assert options[-1] == {"value": "no-access", "label": "No Access"}
    assert {"value": "editor", "label": "Editor"} in options


def test_role_override_endpoints(client):
    _create_client(client)
    created = client.post(
        "/v1/admin/role-overrides",
        json={"client_id": "acme", "primary_identity_id": 42, "role": "editor"},
        headers=AUTH_HEADER,
    )
    assert created.status_code == 201
    override = created.json()
    assert override["primary_identity_id"] == "42"

    duplicate = client.post(
        "/v1/admin/role-overrides",
        json={"client_id": "acme", "primary_identity_id": "42", "role": "author"},
        headers=AUTH_HEADER,
    )
    assert duplicate.status_code == 409

    updated = client.patch(
        f"/v1/admin/role-overrides/{override['id']}",
        json={"role": "author"},
        headers=AUTH_HEADER,
    )
    assert updated.json()["role"] == "author"

    listing = client.get(
        "/v1/admin/role-overrides", params={"client_id": "acme"}, headers=AUTH_HEADER
    ).json()
    assert listing["total"] == 1

    deleted = client.delete(f"/v1/admin/role-overrides/{override['id']}", headers=AUTH_HEADER)
    assert deleted.status_code == 204


@pytest.mark.parametrize(
    "path, method, payload",
    [
        (
            "/v1/admin/role-mappings/coarse-role",
            "put",
            {"client_id": "ghost", "coarse_role_key": "subscriber", "role": "administrator"},
        ),
        (
            "/v1/admin/role-mappings/entity-class",
            "put",
            {"client_id": "ghost", "entity_class_id": 3, "role": "author"},
        ),
        (
            "/v1/admin/role-overrides",
            "post",
            {"client_id": "ghost", "primary_identity_id": 42, "role": "editor"},
        ),
    ],
)
def test_rules_for_unregistered_client_are_rejected(client, path, method, payload):
    response = client.request(method.upper(), path, json=payload, headers=AUTH_HEADER)

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
    assert client.get("/v1/admin/role-mappings", headers=AUTH_HEADER).json()["total"] == 0
    assert client.get("/v1/admin/role-overrides", headers=AUTH_HEADER).json()["total"] == 0


def test_registering_client_later_does_not_revive_rejected_rules(client):
    client.put(
        "/v1/admin/role-mappings/coarse-role",
        json={"client_id": "ghost", "coarse_role_key": "subscriber", "role": "administrator"},
        headers=AUTH_HEADER,
    )
    _create_client(client, "ghost")

    response = client.post(
        "/v1/oidc/resolve",
        json={"client_id": "ghost", "identity": {"id": 7, "coarse_roles": ["subscriber"]}},
        headers=AUTH_HEADER,
    )

    assert response.status_code == 200
    assert response.json()["role"] == "no-access"


@pytest.mark.parametrize(
    "references",
    [{}, {"primary_identity_id": 1, "secondary_entity_id": 2}],
)
def test_override_requires_exactly_one_reference(client, references):
    payload = {"client_id": "acme", "role": "editor", **references}

    response = client.post("/v1/admin/role-overrides", json=payload, headers=AUTH_HEADER)

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_delete_client_cascades(client):
    created = _create_client(client)
    client.put(
        "/v1/admin/role-mappings/coarse-role",
        json={"client_id": "acme", "coarse_role_key": "editor", "role": "editor"},
        headers=AUTH_HEADER,
    )
    client.post(
        "/v1/admin/role-overrides",
        json={"client_id": "acme", "secondary_entity_id": 9, "role": "author"},
        headers=AUTH_HEADER,
    )

    response = client.delete(f"/v1/admin/clients/{created['id']}", headers=AUTH_HEADER)

    assert response.status_code == 200
    assert response.json() == {"client_id": "acme", "mappings_deleted": 1, "overrides_deleted": 1}
    mappings = client.get("/v1/admin/role-mappings", headers=AUTH_HEADER).json()
    assert mappings["total"] == 0


def test_cascade_failure_is_retriable(app, client, monkeypatch):
    created = _create_client(client)
    services = app.state.services

    def _boom(client_id, *, session=None):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(services.mappings, "delete_all_for_client", _boom)

    response = client.delete(f"/v1/admin/clients/{created['id']}", headers=AUTH_HEADER)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["details"]["retriable"] is True
    assert client.get(f"/v1/admin/clients/{created['id']}", headers=AUTH_HEADER).status_code == 200


def test_admin_routes_hidden_when_flag_disabled(monkeypatch):
    from passport.config import clear_config_cache
    from passport.db import init_db
    from passport.main import create_app

    monkeypatch.setenv("PASSPORT_ADMIN_API", "0")
    clear_config_cache()
    init_db()

    with TestClient(create_app()) as test_client:
        assert test_client.get("/v1/admin/clients", headers=AUTH_HEADER).status_code == 404
        assert test_client.get("/v1/oidc/clients", headers=AUTH_HEADER).status_code == 200

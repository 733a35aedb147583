from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    from passport.config import clear_config_cache

    clear_config_cache()
    yield
    clear_config_cache()


def _identity(**overrides):
    from passport.resolution import Identity

    values = {
        "primary_id": 42,
        "coarse_roles": {"editor"},
        "email": "anna@example.org",
        "given_name": "Anna",
        "family_name": "Dijk",
        "display_name": "anna",
    }
    values.update(overrides)
    return Identity(**values)


def test_profile_claims_prefer_entity_data():
    from passport.claims import profile_claims
    from passport.resolution import SecondaryEntity

    entity = SecondaryEntity(
        id=900,
        given_name="Annemarie",
        family_name_prefix="van",
        family_name="Dijk",
        nickname="Annie",
    )

    assert profile_claims(_identity(), entity) == {
        "given_name": "Annemarie",
        "family_name": "van Dijk",
        "nickname": "Annie",
        "email": "anna@example.org",
    }


def test_profile_claims_fall_back_to_identity():
    from passport.claims import profile_claims
    from passport.resolution import SecondaryEntity

    claims = profile_claims(_identity(), SecondaryEntity(id=900))

    assert claims["given_name"] == "Anna"
    assert claims["family_name"] == "Dijk"
    assert claims["nickname"] == "anna"


def test_build_merges_existing_claims_and_user_role():
    from tests.factories import make_services

    services = make_services()
    services.mappings.set_coarse_role_mapping("acme", "editor", "editor")

    claims = services.claims.build(_identity(), "acme", {"sub": "42", "given_name": "stale"})

    assert claims["sub"] == "42"
    assert claims["given_name"] == "Anna"
    assert claims["user_role"] == "editor"


def test_build_without_client_id_grants_no_access():
    from tests.factories import make_services

    services = make_services()
    services.mappings.set_coarse_role_mapping("acme", "editor", "editor")

    assert services.claims.build(_identity(), None)["user_role"] == "no-access"


def test_build_uses_secondary_entity_for_profile():
    from passport.resolution import SecondaryEntity
    from passport.secondary import StaticSecondaryIdentitySystem
    from tests.factories import make_services

    secondary = StaticSecondaryIdentitySystem()
    secondary.link(42, SecondaryEntity(id=900, nickname="Annie"), class_ids=[3])
    services = make_services(secondary=secondary)
    services.mappings.set_entity_class_mapping("acme", 3, "author")

    claims = services.claims.build(_identity(), "acme")

    assert claims["nickname"] == "Annie"
    assert claims["user_role"] == "author"


def test_build_tolerates_unavailable_secondary_system():
    from passport.exceptions import SecondarySystemUnavailable
    from tests.factories import make_services

    class _Unavailable:
        def lookup_entity_for_identity(self, primary_identity_id):
            raise SecondarySystemUnavailable()

        def entity_class_ids_for(self, entity_id):
            raise SecondarySystemUnavailable()

    services = make_services(secondary=_Unavailable())
    services.mappings.set_coarse_role_mapping("acme", "editor", "editor")

    claims = services.claims.build(_identity(), "acme")

    assert claims["given_name"] == "Anna"
    assert claims["user_role"] == "editor"


def test_build_emits_groups_from_secondary_entity():
    from passport.resolution import SecondaryEntity, SecondaryGroup
    from passport.secondary import StaticSecondaryIdentitySystem
    from tests.factories import make_services

    secondary = StaticSecondaryIdentitySystem()
    secondary.link(
        42,
        SecondaryEntity(id=900),
        groups=[
            SecondaryGroup("Harmonie", "orchestra", ("flute", "piccolo")),
            SecondaryGroup("Saxophone Quartet", "ensemble"),
        ],
    )
    services = make_services(secondary=secondary)

    claims = services.claims.build(_identity(), "acme")

    assert claims["groups"] == [
        {"name": "Harmonie", "type": "orchestra", "functions": ["flute", "piccolo"]},
        {"name": "Saxophone Quartet", "type": "ensemble", "functions": []},
    ]


@pytest.mark.parametrize("linked", [False, True])
def test_groups_claim_is_empty_without_entity_or_secondary(linked):
    from passport.resolution import SecondaryEntity, SecondaryGroup
    from passport.secondary import StaticSecondaryIdentitySystem
    from tests.factories import make_services

    if linked:
        secondary = StaticSecondaryIdentitySystem()
        secondary.link(7, SecondaryEntity(id=1), groups=[SecondaryGroup("Harmonie")])
        services = make_services(secondary=secondary)
    else:
        services = make_services()

    assert services.claims.build(_identity(), "acme")["groups"] == []


def test_groups_claim_is_empty_for_bridges_without_groups():
    from passport.exceptions import SecondarySystemUnavailable
    from passport.resolution import SecondaryEntity
    from tests.factories import make_services

    class _NoGroups:
        def lookup_entity_for_identity(self, primary_identity_id):
            return SecondaryEntity(id=900)

        def entity_class_ids_for(self, entity_id):
            return set()

    class _GroupsUnavailable(_NoGroups):
        def groups_for(self, entity_id):
            raise SecondarySystemUnavailable()

    for secondary in (_NoGroups(), _GroupsUnavailable()):
        services = make_services(secondary=secondary)
        assert services.claims.build(_identity(), "acme")["groups"] == []


def test_build_looks_up_the_entity_once():
    from passport.resolution import SecondaryEntity
    from tests.factories import make_services

    class _Counting:
        def __init__(self):
            self.lookups = 0

        def lookup_entity_for_identity(self, primary_identity_id):
            self.lookups += 1
            return SecondaryEntity(id=900, nickname="Annie")

        def entity_class_ids_for(self, entity_id):
            return {"3"}

    secondary = _Counting()
    services = make_services(secondary=secondary)
    services.mappings.set_entity_class_mapping("acme", 3, "author")

    claims = services.claims.build(_identity(), "acme")

    assert secondary.lookups == 1
    assert claims["nickname"] == "Annie"
    assert claims["user_role"] == "author"

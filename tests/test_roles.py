from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.syspath_prepend(str(Path(__file__).resolve().parents[1]))
    monkeypatch.delenv("PASSPORT_ROLE_CATALOG", raising=False)
    from passport.config import clear_config_cache

    clear_config_cache()
    yield
    clear_config_cache()


def test_default_catalog_contains_no_access_sentinel():
    from passport.roles import NO_ACCESS_ROLE, load_role_catalog

    catalog = load_role_catalog()

    assert NO_ACCESS_ROLE in catalog
    assert catalog.no_access == "no-access"
    assert catalog.roles[0] == "administrator"
    assert catalog.roles[-1] == NO_ACCESS_ROLE


def test_catalog_always_appends_sentinel_and_drops_duplicates():
    from passport.roles import RoleCatalog

    catalog = RoleCatalog(["member", " member ", "", "board"])

    assert catalog.roles == ("member", "board", "no-access")
    assert len(catalog) == 3


def test_catalog_from_environment(monkeypatch):
    from passport.config import clear_config_cache
    from passport.roles import load_role_catalog

    monkeypatch.setenv("PASSPORT_ROLE_CATALOG", "member, board\nvip")
    clear_config_cache()

    catalog = load_role_catalog()

    assert list(catalog) == ["member", "board", "vip", "no-access"]


def test_validate_rejects_unknown_and_blank_roles():
    from passport.exceptions import ValidationError
    from passport.roles import load_role_catalog

    catalog = load_role_catalog()

    assert catalog.validate(" editor ") == "editor"
    with pytest.raises(ValidationError) as excinfo:
        catalog.validate("superuser")
    assert excinfo.value.field == "role"
    assert excinfo.value.details() == {"field": "role"}
    with pytest.raises(ValidationError):
        catalog.validate("   ")
    with pytest.raises(ValidationError):
        catalog.validate(None)


def test_labels_and_options():
    from passport.roles import RoleCatalog

    catalog = RoleCatalog(["board-member", "editor"])

    assert catalog.label("no-access") == "No Access"
    assert catalog.label("board-member") == "Board Member"
    assert catalog.options() == [
        ("board-member", "Board Member"),
        ("editor", "Editor"),
        ("no-access", "No Access"),
    ]
    assert catalog.is_no_access("no-access")
    assert not catalog.is_valid("admin")


def test_default_coarse_role_priorities():
    from passport.roles import default_coarse_role_priority

    assert default_coarse_role_priority("administrator") == 5
    assert default_coarse_role_priority("subscriber") == 1
    assert default_coarse_role_priority("custom") == 0

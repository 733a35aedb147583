"""Development fixtures for the client registry and role mappings.

Usage:
  DATABASE_URL=... python -m passport.admin_cli test-data insert
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete
from sqlmodel import select

from .db import transaction
from .models import Client, PassportSetting, RoleMapping, RoleOverride
from .roles import DEFAULT_COARSE_ROLE_PRIORITIES
from .services import PassportServices


logger = logging.getLogger(__name__)

TEST_DATA_MARKER = "test_data_inserted"

TEST_CLIENTS = (
    {
        "client_id": "dev-client",
        "name": "Local Development Client",
        "secret": "dev-secret-12345",
        "redirect_uri": "http://localhost:8888/oauth/callback",
    },
    {
        "client_id": "board-app",
        "name": "Board App",
        "secret": "test-secret-board",
        "redirect_uri": "https://board.example.org/oauth/callback",
    },
)

# Coarse role key -> role granted in every fixture client.
TEST_COARSE_ROLE_MAPPINGS = {
    "administrator": "administrator",
    "editor": "editor",
    "author": "author",
    "contributor": "contributor",
    "subscriber": "subscriber",
}


@dataclass(frozen=True)
class SeedResult:
    skipped: bool
    reason: Optional[str] = None
    clients_inserted: int = 0
    mappings_inserted: int = 0


@dataclass(frozen=True)
class SeedStatus:
    inserted_at: Optional[datetime]
    client_count: int


def _read_marker(services: PassportServices) -> Optional[PassportSetting]:
    with transaction(services.engine) as session:
        return session.get(PassportSetting, TEST_DATA_MARKER)


def _write_marker(services: PassportServices) -> None:
    now = datetime.now(timezone.utc)
    with transaction(services.engine) as session:
        setting = session.get(PassportSetting, TEST_DATA_MARKER)
        if setting is None:
            setting = PassportSetting(key=TEST_DATA_MARKER)
        setting.value = {"inserted_at": now.isoformat()}
        setting.updated_at = now
        session.add(setting)


def insert_test_data(services: PassportServices, *, force: bool = False) -> SeedResult:
    """Insert the fixture clients and their default coarse-role mappings."""

    if not force and _read_marker(services) is not None:
        return SeedResult(skipped=True, reason="already_inserted")
    if not force and services.clients.count() > 0:
        # Data is present without a marker; record it so later runs skip quickly.
        _write_marker(services)
        return SeedResult(skipped=True, reason="clients_exist")

    clients_inserted = 0
    for fixture in TEST_CLIENTS:
        with transaction(services.engine) as session:
            exists = session.exec(
                select(Client).where(Client.client_id == fixture["client_id"])
            ).first()
        if exists is not None:
            continue
        services.clients.insert_with_secret(
            fixture["client_id"],
            fixture["name"],
            fixture["redirect_uri"],
            fixture["secret"],
        )
        clients_inserted += 1

    catalog = services.catalog
    mappings_inserted = 0
    for client in services.clients.list():
        for coarse_role_key, role in TEST_COARSE_ROLE_MAPPINGS.items():
            if role not in catalog:
                logger.warning(
                    "Skipping fixture mapping for %s: role %r is not in the catalog",
                    coarse_role_key,
                    role,
                )
                continue
            services.mappings.set_coarse_role_mapping(
                client.client_id,
                coarse_role_key,
                role,
                DEFAULT_COARSE_ROLE_PRIORITIES[coarse_role_key],
            )
            mappings_inserted += 1

    _write_marker(services)
    logger.info(
        "Inserted test data",
        extra={"clients": clients_inserted, "mappings": mappings_inserted},
    )
    return SeedResult(
        skipped=False,
        clients_inserted=clients_inserted,
        mappings_inserted=mappings_inserted,
    )


def clear_test_data(services: PassportServices) -> None:
    """Delete every mapping, override and client, then drop the marker."""

    with transaction(services.engine) as session:
        session.exec(delete(RoleMapping))
        session.exec(delete(RoleOverride))
        session.exec(delete(Client))
        session.exec(delete(PassportSetting).where(PassportSetting.key == TEST_DATA_MARKER))
    logger.info("Cleared test data")


def seed_status(services: PassportServices) -> SeedStatus:
    marker = _read_marker(services)
    inserted_at = None
    if marker is not None:
        raw = (marker.value or {}).get("inserted_at")
        if raw:
            inserted_at = datetime.fromisoformat(raw)
    return SeedStatus(inserted_at=inserted_at, client_count=services.clients.count())

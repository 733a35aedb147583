from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from passport.client_context import ClientContextStore  # noqa: E402
from passport.db import get_engine, init_db  # noqa: E402
from passport.resolution import SecondaryIdentitySystem  # noqa: E402
from passport.roles import DEFAULT_ROLES, RoleCatalog  # noqa: E402
from passport.services import PassportServices, build_services  # noqa: E402


def make_services(
    *,
    roles: Optional[Iterable[str]] = None,
    secondary: Optional[SecondaryIdentitySystem] = None,
    client_context: Optional[ClientContextStore] = None,
) -> PassportServices:
    """Reset the in-memory schema and wire fresh stores over it."""

    init_db()
    catalog = RoleCatalog(roles if roles is not None else DEFAULT_ROLES)
    return build_services(
        get_engine(),
        catalog=catalog,
        secondary=secondary,
        client_context=client_context,
    )


def create_client(
    services: PassportServices,
    client_id: str = "app-one",
    *,
    name: Optional[str] = None,
    redirect_uri: str = "https://app.example.org/callback",
    is_active: bool = True,
):
    record, secret = services.clients.create(
        client_id,
        name or client_id.replace("-", " ").title(),
        redirect_uri,
        is_active=is_active,
    )
    return record, secret

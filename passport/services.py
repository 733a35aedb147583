"""Wiring of the stores, the resolution engine and the claims builder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from .claims import ClaimsBuilder
from .client_context import ClientContextStore
from .clients import ClientRegistry
from .db import get_engine
from .mappings import MappingStore
from .overrides import OverrideStore
from .resolution import ResolutionEngine, SecondaryIdentitySystem
from .roles import RoleCatalog, load_role_catalog


@dataclass
class PassportServices:
    engine: Engine
    catalog: RoleCatalog
    clients: ClientRegistry
    mappings: MappingStore
    overrides: OverrideStore
    resolver: ResolutionEngine
    claims: ClaimsBuilder
    client_context: ClientContextStore


def build_services(
    engine: Optional[Engine] = None,
    *,
    catalog: Optional[RoleCatalog] = None,
    secondary: Optional[SecondaryIdentitySystem] = None,
    client_context: Optional[ClientContextStore] = None,
) -> PassportServices:
    engine = engine or get_engine()
    catalog = catalog or load_role_catalog()
    mappings = MappingStore(engine, catalog)
    overrides = OverrideStore(engine, catalog)
    resolver = ResolutionEngine(overrides, mappings, catalog, secondary=secondary)
    return PassportServices(
        engine=engine,
        catalog=catalog,
        clients=ClientRegistry(engine, mappings, overrides),
        mappings=mappings,
        overrides=overrides,
        resolver=resolver,
        claims=ClaimsBuilder(resolver, secondary=secondary),
        client_context=client_context or ClientContextStore(),
    )


def get_services(request: Request) -> PassportServices:
    return request.app.state.services


__all__ = ["PassportServices", "build_services", "get_services"]

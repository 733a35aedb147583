"""Per-identity and per-entity role overrides keyed by client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .db import transaction
from .exceptions import DuplicateError, NotFoundError, ValidationError
from .models import RoleOverride
from .roles import RoleCatalog


logger = logging.getLogger(__name__)

IDENTITY = "identity"
ENTITY = "entity"


@dataclass(frozen=True)
class OverrideRecord:
    id: int
    client_id: str
    primary_identity_id: Optional[str]
    secondary_entity_id: Optional[str]
    role: str

    @classmethod
    def from_model(cls, override: RoleOverride) -> "OverrideRecord":
        return cls(
            id=override.id,
            client_id=override.client_id,
            primary_identity_id=override.primary_identity_id,
            secondary_entity_id=override.secondary_entity_id,
            role=override.role,
        )

    @property
    def reference_kind(self) -> str:
        return IDENTITY if self.primary_identity_id is not None else ENTITY


def _normalize_ref(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} must be provided", field=field)
    return text


class OverrideStore:
    """Single-valued role overrides.

    ``set_*`` methods upsert. ``create_*`` methods are create-only and raise
    :class:`DuplicateError` when an override already exists for the same
    reference and client.
    """

    def __init__(self, engine: Engine, catalog: RoleCatalog):
        self._engine = engine
        self._catalog = catalog

    @staticmethod
    def _column(kind: str):
        if kind == IDENTITY:
            return RoleOverride.primary_identity_id
        return RoleOverride.secondary_entity_id

    def _find(
        self, session: Session, kind: str, ref: str, client_id: str
    ) -> Optional[RoleOverride]:
        stmt = (
            select(RoleOverride)
            .where(self._column(kind) == ref)
            .where(RoleOverride.client_id == client_id)
        )
        return session.exec(stmt).first()

    def _get_role(self, kind: str, ref: Any, client_id: str) -> Optional[str]:
        if ref is None or not client_id:
            return None
        ref = str(ref).strip()
        if not ref:
            return None
        stmt = (
            select(RoleOverride.role)
            .where(self._column(kind) == ref)
            .where(RoleOverride.client_id == client_id)
        )
        with transaction(self._engine) as session:
            return session.exec(stmt).first() or None

    def _write(
        self, kind: str, ref: Any, client_id: str, role: str, *, create_only: bool
    ) -> OverrideRecord:
        field = "primary_identity_id" if kind == IDENTITY else "secondary_entity_id"
        ref = _normalize_ref(ref, field)
        client_id = _normalize_ref(client_id, "client_id")
        role = self._catalog.validate(role)
        try:
            with transaction(self._engine) as session:
                override = self._find(session, kind, ref, client_id)
                if override is not None:
                    if create_only:
                        raise DuplicateError(
                            "override",
                            f"{kind}:{ref}@{client_id}",
                            f"An override for {kind} {ref!r} on client {client_id!r} already exists",
                        )
                    override.role = role
                    override.updated_at = datetime.now(timezone.utc)
                else:
                    override = RoleOverride(
                        client_id=client_id,
                        primary_identity_id=ref if kind == IDENTITY else None,
                        secondary_entity_id=ref if kind == ENTITY else None,
                        role=role,
                    )
                session.add(override)
                session.flush()
                record = OverrideRecord.from_model(override)
        except IntegrityError as exc:
            raise DuplicateError("override", f"{kind}:{ref}@{client_id}") from exc
        logger.info(
            "Stored role override",
            extra={"client_id": client_id, "reference": f"{kind}:{ref}", "role": role},
        )
        return record

    def get_override_for_identity(
        self, primary_identity_id: Any, client_id: str
    ) -> Optional[str]:
        return self._get_role(IDENTITY, primary_identity_id, client_id)

    def get_override_for_entity(
        self, secondary_entity_id: Any, client_id: str
    ) -> Optional[str]:
        return self._get_role(ENTITY, secondary_entity_id, client_id)

    def set_override_for_identity(
        self, primary_identity_id: Any, client_id: str, role: str
    ) -> OverrideRecord:
        return self._write(IDENTITY, primary_identity_id, client_id, role, create_only=False)

    def set_override_for_entity(
        self, secondary_entity_id: Any, client_id: str, role: str
    ) -> OverrideRecord:
        return self._write(ENTITY, secondary_entity_id, client_id, role, create_only=False)

    def create_override_for_identity(
        self, primary_identity_id: Any, client_id: str, role: str
    ) -> OverrideRecord:
        return self._write(IDENTITY, primary_identity_id, client_id, role, create_only=True)

    def create_override_for_entity(
        self, secondary_entity_id: Any, client_id: str, role: str
    ) -> OverrideRecord:
        return self._write(ENTITY, secondary_entity_id, client_id, role, create_only=True)

    def get(self, id: int) -> OverrideRecord:
        with transaction(self._engine) as session:
            override = session.get(RoleOverride, id)
            if override is None:
                raise NotFoundError("override", id)
            return OverrideRecord.from_model(override)

    def update_role(self, id: int, role: str) -> OverrideRecord:
        role = self._catalog.validate(role)
        with transaction(self._engine) as session:
            override = session.get(RoleOverride, id)
            if override is None:
                raise NotFoundError("override", id)
            override.role = role
            override.updated_at = datetime.now(timezone.utc)
            session.add(override)
            session.flush()
            return OverrideRecord.from_model(override)

    def list(self, client_id: Optional[str] = None) -> List[OverrideRecord]:
        stmt = select(RoleOverride)
        if client_id:
            stmt = stmt.where(RoleOverride.client_id == client_id)
        stmt = stmt.order_by(RoleOverride.client_id, RoleOverride.id)
        with transaction(self._engine) as session:
            return [OverrideRecord.from_model(row) for row in session.exec(stmt).all()]

    def count(self, client_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(RoleOverride)
        if client_id:
            stmt = stmt.where(RoleOverride.client_id == client_id)
        with transaction(self._engine) as session:
            return int(session.exec(stmt).one() or 0)

    def delete(self, id: int) -> None:
        with transaction(self._engine) as session:
            override = session.get(RoleOverride, id)
            if override is None:
                raise NotFoundError("override", id)
            session.delete(override)

    def delete_all_for_client(
        self, client_id: str, *, session: Optional[Session] = None
    ) -> int:
        """Delete every override of ``client_id``; returns the number removed."""

        stmt = delete(RoleOverride).where(RoleOverride.client_id == client_id)
        with transaction(self._engine, session) as active:
            result = active.exec(stmt)
            deleted = int(result.rowcount or 0)
        logger.debug(
            "Deleted overrides for client",
            extra={"client_id": client_id, "deleted": deleted},
        )
        return deleted


__all__ = ["OverrideRecord", "OverrideStore"]

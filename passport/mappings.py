"""Per-client rules mapping coarse roles and entity classes to roles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from .db import transaction
from .exceptions import NotFoundError, ValidationError
from .models import MappingKind, RoleMapping
from .roles import RoleCatalog, default_coarse_role_priority


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingRecord:
    id: int
    client_id: str
    mapping_kind: MappingKind
    coarse_role_key: Optional[str]
    entity_class_id: Optional[str]
    role: str
    priority: int

    @classmethod
    def from_model(cls, mapping: RoleMapping) -> "MappingRecord":
        return cls(
            id=mapping.id,
            client_id=mapping.client_id,
            mapping_kind=MappingKind(mapping.mapping_kind),
            coarse_role_key=mapping.coarse_role_key,
            entity_class_id=mapping.entity_class_id,
            role=mapping.role,
            priority=mapping.priority,
        )

    @property
    def key(self) -> str:
        if self.mapping_kind is MappingKind.COARSE_ROLE:
            return self.coarse_role_key or ""
        return self.entity_class_id or ""


def _normalize_key(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} must be provided", field=field)
    return text


def _normalize_candidates(values: Iterable[Any]) -> List[str]:
    normalized = set()
    for value in values or ():
        if value is None:
            continue
        text = str(value).strip()
        if text:
            normalized.add(text)
    return sorted(normalized)


def _require_client_id(client_id: Optional[str]) -> str:
    return _normalize_key(client_id, "client_id")


class MappingStore:
    """Upsert and priority lookup over :class:`~passport.models.RoleMapping`.

    Among matching mappings the highest ``priority`` wins; equal priorities
    are decided by the lowest mapping ``id`` (the earliest created rule).
    """

    def __init__(self, engine: Engine, catalog: RoleCatalog):
        self._engine = engine
        self._catalog = catalog

    def _upsert(
        self,
        session: Session,
        client_id: str,
        kind: MappingKind,
        key: str,
        role: str,
        priority: int,
    ) -> RoleMapping:
        key_column = (
            RoleMapping.coarse_role_key
            if kind is MappingKind.COARSE_ROLE
            else RoleMapping.entity_class_id
        )
        stmt = (
            select(RoleMapping)
            .where(RoleMapping.client_id == client_id)
            .where(RoleMapping.mapping_kind == kind.value)
            .where(key_column == key)
        )
        mapping = session.exec(stmt).first()
        if mapping is None:
            mapping = RoleMapping(
                client_id=client_id,
                mapping_kind=kind.value,
                coarse_role_key=key if kind is MappingKind.COARSE_ROLE else None,
                entity_class_id=key if kind is MappingKind.ENTITY_CLASS else None,
                role=role,
                priority=priority,
            )
        else:
            mapping.role = role
            mapping.priority = priority
            mapping.updated_at = datetime.now(timezone.utc)
        session.add(mapping)
        session.flush()
        return mapping

    def set_coarse_role_mapping(
        self,
        client_id: str,
        coarse_role_key: str,
        role: str,
        priority: Optional[int] = None,
    ) -> MappingRecord:
        """Insert or update the mapping for ``(client_id, coarse_role_key)``.

        When ``priority`` is omitted the built-in coarse role priority is used
        (``administrator`` 5 down to ``subscriber`` 1, unknown keys 0).
        """

        client_id = _require_client_id(client_id)
        key = _normalize_key(coarse_role_key, "coarse_role_key")
        role = self._catalog.validate(role)
        if priority is None:
            priority = default_coarse_role_priority(key)
        with transaction(self._engine) as session:
            mapping = self._upsert(
                session, client_id, MappingKind.COARSE_ROLE, key, role, int(priority)
            )
            return MappingRecord.from_model(mapping)

    def set_entity_class_mapping(
        self,
        client_id: str,
        entity_class_id: Any,
        role: str,
        priority: int = 0,
    ) -> MappingRecord:
        """Insert or update the mapping for ``(client_id, entity_class_id)``."""

        client_id = _require_client_id(client_id)
        key = _normalize_key(entity_class_id, "entity_class_id")
        role = self._catalog.validate(role)
        with transaction(self._engine) as session:
            mapping = self._upsert(
                session, client_id, MappingKind.ENTITY_CLASS, key, role, int(priority)
            )
            return MappingRecord.from_model(mapping)

    def _resolve_best(
        self, client_id: str, kind: MappingKind, candidates: Iterable[Any]
    ) -> Optional[str]:
        keys = _normalize_candidates(candidates)
        if not client_id or not keys:
            return None
        key_column = (
            RoleMapping.coarse_role_key
            if kind is MappingKind.COARSE_ROLE
            else RoleMapping.entity_class_id
        )
        stmt = (
            select(RoleMapping.role)
            .where(RoleMapping.client_id == client_id)
            .where(RoleMapping.mapping_kind == kind.value)
            .where(key_column.in_(keys))
            .order_by(RoleMapping.priority.desc(), RoleMapping.id.asc())
            .limit(1)
        )
        with transaction(self._engine) as session:
            return session.exec(stmt).first() or None

    def resolve_best_for_coarse_roles(
        self, client_id: str, candidate_keys: Iterable[str]
    ) -> Optional[str]:
        return self._resolve_best(client_id, MappingKind.COARSE_ROLE, candidate_keys)

    def resolve_best_for_entity_classes(
        self, client_id: str, candidate_class_ids: Iterable[Any]
    ) -> Optional[str]:
        return self._resolve_best(client_id, MappingKind.ENTITY_CLASS, candidate_class_ids)

    def get(self, id: int) -> MappingRecord:
        with transaction(self._engine) as session:
            mapping = session.get(RoleMapping, id)
            if mapping is None:
                raise NotFoundError("mapping", id)
            return MappingRecord.from_model(mapping)

    def list(
        self,
        client_id: Optional[str] = None,
        kind: Optional[MappingKind] = None,
    ) -> List[MappingRecord]:
        stmt = select(RoleMapping)
        if client_id:
            stmt = stmt.where(RoleMapping.client_id == client_id)
        if kind is not None:
            stmt = stmt.where(RoleMapping.mapping_kind == MappingKind(kind).value)
        stmt = stmt.order_by(
            RoleMapping.client_id, RoleMapping.priority.desc(), RoleMapping.id
        )
        with transaction(self._engine) as session:
            return [MappingRecord.from_model(row) for row in session.exec(stmt).all()]

    def count(
        self,
        client_id: Optional[str] = None,
        kind: Optional[MappingKind] = None,
    ) -> int:
        stmt = select(func.count()).select_from(RoleMapping)
        if client_id:
            stmt = stmt.where(RoleMapping.client_id == client_id)
        if kind is not None:
            stmt = stmt.where(RoleMapping.mapping_kind == MappingKind(kind).value)
        with transaction(self._engine) as session:
            return int(session.exec(stmt).one() or 0)

    def delete(self, id: int) -> None:
        with transaction(self._engine) as session:
            mapping = session.get(RoleMapping, id)
            if mapping is None:
                raise NotFoundError("mapping", id)
            session.delete(mapping)

    def delete_all_for_client(
        self, client_id: str, *, session: Optional[Session] = None
    ) -> int:
        """Delete every mapping of ``client_id``; returns the number removed."""

        stmt = delete(RoleMapping).where(RoleMapping.client_id == client_id)
        with transaction(self._engine, session) as active:
            result = active.exec(stmt)
            deleted = int(result.rowcount or 0)
        logger.debug(
            "Deleted mappings for client",
            extra={"client_id": client_id, "deleted": deleted},
        )
        return deleted


__all__ = ["MappingRecord", "MappingStore"]

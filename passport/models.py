from enum import Enum
from typing import Optional, Dict
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlmodel import SQLModel, Field, Column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MappingKind(str, Enum):
    COARSE_ROLE = "coarse_role"
    ENTITY_CLASS = "entity_class"


class Client(SQLModel, table=True):
    __tablename__ = "passport_clients"
    __table_args__ = (UniqueConstraint("client_id", name="uq_passport_clients_client_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(sa_column=Column(String(length=100), nullable=False, index=True))
    name: str = Field(sa_column=Column(String(length=255), nullable=False))
    secret_hash: str = Field(sa_column=Column(String(length=128), nullable=False))
    redirect_uri: str = Field(sa_column=Column(String(length=500), nullable=False))
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, index=True),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class RoleMapping(SQLModel, table=True):
    __tablename__ = "passport_role_mappings"
    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "coarse_role_key",
            name="uq_passport_role_mappings_client_coarse_role",
        ),
        UniqueConstraint(
            "client_id",
            "entity_class_id",
            name="uq_passport_role_mappings_client_entity_class",
        ),
        CheckConstraint(
            "(mapping_kind = 'coarse_role' AND coarse_role_key IS NOT NULL AND entity_class_id IS NULL)"
            " OR (mapping_kind = 'entity_class' AND entity_class_id IS NOT NULL AND coarse_role_key IS NULL)",
            name="ck_passport_role_mappings_kind_key",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(sa_column=Column(String(length=100), nullable=False, index=True))
    mapping_kind: str = Field(
        default=MappingKind.COARSE_ROLE.value,
        sa_column=Column(String(length=20), nullable=False, index=True),
    )
    coarse_role_key: Optional[str] = Field(
        default=None,
        sa_column=Column(String(length=100), nullable=True),
    )
    entity_class_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(length=100), nullable=True),
    )
    role: str = Field(sa_column=Column(String(length=100), nullable=False))
    priority: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, index=True),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class RoleOverride(SQLModel, table=True):
    __tablename__ = "passport_role_overrides"
    __table_args__ = (
        UniqueConstraint(
            "primary_identity_id",
            "client_id",
            name="uq_passport_role_overrides_identity_client",
        ),
        UniqueConstraint(
            "secondary_entity_id",
            "client_id",
            name="uq_passport_role_overrides_entity_client",
        ),
        CheckConstraint(
            "(primary_identity_id IS NOT NULL AND secondary_entity_id IS NULL)"
            " OR (primary_identity_id IS NULL AND secondary_entity_id IS NOT NULL)",
            name="ck_passport_role_overrides_one_reference",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(sa_column=Column(String(length=100), nullable=False, index=True))
    primary_identity_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(length=100), nullable=True, index=True),
    )
    secondary_entity_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(length=100), nullable=True, index=True),
    )
    role: str = Field(sa_column=Column(String(length=100), nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class PassportSetting(SQLModel, table=True):
    __tablename__ = "passport_settings"

    key: str = Field(
        sa_column=Column(String(length=255), nullable=False, primary_key=True)
    )
    value: Dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

"""Registry of OAuth/OIDC client applications allowed to request roles."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .db import transaction
from .exceptions import CascadeFailure, DuplicateClientError, NotFoundError, ValidationError
from .mappings import MappingStore
from .models import Client
from .observability.metrics import increment_secret_verification
from .overrides import OverrideStore


logger = logging.getLogger(__name__)

SECRET_BYTES = 32
DEFAULT_GRANT_TYPES = ("authorization_code",)
DEFAULT_SCOPE = "openid profile email"


@dataclass(frozen=True)
class ClientRecord:
    id: int
    client_id: str
    name: str
    redirect_uri: str
    is_active: bool
    secret_hash: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, client: Client) -> "ClientRecord":
        return cls(
            id=client.id,
            client_id=client.client_id,
            name=client.name,
            redirect_uri=client.redirect_uri,
            is_active=bool(client.is_active),
            secret_hash=client.secret_hash,
            created_at=client.created_at,
            updated_at=client.updated_at,
        )


@dataclass(frozen=True)
class DeletedClient:
    client: ClientRecord
    mappings_deleted: int
    overrides_deleted: int


def generate_secret() -> str:
    """Return a fresh URL-safe secret of at least 32 characters."""

    return secrets.token_urlsafe(SECRET_BYTES)


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def _require_text(value: Optional[str], field: str) -> str:
    normalized = value.strip() if isinstance(value, str) else ""
    if not normalized:
        raise ValidationError(f"{field} must be provided", field=field)
    return normalized


class ClientRegistry:
    """CRUD and secret verification for :class:`~passport.models.Client` rows.

    Deleting a client also deletes every mapping and override stored for its
    public ``client_id`` in the same transaction.
    """

    def __init__(self, engine: Engine, mappings: MappingStore, overrides: OverrideStore):
        self._engine = engine
        self._mappings = mappings
        self._overrides = overrides

    def _get_model(self, session: Session, id: int) -> Client:
        client = session.get(Client, id)
        if client is None:
            raise NotFoundError("client", id)
        return client

    def _find_by_public_id(self, session: Session, client_id: str) -> Optional[Client]:
        stmt = select(Client).where(Client.client_id == client_id)
        return session.exec(stmt).first()

    def _insert(
        self,
        client_id: str,
        name: str,
        redirect_uri: str,
        secret: str,
        is_active: bool,
    ) -> ClientRecord:
        client_id = _require_text(client_id, "client_id")
        name = _require_text(name, "name")
        redirect_uri = _require_text(redirect_uri, "redirect_uri")
        try:
            with transaction(self._engine) as session:
                if self._find_by_public_id(session, client_id) is not None:
                    raise DuplicateClientError(client_id)
                client = Client(
                    client_id=client_id,
                    name=name,
                    redirect_uri=redirect_uri,
                    secret_hash=hash_secret(secret),
                    is_active=is_active,
                )
                session.add(client)
                session.flush()
                record = ClientRecord.from_model(client)
        except IntegrityError as exc:
            # Lost a race with a concurrent create of the same client_id.
            raise DuplicateClientError(client_id) from exc
        logger.info("Created client", extra={"client_id": client_id})
        return record

    def create(
        self,
        client_id: str,
        name: str,
        redirect_uri: str,
        *,
        is_active: bool = True,
    ) -> Tuple[ClientRecord, str]:
        """Register a client and return it with its one-time plaintext secret."""

        secret = generate_secret()
        record = self._insert(client_id, name, redirect_uri, secret, is_active)
        return record, secret

    def insert_with_secret(
        self,
        client_id: str,
        name: str,
        redirect_uri: str,
        secret: str,
        *,
        is_active: bool = True,
    ) -> ClientRecord:
        """Register a client with a caller-chosen secret (fixtures only)."""

        return self._insert(client_id, name, redirect_uri, _require_text(secret, "secret"), is_active)

    def get(self, id: int) -> ClientRecord:
        with transaction(self._engine) as session:
            return ClientRecord.from_model(self._get_model(session, id))

    def get_by_public_id(self, client_id: str) -> ClientRecord:
        with transaction(self._engine) as session:
            client = self._find_by_public_id(session, client_id)
            if client is None:
                raise NotFoundError("client", client_id)
            return ClientRecord.from_model(client)

    def list(self, include_inactive: bool = False) -> List[ClientRecord]:
        stmt = select(Client)
        if not include_inactive:
            stmt = stmt.where(Client.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Client.name, Client.client_id)
        with transaction(self._engine) as session:
            return [ClientRecord.from_model(row) for row in session.exec(stmt).all()]

    def count(self, include_inactive: bool = True) -> int:
        stmt = select(func.count()).select_from(Client)
        if not include_inactive:
            stmt = stmt.where(Client.is_active == True)  # noqa: E712
        with transaction(self._engine) as session:
            return int(session.exec(stmt).one() or 0)

    def update(
        self,
        id: int,
        *,
        name: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        is_active: Optional[bool] = None,
        regenerate_secret: bool = False,
    ) -> Tuple[ClientRecord, Optional[str]]:
        """Apply the provided fields; return the record and any new secret."""

        if name is not None:
            name = _require_text(name, "name")
        if redirect_uri is not None:
            redirect_uri = _require_text(redirect_uri, "redirect_uri")
        new_secret = generate_secret() if regenerate_secret else None

        with transaction(self._engine) as session:
            client = self._get_model(session, id)
            if name is not None:
                client.name = name
            if redirect_uri is not None:
                client.redirect_uri = redirect_uri
            if is_active is not None:
                client.is_active = is_active
            if new_secret is not None:
                client.secret_hash = hash_secret(new_secret)
            client.updated_at = datetime.now(timezone.utc)
            session.add(client)
            session.flush()
            record = ClientRecord.from_model(client)
        if new_secret is not None:
            logger.info("Regenerated client secret", extra={"client_id": record.client_id})
        return record, new_secret

    def delete(self, id: int) -> DeletedClient:
        """Delete a client together with its mappings and overrides."""

        with transaction(self._engine) as session:
            client = self._get_model(session, id)
            record = ClientRecord.from_model(client)
            try:
                mappings_deleted = self._mappings.delete_all_for_client(
                    record.client_id, session=session
                )
                overrides_deleted = self._overrides.delete_all_for_client(
                    record.client_id, session=session
                )
                session.delete(client)
                session.flush()
            except SQLAlchemyError as exc:
                logger.error(
                    "Cascade delete failed",
                    extra={"client_id": record.client_id},
                    exc_info=True,
                )
                raise CascadeFailure(record.client_id) from exc
        logger.info(
            "Deleted client",
            extra={
                "client_id": record.client_id,
                "mappings_deleted": mappings_deleted,
                "overrides_deleted": overrides_deleted,
            },
        )
        return DeletedClient(
            client=record,
            mappings_deleted=mappings_deleted,
            overrides_deleted=overrides_deleted,
        )

    def verify_secret(self, client_id: str, candidate: Optional[str]) -> bool:
        """Return ``True`` when ``candidate`` is the secret of ``client_id``.

        Both sides are compared as fixed-length SHA-256 digests with
        :func:`hmac.compare_digest`, so timing reveals neither length nor
        prefix matches.
        """

        if not client_id or candidate is None:
            increment_secret_verification("rejected")
            return False
        with transaction(self._engine) as session:
            client = self._find_by_public_id(session, client_id)
            stored = client.secret_hash if client is not None else None
        candidate_hash = hash_secret(candidate)
        if stored is None:
            # Keep the comparison cost when the client is unknown.
            hmac.compare_digest(candidate_hash, hash_secret(""))
            increment_secret_verification("unknown_client")
            return False
        matched = hmac.compare_digest(stored, candidate_hash)
        increment_secret_verification("success" if matched else "rejected")
        return matched

    def registered_clients(self) -> Dict[str, Dict[str, Any]]:
        """Return the active clients keyed by ``client_id`` for the IdP."""

        clients: Dict[str, Dict[str, Any]] = {}
        for record in self.list(include_inactive=False):
            clients[record.client_id] = {
                "name": record.name,
                "secret_hash": record.secret_hash,
                "redirect_uri": record.redirect_uri,
                "grant_types": list(DEFAULT_GRANT_TYPES),
                "scope": DEFAULT_SCOPE,
            }
        return clients


__all__ = [
    "ClientRecord",
    "ClientRegistry",
    "DeletedClient",
    "generate_secret",
    "hash_secret",
]

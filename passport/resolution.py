"""Layered role resolution for an identity and a client application.

Precedence, first match wins:

1. override for the primary identity
2. when a secondary identity system is wired in and the identity maps to an
   entity: override for that entity, then the best entity-class mapping
3. the best coarse-role mapping
4. the ``no-access`` sentinel
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    Optional,
    Protocol,
    Set,
    Tuple,
    runtime_checkable,
)

from .exceptions import SecondarySystemUnavailable
from .mappings import MappingStore
from .observability.metrics import increment_role_resolution
from .overrides import OverrideStore
from .roles import RoleCatalog


logger = logging.getLogger(__name__)

TIER_IDENTITY_OVERRIDE = "identity_override"
TIER_ENTITY_OVERRIDE = "entity_override"
TIER_ENTITY_CLASS = "entity_class"
TIER_COARSE_ROLE = "coarse_role"
TIER_NO_ACCESS = "no_access"

# Marks "look the entity up" as opposed to an already looked up ``None``.
LOOKUP_ENTITY: Any = object()


def _frozen_roles(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    normalized = {str(value).strip() for value in values if value is not None}
    normalized.discard("")
    return frozenset(normalized)


@dataclass(frozen=True)
class Identity:
    """An authenticated primary identity as supplied by the IdP layer."""

    primary_id: str
    coarse_roles: FrozenSet[str] = frozenset()
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    display_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_id", str(self.primary_id))
        object.__setattr__(self, "coarse_roles", _frozen_roles(self.coarse_roles))


@dataclass(frozen=True)
class SecondaryEntity:
    """A domain entity linked to an identity by the secondary system."""

    id: str
    given_name: Optional[str] = None
    family_name_prefix: Optional[str] = None
    family_name: Optional[str] = None
    nickname: Optional[str] = None
    attributes: dict = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))


@dataclass(frozen=True)
class SecondaryGroup:
    """A group an entity belongs to, with the functions it holds there."""

    name: str
    type: str = ""
    functions: Tuple[str, ...] = ()

    def as_claim(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "functions": list(self.functions)}


@runtime_checkable
class SecondaryIdentitySystem(Protocol):
    """Bridge to an optional secondary identity system.

    Implementations may raise :class:`SecondarySystemUnavailable` to report
    that the capability is absent; any other exception is treated as a real
    failure. Bridges may also offer ``groups_for(entity_id)`` returning a list
    of :class:`SecondaryGroup` for the ``groups`` claim.
    """

    def lookup_entity_for_identity(self, primary_identity_id: str) -> Optional[SecondaryEntity]:
        ...

    def entity_class_ids_for(self, entity_id: str) -> Set[str]:
        ...


@dataclass(frozen=True)
class Resolution:
    role: str
    tier: str


class ResolutionEngine:
    """Stateless resolver over the override and mapping stores.

    ``secondary`` is ``None`` when the deployment has no secondary identity
    system; the entity tier is then skipped entirely.
    """

    def __init__(
        self,
        overrides: OverrideStore,
        mappings: MappingStore,
        catalog: RoleCatalog,
        secondary: Optional[SecondaryIdentitySystem] = None,
    ):
        self._overrides = overrides
        self._mappings = mappings
        self._catalog = catalog
        self._secondary = secondary

    @property
    def catalog(self) -> RoleCatalog:
        return self._catalog

    @property
    def secondary_enabled(self) -> bool:
        return self._secondary is not None

    def lookup_entity(self, identity: Identity) -> Optional[SecondaryEntity]:
        """Return the identity's linked entity, or ``None`` when there is none.

        An unavailable secondary system counts as "no entity".
        """
        if self._secondary is None:
            return None
        try:
            return self._secondary.lookup_entity_for_identity(identity.primary_id)
        except SecondarySystemUnavailable:
            logger.info(
                "Secondary identity system unavailable; skipping entity tier",
                extra={"identity_id": identity.primary_id},
            )
            return None

    def resolve_role(
        self, identity: Identity, client_id: str, *, entity: Any = LOOKUP_ENTITY
    ) -> str:
        return self.explain(identity, client_id, entity=entity).role

    def explain(
        self, identity: Identity, client_id: str, *, entity: Any = LOOKUP_ENTITY
    ) -> Resolution:
        """Resolve the role and report which precedence tier produced it.

        Pass ``entity`` when the caller already looked it up with
        :meth:`lookup_entity`, so the secondary system is asked only once.
        """

        resolution = self._resolve(identity, client_id, entity)
        if resolution.role not in self._catalog:
            logger.warning(
                "Stored role is not in the role catalog; denying access",
                extra={
                    "client_id": client_id,
                    "identity_id": identity.primary_id,
                    "role": resolution.role,
                    "tier": resolution.tier,
                },
            )
            resolution = Resolution(self._catalog.no_access, resolution.tier)
        increment_role_resolution(resolution.tier)
        logger.debug(
            "Resolved role",
            extra={
                "client_id": client_id,
                "identity_id": identity.primary_id,
                "role": resolution.role,
                "tier": resolution.tier,
            },
        )
        return resolution

    def _resolve(self, identity: Identity, client_id: str, entity: Any) -> Resolution:
        role = self._overrides.get_override_for_identity(identity.primary_id, client_id)
        if role:
            return Resolution(role, TIER_IDENTITY_OVERRIDE)

        if self._secondary is not None:
            resolution = self._resolve_secondary(identity, client_id, entity)
            if resolution is not None:
                return resolution

        if identity.coarse_roles:
            role = self._mappings.resolve_best_for_coarse_roles(
                client_id, identity.coarse_roles
            )
            if role:
                return Resolution(role, TIER_COARSE_ROLE)

        return Resolution(self._catalog.no_access, TIER_NO_ACCESS)

    def _resolve_secondary(
        self, identity: Identity, client_id: str, entity: Any
    ) -> Optional[Resolution]:
        try:
            if entity is LOOKUP_ENTITY:
                entity = self._secondary.lookup_entity_for_identity(identity.primary_id)
            if entity is None:
                return None

            role = self._overrides.get_override_for_entity(entity.id, client_id)
            if role:
                return Resolution(role, TIER_ENTITY_OVERRIDE)

            class_ids = self._secondary.entity_class_ids_for(entity.id)
        except SecondarySystemUnavailable:
            logger.info(
                "Secondary identity system unavailable; skipping entity tier",
                extra={"client_id": client_id, "identity_id": identity.primary_id},
            )
            return None

        if class_ids:
            role = self._mappings.resolve_best_for_entity_classes(client_id, class_ids)
            if role:
                return Resolution(role, TIER_ENTITY_CLASS)
        return None


__all__ = [
    "Identity",
    "LOOKUP_ENTITY",
    "Resolution",
    "ResolutionEngine",
    "SecondaryEntity",
    "SecondaryGroup",
    "SecondaryIdentitySystem",
    "TIER_COARSE_ROLE",
    "TIER_ENTITY_CLASS",
    "TIER_ENTITY_OVERRIDE",
    "TIER_IDENTITY_OVERRIDE",
    "TIER_NO_ACCESS",
]

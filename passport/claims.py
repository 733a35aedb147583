"""Identity token claim helpers for the IdP claims hook."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, MutableMapping, Optional

from .exceptions import SecondarySystemUnavailable
from .resolution import Identity, ResolutionEngine, SecondaryEntity, SecondaryIdentitySystem

USER_ROLE_CLAIM = "user_role"
GROUPS_CLAIM = "groups"

logger = logging.getLogger(__name__)


def _join_name(*parts: Optional[str]) -> Optional[str]:
    cleaned = [part.strip() for part in parts if isinstance(part, str) and part.strip()]
    return " ".join(cleaned) or None


def profile_claims(
    identity: Identity, entity: Optional[SecondaryEntity] = None
) -> Dict[str, Optional[str]]:
    """Return ``given_name``, ``family_name``, ``nickname`` and ``email``.

    Entity data, when present, takes precedence over the identity's own
    profile fields.
    """

    given_name = identity.given_name
    family_name = identity.family_name
    nickname = identity.display_name
    if entity is not None:
        if entity.given_name:
            given_name = entity.given_name
        family = _join_name(entity.family_name_prefix, entity.family_name)
        if family:
            family_name = family
        if entity.nickname:
            nickname = entity.nickname
    return {
        "given_name": given_name,
        "family_name": family_name,
        "nickname": nickname,
        "email": identity.email,
    }


class ClaimsBuilder:
    def __init__(
        self,
        resolver: ResolutionEngine,
        secondary: Optional[SecondaryIdentitySystem] = None,
    ):
        self._resolver = resolver
        self._secondary = secondary

    def _groups(self, entity: Optional[SecondaryEntity]) -> List[Dict[str, Any]]:
        if entity is None or self._secondary is None:
            return []
        groups_for = getattr(self._secondary, "groups_for", None)
        if groups_for is None:
            return []
        try:
            groups = groups_for(entity.id)
        except SecondarySystemUnavailable:
            logger.info("Secondary identity system unavailable for group claims")
            return []
        return [group.as_claim() for group in groups or ()]

    def build(
        self,
        identity: Identity,
        client_id: Optional[str],
        claims: Optional[Mapping[str, Any]] = None,
    ) -> MutableMapping[str, Any]:
        """Merge profile, ``groups`` and the resolved ``user_role`` into ``claims``."""

        entity = self._resolver.lookup_entity(identity)
        merged: MutableMapping[str, Any] = dict(claims or {})
        merged.update(profile_claims(identity, entity))
        merged[GROUPS_CLAIM] = self._groups(entity)
        if not client_id:
            merged[USER_ROLE_CLAIM] = self._resolver.catalog.no_access
            return merged
        merged[USER_ROLE_CLAIM] = self._resolver.resolve_role(identity, client_id, entity=entity)
        return merged


__all__ = ["ClaimsBuilder", "GROUPS_CLAIM", "USER_ROLE_CLAIM", "profile_claims"]

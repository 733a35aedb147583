"""Secondary identity system bridges."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional, Set
from urllib.parse import quote

import httpx

from .config import get_secondary_timeout, get_secondary_url, is_secondary_system_enabled
from .exceptions import SecondarySystemUnavailable
from .resolution import SecondaryEntity, SecondaryGroup, SecondaryIdentitySystem


logger = logging.getLogger(__name__)


def _normalize_ids(values: Optional[Iterable[Any]]) -> Set[str]:
    if not values:
        return set()
    if isinstance(values, (str, int)):
        values = [values]
    normalized = {str(value).strip() for value in values if value is not None}
    normalized.discard("")
    return normalized


class StaticSecondaryIdentitySystem:
    """In-memory bridge backed by plain dictionaries."""

    def __init__(
        self,
        entities: Optional[Mapping[Any, SecondaryEntity]] = None,
        class_ids: Optional[Mapping[Any, Iterable[Any]]] = None,
        groups: Optional[Mapping[Any, Iterable[SecondaryGroup]]] = None,
    ):
        self._entities: Dict[str, SecondaryEntity] = {
            str(identity_id): entity for identity_id, entity in (entities or {}).items()
        }
        self._class_ids: Dict[str, Set[str]] = {
            str(entity_id): _normalize_ids(ids) for entity_id, ids in (class_ids or {}).items()
        }
        self._groups: Dict[str, List[SecondaryGroup]] = {
            str(entity_id): list(items) for entity_id, items in (groups or {}).items()
        }

    def link(
        self,
        primary_identity_id: Any,
        entity: SecondaryEntity,
        class_ids: Iterable[Any] = (),
        groups: Iterable[SecondaryGroup] = (),
    ) -> None:
        self._entities[str(primary_identity_id)] = entity
        self._class_ids[entity.id] = _normalize_ids(class_ids)
        self._groups[entity.id] = list(groups)

    def lookup_entity_for_identity(self, primary_identity_id: str) -> Optional[SecondaryEntity]:
        return self._entities.get(str(primary_identity_id))

    def entity_class_ids_for(self, entity_id: str) -> Set[str]:
        return set(self._class_ids.get(str(entity_id), set()))

    def groups_for(self, entity_id: str) -> List[SecondaryGroup]:
        return list(self._groups.get(str(entity_id), ()))


def _entity_from_payload(payload: Mapping[str, Any]) -> Optional[SecondaryEntity]:
    entity_id = payload.get("id")
    if entity_id is None or str(entity_id).strip() == "":
        return None
    known = {"id", "given_name", "family_name_prefix", "family_name", "nickname"}
    return SecondaryEntity(
        id=str(entity_id),
        given_name=payload.get("given_name") or None,
        family_name_prefix=payload.get("family_name_prefix") or None,
        family_name=payload.get("family_name") or None,
        nickname=payload.get("nickname") or None,
        attributes={key: value for key, value in payload.items() if key not in known},
    )


def _group_from_payload(payload: Mapping[str, Any]) -> SecondaryGroup:
    functions = payload.get("functions") or ()
    if isinstance(functions, str):
        functions = [functions]
    return SecondaryGroup(
        name=str(payload.get("name") or ""),
        type=str(payload.get("type") or ""),
        functions=tuple(str(item) for item in functions if item is not None),
    )


class HttpSecondaryIdentitySystem:
    """Bridge to a secondary identity system exposed over HTTP.

    ``GET {base}/identities/{id}/entity`` returns the linked entity or 404.
    ``GET {base}/entities/{id}/classes`` returns the current class ids, either
    as a JSON list or as ``{"class_ids": [...]}``.
    ``GET {base}/entities/{id}/groups`` returns the entity's groups the same
    way, under ``"groups"``; 404 means no groups. A 501 answer means the
    remote system does not offer the capability. Other HTTP and transport
    errors propagate.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = dict(headers or {})

    def _get(self, path: str) -> Optional[Any]:
        with httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers=self._headers,
        ) as client:
            response = client.get(path)
        if response.status_code == 404:
            return None
        if response.status_code == 501:
            raise SecondarySystemUnavailable(
                f"Secondary identity system does not support {path}"
            )
        response.raise_for_status()
        return response.json()

    def lookup_entity_for_identity(self, primary_identity_id: str) -> Optional[SecondaryEntity]:
        payload = self._get(f"/identities/{quote(str(primary_identity_id), safe='')}/entity")
        if not isinstance(payload, Mapping):
            return None
        return _entity_from_payload(payload)

    def entity_class_ids_for(self, entity_id: str) -> Set[str]:
        payload = self._get(f"/entities/{quote(str(entity_id), safe='')}/classes")
        if isinstance(payload, Mapping):
            payload = payload.get("class_ids")
        if isinstance(payload, (list, tuple, set)):
            return _normalize_ids(payload)
        return set()

    def groups_for(self, entity_id: str) -> List[SecondaryGroup]:
        payload = self._get(f"/entities/{quote(str(entity_id), safe='')}/groups")
        if isinstance(payload, Mapping):
            payload = payload.get("groups")
        if not isinstance(payload, (list, tuple)):
            return []
        return [_group_from_payload(item) for item in payload if isinstance(item, Mapping)]


def load_secondary_system() -> Optional[SecondaryIdentitySystem]:
    """Return the configured bridge, or ``None`` when the capability is off."""

    if not is_secondary_system_enabled():
        return None
    url = get_secondary_url()
    if not url:
        logger.warning(
            "PASSPORT_SECONDARY_ENABLED is set without PASSPORT_SECONDARY_URL; "
            "resolving with coarse roles only"
        )
        return None
    return HttpSecondaryIdentitySystem(url, timeout=get_secondary_timeout())


__all__ = [
    "HttpSecondaryIdentitySystem",
    "StaticSecondaryIdentitySystem",
    "load_secondary_system",
]

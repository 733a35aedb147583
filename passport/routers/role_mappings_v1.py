"""Versioned administrative role mapping endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from ..mappings import MappingRecord
from ..models import MappingKind
from ..observability.metrics import increment_admin_action
from ..schemas import (
    CoarseRoleMappingSet,
    EntityClassMappingSet,
    RoleMappingOut,
    RoleMappingsPage,
    RoleOption,
)
from ..security.tokens import require_api_token
from ..services import PassportServices, get_services


router = APIRouter(
    prefix="/v1/admin/role-mappings",
    tags=["v1", "admin"],
    dependencies=[Depends(require_api_token)],
)


def _serialize_mapping(record: MappingRecord) -> RoleMappingOut:
    return RoleMappingOut(
        id=record.id,
        client_id=record.client_id,
        mapping_kind=record.mapping_kind.value,
        coarse_role_key=record.coarse_role_key,
        entity_class_id=record.entity_class_id,
        role=record.role,
        priority=record.priority,
    )


@router.get("", response_model=RoleMappingsPage, summary="List role mappings")
def list_mappings(
    client_id: Optional[str] = Query(None),
    kind: Optional[MappingKind] = Query(None),
    services: PassportServices = Depends(get_services),
):
    items = [_serialize_mapping(m) for m in services.mappings.list(client_id, kind)]
    return RoleMappingsPage(items=items, total=len(items))


@router.get("/roles", response_model=List[RoleOption], summary="Assignable roles")
def list_role_options(services: PassportServices = Depends(get_services)):
    return [RoleOption(value=value, label=label) for value, label in services.catalog.options()]


@router.put("/coarse-role", response_model=RoleMappingOut, summary="Set a coarse role mapping")
def set_coarse_role_mapping(
    payload: CoarseRoleMappingSet = Body(...),
    services: PassportServices = Depends(get_services),
):
    services.clients.get_by_public_id(payload.client_id)
    record = services.mappings.set_coarse_role_mapping(
        payload.client_id,
        payload.coarse_role_key,
        payload.role,
        payload.priority,
    )
    increment_admin_action("set_coarse_role_mapping")
    return _serialize_mapping(record)


@router.put("/entity-class", response_model=RoleMappingOut, summary="Set an entity class mapping")
def set_entity_class_mapping(
    payload: EntityClassMappingSet = Body(...),
    services: PassportServices = Depends(get_services),
):
    services.clients.get_by_public_id(payload.client_id)
    record = services.mappings.set_entity_class_mapping(
        payload.client_id,
        payload.entity_class_id,
        payload.role,
        payload.priority,
    )
    increment_admin_action("set_entity_class_mapping")
    return _serialize_mapping(record)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a mapping")
def delete_mapping(
    id: int = Path(..., ge=1),
    services: PassportServices = Depends(get_services),
):
    services.mappings.delete(id)
    increment_admin_action("delete_mapping")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Versioned administrative role override endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from ..observability.metrics import increment_admin_action
from ..overrides import OverrideRecord
from ..schemas import (
    RoleOverrideCreate,
    RoleOverrideOut,
    RoleOverridesPage,
    RoleOverrideUpdate,
)
from ..security.tokens import require_api_token
from ..services import PassportServices, get_services


router = APIRouter(
    prefix="/v1/admin/role-overrides",
    tags=["v1", "admin"],
    dependencies=[Depends(require_api_token)],
)


def _serialize_override(record: OverrideRecord) -> RoleOverrideOut:
    return RoleOverrideOut(
        id=record.id,
        client_id=record.client_id,
        primary_identity_id=record.primary_identity_id,
        secondary_entity_id=record.secondary_entity_id,
        role=record.role,
    )


@router.get("", response_model=RoleOverridesPage, summary="List role overrides")
def list_overrides(
    client_id: Optional[str] = Query(None),
    services: PassportServices = Depends(get_services),
):
    items = [_serialize_override(o) for o in services.overrides.list(client_id)]
    return RoleOverridesPage(items=items, total=len(items))


@router.post(
    "",
    response_model=RoleOverrideOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a role override",
)
def create_override(
    payload: RoleOverrideCreate = Body(...),
    services: PassportServices = Depends(get_services),
):
    # Rules for an unregistered client would apply once that id is registered.
    services.clients.get_by_public_id(payload.client_id)
    if payload.primary_identity_id is not None:
        record = services.overrides.create_override_for_identity(
            payload.primary_identity_id, payload.client_id, payload.role
        )
    else:
        record = services.overrides.create_override_for_entity(
            payload.secondary_entity_id, payload.client_id, payload.role
        )
    increment_admin_action("create_override")
    return _serialize_override(record)


@router.patch("/{id}", response_model=RoleOverrideOut, summary="Change an override's role")
def update_override(
    id: int = Path(..., ge=1),
    payload: RoleOverrideUpdate = Body(...),
    services: PassportServices = Depends(get_services),
):
    record = services.overrides.update_role(id, payload.role)
    increment_admin_action("update_override")
    return _serialize_override(record)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an override")
def delete_override(
    id: int = Path(..., ge=1),
    services: PassportServices = Depends(get_services),
):
    services.overrides.delete(id)
    increment_admin_action("delete_override")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

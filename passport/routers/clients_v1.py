"""Versioned administrative client registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..clients import ClientRecord
from ..observability.metrics import increment_admin_action
from ..schemas import (
    ClientCreate,
    ClientDeleted,
    ClientOut,
    ClientsPage,
    ClientUpdate,
    ClientUpdateResult,
    ClientWithSecret,
)
from ..security.tokens import require_api_token
from ..services import PassportServices, get_services


router = APIRouter(
    prefix="/v1/admin/clients",
    tags=["v1", "admin"],
    dependencies=[Depends(require_api_token)],
)


def _serialize_client(record: ClientRecord) -> ClientOut:
    return ClientOut(
        id=record.id,
        client_id=record.client_id,
        name=record.name,
        redirect_uri=record.redirect_uri,
        is_active=record.is_active,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.get("", response_model=ClientsPage, summary="List clients")
def list_clients(
    include_inactive: bool = Query(False),
    services: PassportServices = Depends(get_services),
):
    items = [_serialize_client(record) for record in services.clients.list(include_inactive)]
    return ClientsPage(items=items, total=len(items))


@router.post(
    "",
    response_model=ClientWithSecret,
    status_code=status.HTTP_201_CREATED,
    summary="Register a client",
)
def create_client(
    payload: ClientCreate = Body(...),
    services: PassportServices = Depends(get_services),
):
    record, secret = services.clients.create(
        payload.client_id,
        payload.name,
        payload.redirect_uri,
        is_active=payload.is_active,
    )
    increment_admin_action("create_client")
    return ClientWithSecret(**_serialize_client(record).model_dump(), client_secret=secret)


@router.get("/{id}", response_model=ClientOut, summary="Get a client")
def get_client(
    id: int = Path(..., ge=1),
    services: PassportServices = Depends(get_services),
):
    return _serialize_client(services.clients.get(id))


@router.patch("/{id}", response_model=ClientUpdateResult, summary="Update a client")
def update_client(
    id: int = Path(..., ge=1),
    payload: ClientUpdate = Body(...),
    services: PassportServices = Depends(get_services),
):
    record, secret = services.clients.update(
        id,
        name=payload.name,
        redirect_uri=payload.redirect_uri,
        is_active=payload.is_active,
        regenerate_secret=payload.regenerate_secret,
    )
    increment_admin_action("update_client")
    return ClientUpdateResult(**_serialize_client(record).model_dump(), client_secret=secret)


@router.delete("/{id}", response_model=ClientDeleted, summary="Delete a client and its rules")
def delete_client(
    id: int = Path(..., ge=1),
    services: PassportServices = Depends(get_services),
):
    deleted = services.clients.delete(id)
    increment_admin_action("delete_client")
    return ClientDeleted(
        client_id=deleted.client.client_id,
        mappings_deleted=deleted.mappings_deleted,
        overrides_deleted=deleted.overrides_deleted,
    )

"""Endpoints consumed by the identity provider's protocol layer.

The authorize step binds the requested client id to the identity and an
opaque request key. The claims step resolves ``user_role`` from an explicit
client id or from that binding. Token issuance and aborted flows release the
binding.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Response

from ..observability.logging import bind_client_id
from ..resolution import Identity
from ..schemas import (
    AuthorizeContextRequest,
    ClaimsRequest,
    IdentityIn,
    ReleaseContextRequest,
    ReleaseContextResponse,
    ResolveRequest,
    ResolveResponse,
    SecretVerifyRequest,
    SecretVerifyResponse,
)
from ..security.tokens import require_api_token
from ..services import PassportServices, get_services


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/oidc",
    tags=["v1", "oidc"],
    dependencies=[Depends(require_api_token)],
)


def _to_identity(payload: IdentityIn) -> Identity:
    return Identity(
        primary_id=str(payload.id),
        coarse_roles=frozenset(payload.coarse_roles),
        email=payload.email,
        given_name=payload.given_name,
        family_name=payload.family_name,
        display_name=payload.display_name,
    )


@router.get("/clients", response_model=Dict[str, Dict[str, Any]], summary="Registered clients")
def registered_clients(services: PassportServices = Depends(get_services)):
    return services.clients.registered_clients()


@router.post("/clients/verify", response_model=SecretVerifyResponse, summary="Verify a client secret")
def verify_client_secret(
    payload: SecretVerifyRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    return SecretVerifyResponse(
        valid=services.clients.verify_secret(payload.client_id, payload.client_secret)
    )


@router.post("/authorize", status_code=204, summary="Bind a client id to an authorization flow")
def bind_authorize_context(
    payload: AuthorizeContextRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    services.client_context.bind(str(payload.identity_id), payload.request_key, payload.client_id)
    return Response(status_code=204)


@router.post("/claims", response_model=Dict[str, Any], summary="Build identity token claims")
def build_claims(
    payload: ClaimsRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    identity = _to_identity(payload.identity)
    client_id = payload.client_id
    if client_id is None and payload.request_key:
        client_id = services.client_context.get(identity.primary_id, payload.request_key)
    if client_id is None:
        logger.info("No client id available for claims; granting no access")
    bind_client_id(client_id)
    return services.claims.build(identity, client_id, payload.claims)


def _release(services: PassportServices, payload: ReleaseContextRequest) -> ReleaseContextResponse:
    released = services.client_context.release(str(payload.identity_id), payload.request_key)
    return ReleaseContextResponse(released=released)


@router.post("/token-issued", response_model=ReleaseContextResponse, summary="Release after token issuance")
def token_issued(
    payload: ReleaseContextRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    return _release(services, payload)


@router.post("/abort", response_model=ReleaseContextResponse, summary="Release after an aborted flow")
def abort_flow(
    payload: ReleaseContextRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    return _release(services, payload)


@router.post("/resolve", response_model=ResolveResponse, summary="Resolve a role with its source tier")
def resolve_role(
    payload: ResolveRequest = Body(...),
    services: PassportServices = Depends(get_services),
):
    bind_client_id(payload.client_id)
    resolution = services.resolver.explain(_to_identity(payload.identity), payload.client_id)
    return ResolveResponse(client_id=payload.client_id, role=resolution.role, tier=resolution.tier)

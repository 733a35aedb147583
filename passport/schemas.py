from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, constr, model_validator


ClientIdStr = constr(strip_whitespace=True, min_length=1, max_length=100)
ReferenceId = Union[int, constr(strip_whitespace=True, min_length=1, max_length=100)]


class ClientOut(BaseModel):
    id: int
    client_id: str
    name: str
    redirect_uri: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClientWithSecret(ClientOut):
    client_secret: str


class ClientUpdateResult(ClientOut):
    client_secret: Optional[str] = None


class ClientsPage(BaseModel):
    items: List[ClientOut]
    total: int


class ClientCreate(BaseModel):
    client_id: ClientIdStr
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    redirect_uri: constr(strip_whitespace=True, min_length=1, max_length=500)
    is_active: bool = True


class ClientUpdate(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    redirect_uri: Optional[constr(strip_whitespace=True, min_length=1, max_length=500)] = None
    is_active: Optional[bool] = None
    regenerate_secret: bool = False


class ClientDeleted(BaseModel):
    client_id: str
    mappings_deleted: int = Field(ge=0)
    overrides_deleted: int = Field(ge=0)


class RoleMappingOut(BaseModel):
    id: int
    client_id: str
    mapping_kind: Literal["coarse_role", "entity_class"]
    coarse_role_key: Optional[str] = None
    entity_class_id: Optional[str] = None
    role: str
    priority: int


class RoleMappingsPage(BaseModel):
    items: List[RoleMappingOut]
    total: int


class CoarseRoleMappingSet(BaseModel):
    client_id: ClientIdStr
    coarse_role_key: constr(strip_whitespace=True, min_length=1, max_length=100)
    role: str
    priority: Optional[int] = None


class EntityClassMappingSet(BaseModel):
    client_id: ClientIdStr
    entity_class_id: ReferenceId
    role: str
    priority: int = 0


class RoleOverrideOut(BaseModel):
    id: int
    client_id: str
    primary_identity_id: Optional[str] = None
    secondary_entity_id: Optional[str] = None
    role: str


class RoleOverridesPage(BaseModel):
    items: List[RoleOverrideOut]
    total: int


class RoleOverrideCreate(BaseModel):
    client_id: ClientIdStr
    primary_identity_id: Optional[ReferenceId] = None
    secondary_entity_id: Optional[ReferenceId] = None
    role: str

    @model_validator(mode="after")
    def _exactly_one_reference(self) -> "RoleOverrideCreate":
        if (self.primary_identity_id is None) == (self.secondary_entity_id is None):
            raise ValueError(
                "Provide exactly one of primary_identity_id or secondary_entity_id"
            )
        return self


class RoleOverrideUpdate(BaseModel):
    role: str


class RoleOption(BaseModel):
    value: str
    label: str


class IdentityIn(BaseModel):
    id: ReferenceId
    coarse_roles: List[str] = Field(default_factory=list)
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    display_name: Optional[str] = None


class SecretVerifyRequest(BaseModel):
    client_id: ClientIdStr
    client_secret: str


class SecretVerifyResponse(BaseModel):
    valid: bool


class AuthorizeContextRequest(BaseModel):
    identity_id: ReferenceId
    request_key: constr(strip_whitespace=True, min_length=1, max_length=255)
    client_id: ClientIdStr


class ReleaseContextRequest(BaseModel):
    identity_id: ReferenceId
    request_key: constr(strip_whitespace=True, min_length=1, max_length=255)


class ReleaseContextResponse(BaseModel):
    released: bool


class ClaimsRequest(BaseModel):
    identity: IdentityIn
    client_id: Optional[ClientIdStr] = None
    request_key: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class ResolveRequest(BaseModel):
    identity: IdentityIn
    client_id: ClientIdStr


class ResolveResponse(BaseModel):
    client_id: str
    role: str
    tier: str

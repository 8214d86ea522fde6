"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None


# ---- User ----
class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    custom_role: Optional[str] = None
    effective_role: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

class RoleAssignRequest(BaseModel):
    custom_role: str = Field(..., min_length=1)


# ---- Permissions ----
class PermissionsOut(BaseModel):
    loading: bool
    effective_role: Optional[str] = None
    is_admin: bool = False
    modules: List[str] = []
    actions: Dict[str, List[str]] = {}

class PermissionCheckOut(BaseModel):
    module: str
    action: Optional[str] = None
    action_key: Optional[str] = None
    can_access_module: bool
    can_perform_action: Optional[bool] = None
    tooltip: Optional[str] = None
    render: str


# ---- SAP gateway ----
class ODataModuleRequest(BaseModel):
    """Body of the named-module endpoint; ``filters`` is an OData $filter expression."""
    model_config = ConfigDict(extra="ignore")

    module: Optional[str] = None
    filters: Optional[str] = None
    top: Optional[int] = None
    skip: Optional[int] = None

class ODataRawRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    service: Optional[str] = None
    entity_set: Optional[str] = Field(None, alias="entitySet")
    filters: Optional[str] = None
    top: Optional[int] = None
    skip: Optional[int] = None

class SyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entity: Optional[str] = None
    clear_existing: bool = Field(False, alias="clearExisting")


# ---- Audit ----
class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event: str
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    user_id: Optional[int] = None
    sap_entity: Optional[str] = None
    record_count: Optional[int] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    note: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None


# ---- Common ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None

"""Admin API router — user roles and audit trail."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from erp_insights.db.session import get_db
from erp_insights.schemas.schemas import AuditLogOut, MessageResponse, RoleAssignRequest, UserOut
from erp_insights.services.audit_service import AuditEvent, audit_service
from erp_insights.services.auth_service import auth_service, user_to_dict
from erp_insights.core.exceptions import ResourceNotFoundError, ValidationError, bad_request, not_found
from erp_insights.core.permissions import PermissionsProvider
from erp_insights.core.roles import RolePolicyTable
from erp_insights.core.security import get_policy_table, require_admin

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users")
async def admin_list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    provider: PermissionsProvider = Depends(require_admin),
):
    """List all users with their effective role (admin only)."""
    result = auth_service.list_users(db, page, page_size)
    return {
        "users": [UserOut(**user_to_dict(u)) for u in result["users"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/roles")
async def admin_list_roles(
    policy_table: RolePolicyTable = Depends(get_policy_table),
    provider: PermissionsProvider = Depends(require_admin),
):
    """Roles that can be assigned as a custom role."""
    return {"roles": policy_table.assignable_roles(), "default_role": policy_table.fallback_role}


@router.put("/users/{user_id}/role", response_model=MessageResponse)
async def admin_set_user_role(
    user_id: int,
    body: RoleAssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    policy_table: RolePolicyTable = Depends(get_policy_table),
    provider: PermissionsProvider = Depends(require_admin),
):
    """Assign a user's custom role (admin only)."""
    try:
        change = auth_service.set_custom_role(db, policy_table, user_id, body.custom_role)
    except ValidationError as e:
        raise bad_request(e.message)
    except ResourceNotFoundError as e:
        raise not_found(e.message)

    audit_service.role_changed(db, provider.user, user_id, change["old"], change["new"], request=request)
    return MessageResponse(message="User role updated", detail=change)


@router.get("/audit")
async def get_audit_logs(
    event: Optional[AuditEvent] = Query(None),
    user_id: Optional[int] = Query(None),
    sap_entity: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    provider: PermissionsProvider = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = audit_service.query(db, event, user_id, sap_entity, page, page_size)
    return {
        "logs": [AuditLogOut.model_validate(log) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
    }

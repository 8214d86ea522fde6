"""Permissions API router — what the signed-in user may see and do."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_insights.core.permissions import (
    AccessDenied, PermissionsProvider, permission_button, protected_module,
)
from erp_insights.core.roles import RolePolicyTable, action_key_for
from erp_insights.core.security import get_current_user_id, get_permissions, get_policy_table
from erp_insights.schemas.schemas import PermissionCheckOut, PermissionsOut

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/me", response_model=PermissionsOut)
async def my_permissions(
    provider: PermissionsProvider = Depends(get_permissions),
    user_id: int = Depends(get_current_user_id),
):
    """Effective role, reachable modules and the action map."""
    return PermissionsOut(**provider.to_dict())


@router.get("/matrix")
async def permission_matrix(
    policy_table: RolePolicyTable = Depends(get_policy_table),
    user_id: int = Depends(get_current_user_id),
):
    """Role x module matrix, as shown on the role management page."""
    return {
        "fallback_role": policy_table.fallback_role,
        "roles": policy_table.matrix(),
    }


@router.get("/check", response_model=PermissionCheckOut)
async def check_permission(
    module: str = Query(..., min_length=1),
    action: Optional[str] = Query("view"),
    provider: PermissionsProvider = Depends(get_permissions),
    user_id: int = Depends(get_current_user_id),
):
    """Evaluate a page gate and report what it would render."""
    decision = protected_module(provider, module, children="children", action=action or None)
    if decision is None:
        render = "nothing"
    elif isinstance(decision, AccessDenied):
        render = "access_denied"
    else:
        render = "children"

    key = action_key_for(module)
    button = permission_button(provider, key.value, action, show_disabled=True) if key and action else None
    return PermissionCheckOut(
        module=module,
        action=action or None,
        action_key=key.value if key else None,
        can_access_module=provider.can_access_module(module),
        can_perform_action=button.enabled if button else None,
        tooltip=button.tooltip if button else None,
        render=render,
    )

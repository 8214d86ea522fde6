"""Session-scoped permission state and the render decisions built on it.

A ``PermissionsProvider`` resolves the signed-in user once, derives the
effective role and answers module/action queries against a
``RolePolicyTable``. ``protected_module`` and ``permission_button`` turn
those answers into what a page or a button should render.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from fastapi import Request

from erp_insights.core.exceptions import PermissionScopeError
from erp_insights.core.roles import (
    ADMIN_ROLE,
    Action,
    ActionModuleKey,
    NavModuleId,
    RolePolicy,
    RolePolicyTable,
    action_key_for,
)

logger = logging.getLogger("erp_insights.permissions")

BUILTIN_ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class SessionUser:
    """The signed-in user as seen by the authorization engine."""

    id: int
    email: str
    role: str
    custom_role: Optional[str] = None
    full_name: Optional[str] = None


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a session lookup: either ``user`` or ``error`` is set."""

    user: Optional[SessionUser] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.user is not None

    @classmethod
    def success(cls, user: SessionUser) -> "SessionResult":
        return cls(user=user)

    @classmethod
    def failure(cls, error: str) -> "SessionResult":
        return cls(error=error)


def effective_role_for(user: Optional[SessionUser], default_role: str) -> Optional[str]:
    """Built-in ``admin`` wins over any custom role; no custom role means ``default_role``."""
    if user is None:
        return None
    if user.role == BUILTIN_ADMIN_ROLE:
        return ADMIN_ROLE
    return user.custom_role or default_role


class ProviderState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ANONYMOUS = "anonymous"


SessionLoader = Callable[[], Awaitable[SessionResult]]


class PermissionsProvider:
    """Loads the session once and answers permission queries for it.

    Queries made while loading, or after a failed lookup, are denied.
    Role changes are only picked up by a new provider.
    """

    def __init__(
        self,
        session_loader: SessionLoader,
        policy_table: RolePolicyTable,
        default_role: str,
    ):
        self._session_loader = session_loader
        self._policy_table = policy_table
        self._default_role = default_role
        self._lock = asyncio.Lock()
        self._state = ProviderState.LOADING
        self._result: Optional[SessionResult] = None

    async def load(self) -> "PermissionsProvider":
        """Run the session lookup; concurrent callers share a single lookup."""
        if self._state is not ProviderState.LOADING:
            return self
        async with self._lock:
            if self._state is ProviderState.LOADING:
                try:
                    result = await self._session_loader()
                except Exception as e:
                    result = SessionResult.failure(str(e) or type(e).__name__)
                self._result = result
                if result.ok:
                    self._state = ProviderState.READY
                else:
                    logger.warning("Failed to load user: %s", result.error)
                    self._state = ProviderState.ANONYMOUS
        return self

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state is ProviderState.LOADING

    @property
    def user(self) -> Optional[SessionUser]:
        return self._result.user if self._result else None

    @property
    def session_error(self) -> Optional[str]:
        return self._result.error if self._result else None

    @property
    def effective_role(self) -> Optional[str]:
        return effective_role_for(self.user, self._default_role)

    @property
    def permissions(self) -> Optional[RolePolicy]:
        role = self.effective_role
        if role is None:
            return None
        return self._policy_table.resolve(role)

    def can_access_module(self, module_id: Union[NavModuleId, str]) -> bool:
        policy = self.permissions
        return policy is not None and policy.allows_module(module_id)

    def can_perform_action(
        self,
        module_key: Union[ActionModuleKey, str, None],
        action: Union[Action, str],
    ) -> bool:
        policy = self.permissions
        return policy is not None and policy.allows_action(module_key, action)

    def is_admin(self) -> bool:
        return self.effective_role == ADMIN_ROLE

    def to_dict(self) -> Dict[str, Any]:
        policy = self.permissions
        return {
            "loading": self.loading,
            "effective_role": self.effective_role,
            "is_admin": self.is_admin(),
            "modules": policy.to_dict()["modules"] if policy else [],
            "actions": policy.to_dict()["actions"] if policy else {},
        }


def use_permissions(request: Request) -> PermissionsProvider:
    """Return the provider attached to this request.

    Raises:
        PermissionScopeError: If no provider was installed for the request.
    """
    provider = getattr(request.state, "permissions", None)
    if provider is None:
        raise PermissionScopeError("use_permissions must be used within a PermissionsProvider")
    return provider


@dataclass(frozen=True)
class AccessDenied:
    """Placeholder rendered when a module is not reachable for the role."""

    title: str = "Access Denied"
    message: str = "You don't have permission to access this module."


ACCESS_DENIED = AccessDenied()


def protected_module(
    provider: PermissionsProvider,
    module_id: Union[NavModuleId, str],
    children: Any,
    action: Optional[Union[Action, str]] = Action.VIEW,
    fallback: Any = None,
) -> Any:
    """Decide what a gated page renders.

    Nothing while loading; ``fallback`` or ``ACCESS_DENIED`` when the module
    is not reachable; ``fallback`` or nothing when the action is denied;
    otherwise ``children``.
    """
    if provider.loading:
        return None
    if not provider.can_access_module(module_id):
        return fallback if fallback is not None else ACCESS_DENIED
    if action and not provider.can_perform_action(action_key_for(module_id), action):
        return fallback
    return children


@dataclass(frozen=True)
class ButtonState:
    enabled: bool
    tooltip: Optional[str] = None


def permission_button(
    provider: PermissionsProvider,
    module: Union[ActionModuleKey, str],
    action: Union[Action, str],
    show_disabled: bool = False,
) -> Optional[ButtonState]:
    """Return how an action button renders, or None when it is hidden."""
    if provider.can_perform_action(module, action):
        return ButtonState(enabled=True)
    if not show_disabled:
        return None
    module_label = module.value if isinstance(module, Enum) else module
    action_label = action.value if isinstance(action, Enum) else action
    return ButtonState(
        enabled=False,
        tooltip=f"You don't have permission to {action_label} {module_label}",
    )

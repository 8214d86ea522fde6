"""JWT authentication, session resolution and permission dependencies."""

import bcrypt
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Union

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from erp_insights.core.config import settings
from erp_insights.core.exceptions import forbidden, unauthorized
from erp_insights.core.permissions import PermissionsProvider, SessionResult
from erp_insights.core.roles import Action, NavModuleId, RolePolicyTable, action_key_for, build_policy_table
from erp_insights.db.session import get_db

logger = logging.getLogger("erp_insights.security")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token.

    Raises:
        JWTError: If the token is malformed, badly signed or expired.
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


@lru_cache
def get_policy_table() -> RolePolicyTable:
    """Process-wide role policy table, loaded once."""
    return build_policy_table(settings.ROLE_POLICY_FILE, settings.DEFAULT_ROLE)


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> SessionResult:
    """Resolve the bearer token to a user. Never raises; failures come back as a result."""
    from erp_insights.services.auth_service import auth_service

    if credentials is None:
        return SessionResult.failure("Not authenticated")
    try:
        return auth_service.resolve_session(db, credentials.credentials)
    except Exception as e:
        logger.exception("Session lookup failed")
        return SessionResult.failure(f"Session lookup failed: {e}")


async def get_permissions(
    request: Request,
    session: SessionResult = Depends(get_session),
    policy_table: RolePolicyTable = Depends(get_policy_table),
) -> PermissionsProvider:
    """Build the request's PermissionsProvider and attach it to ``request.state``."""
    async def load_session() -> SessionResult:
        return session

    provider = PermissionsProvider(load_session, policy_table, settings.DEFAULT_ROLE)
    await provider.load()
    request.state.permissions = provider
    return provider


async def get_current_user_id(
    provider: PermissionsProvider = Depends(get_permissions),
) -> int:
    """Return the signed-in user's id or answer 401."""
    if provider.user is None:
        raise unauthorized()
    return provider.user.id


def _label(value) -> str:
    return getattr(value, "value", value)


class RequireModule:
    """Dependency that checks module access and, optionally, an action on it."""

    def __init__(self, module: Union[NavModuleId, str], action: Optional[Union[Action, str]] = None):
        self.module = module
        self.action = action

    async def __call__(
        self,
        provider: PermissionsProvider = Depends(get_permissions),
    ) -> PermissionsProvider:
        if provider.user is None:
            raise unauthorized()
        if not provider.can_access_module(self.module):
            raise forbidden(
                f"Role '{provider.effective_role}' cannot access module '{_label(self.module)}'."
            )
        if self.action and not provider.can_perform_action(action_key_for(self.module), self.action):
            raise forbidden(
                f"Role '{provider.effective_role}' cannot {_label(self.action)} '{_label(self.module)}'."
            )
        return provider


async def require_admin(
    provider: PermissionsProvider = Depends(get_permissions),
) -> PermissionsProvider:
    """Dependency that only lets the Admin role through."""
    if provider.user is None:
        raise unauthorized()
    if not provider.is_admin():
        raise forbidden(f"Role '{provider.effective_role}' insufficient. Requires Admin.")
    return provider

"""Auth service — login, session lookup, role administration."""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from jose import JWTError
from sqlalchemy.orm import Session

from erp_insights.models.user import User
from erp_insights.core.config import settings
from erp_insights.core.permissions import SessionResult, SessionUser, effective_role_for
from erp_insights.core.roles import RolePolicyTable
from erp_insights.core.security import (
    hash_password, verify_password, create_access_token, decode_token,
)
from erp_insights.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)

logger = logging.getLogger("erp_insights.auth")


def to_session_user(user: User) -> SessionUser:
    return SessionUser(
        id=user.id,
        email=user.email,
        role=user.role,
        custom_role=user.custom_role,
        full_name=user.full_name,
    )


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "custom_role": user.custom_role,
        "effective_role": effective_role_for(to_session_user(user), settings.DEFAULT_ROLE),
        "is_active": user.is_active,
        "created_at": user.created_at,
    }


class AuthService:
    """Handles authentication and user management."""

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return a JWT access token.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        access_token = create_access_token({"sub": str(user.id), "email": user.email})

        user.last_login_at = datetime.now(timezone.utc)
        db.commit()

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": user_to_dict(user),
        }

    @staticmethod
    def resolve_session(db: Session, token: str) -> SessionResult:
        """Look up the user behind a bearer token.

        Bad tokens and unknown or inactive users come back as a failed
        ``SessionResult`` instead of an exception.
        """
        try:
            payload = decode_token(token)
        except JWTError as e:
            return SessionResult.failure(f"Invalid or expired token: {e}")

        sub = payload.get("sub")
        if sub is None or not str(sub).isdigit():
            return SessionResult.failure("Invalid token payload")

        user = db.query(User).filter(User.id == int(sub)).first()
        if user is None:
            return SessionResult.failure(f"User {sub} not found")
        if not user.is_active:
            return SessionResult.failure(f"User {sub} is deactivated")
        return SessionResult.success(to_session_user(user))

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        full_name: str,
        role: str = "user",
        custom_role: Optional[str] = None,
    ) -> User:
        """Create a new user."""
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError(f"User with email {email} already exists")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=role,
            custom_role=custom_role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(db: Session, page: int = 1, page_size: int = 20):
        """List all users with pagination."""
        total = db.query(User).count()
        users = (
            db.query(User)
            .order_by(User.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}

    @staticmethod
    def set_custom_role(
        db: Session, policy_table: RolePolicyTable, user_id: int, custom_role: str,
    ) -> Dict[str, Optional[str]]:
        """Assign a custom role and return the old/new values.

        Raises:
            ValidationError: If the role is not assignable.
            ResourceNotFoundError: If the user does not exist.
        """
        assignable = policy_table.assignable_roles()
        if custom_role not in assignable:
            raise ValidationError(
                f"Unknown role: {custom_role}. Assignable roles: {', '.join(assignable)}"
            )
        user = AuthService.get_user(db, user_id)
        old_role = user.custom_role
        user.custom_role = custom_role
        db.commit()
        logger.info("User %s custom role changed: %s -> %s", user_id, old_role, custom_role)
        return {"old": old_role, "new": custom_role}


auth_service = AuthService()

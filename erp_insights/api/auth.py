"""Auth API router — login and current user."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from erp_insights.db.session import get_db
from erp_insights.schemas.schemas import LoginRequest, TokenResponse, UserOut
from erp_insights.services.auth_service import auth_service, user_to_dict
from erp_insights.core.security import get_current_user_id
from erp_insights.core.exceptions import AuthenticationError, unauthorized

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token."""
    try:
        return auth_service.authenticate(db, body.email, body.password)
    except AuthenticationError as e:
        raise unauthorized(str(e))


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Get current user profile with the effective role."""
    user = auth_service.get_user(db, user_id)
    return UserOut(**user_to_dict(user))

"""Seed the first admin user."""

import logging
from sqlalchemy.orm import Session

from erp_insights.core.config import settings
from erp_insights.models.user import User
from erp_insights.core.security import hash_password

logger = logging.getLogger("erp_insights.seed")


def seed_admin(db: Session) -> None:
    """Create the admin user if no user with that email exists."""
    existing = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if existing:
        return

    db.add(User(
        email=settings.ADMIN_EMAIL,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        full_name="Administrator",
        role="admin",
        is_active=True,
    ))
    db.commit()
    logger.info("Seeded admin user %s", settings.ADMIN_EMAIL)

"""User model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from erp_insights.db.base import Base


class User(Base):
    """Dashboard user.

    ``role`` is the built-in platform role ("admin" or "user");
    ``custom_role`` names an entry of the role policy table.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user")
    custom_role = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

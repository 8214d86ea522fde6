"""Audit log model — append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from erp_insights.db.base import Base


class AuditLog(Base):
    """One role change or SAP sync.

    Role changes set ``user_id`` (the user whose role changed); syncs set
    ``sap_entity`` and ``record_count``. Rows are never updated or deleted.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event = Column(String(50), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    sap_entity = Column(String(100), nullable=True, index=True)
    record_count = Column(Integer, nullable=True)
    old_value = Column(String(100), nullable=True)
    new_value = Column(String(100), nullable=True)
    note = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

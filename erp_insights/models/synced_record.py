"""Local copy of SAP records pulled in by the sync endpoint."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from erp_insights.db.base import Base


class SyncedRecord(Base):
    """One SAP record, already renamed to local field names, stored as JSON."""
    __tablename__ = "synced_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity = Column(String(50), nullable=False, index=True)  # e.g. "SalesOrder"
    payload_json = Column(Text, nullable=False)
    synced_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

"""Models package — import all models so metadata.create_all can discover them."""

from erp_insights.models.user import User
from erp_insights.models.audit_log import AuditLog
from erp_insights.models.synced_record import SyncedRecord

__all__ = ["User", "AuditLog", "SyncedRecord"]

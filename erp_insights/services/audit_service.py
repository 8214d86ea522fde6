"""Audit service — role changes and SAP syncs, written once and never edited."""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from erp_insights.core.permissions import SessionUser
from erp_insights.models.audit_log import AuditLog

logger = logging.getLogger("erp_insights.audit")


class AuditEvent(str, Enum):
    ROLE_CHANGED = "user.role_changed"
    SAP_SYNCED = "sap.synced"


def _client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


class AuditService:

    @staticmethod
    def _write(db: Session, event: AuditEvent, actor: SessionUser, request: Optional[Request], **fields) -> AuditLog:
        entry = AuditLog(
            event=event.value,
            actor_id=actor.id,
            actor_email=actor.email,
            ip_address=_client_ip(request),
            **fields,
        )
        db.add(entry)
        db.commit()
        logger.info("%s by %s: %s", event.value, actor.email, fields)
        return entry

    @staticmethod
    def role_changed(
        db: Session,
        actor: SessionUser,
        user_id: int,
        old_role: Optional[str],
        new_role: Optional[str],
        request: Optional[Request] = None,
    ) -> AuditLog:
        """Record that ``actor`` moved ``user_id`` from ``old_role`` to ``new_role``."""
        return AuditService._write(
            db, AuditEvent.ROLE_CHANGED, actor, request,
            user_id=user_id, old_value=old_role, new_value=new_role,
        )

    @staticmethod
    def sap_synced(
        db: Session,
        actor: SessionUser,
        entity: str,
        record_count: int,
        cleared_existing: bool = False,
        request: Optional[Request] = None,
    ) -> AuditLog:
        """Record a completed sync of ``record_count`` rows of ``entity``."""
        return AuditService._write(
            db, AuditEvent.SAP_SYNCED, actor, request,
            sap_entity=entity,
            record_count=record_count,
            note="replaced existing rows" if cleared_existing else None,
        )

    @staticmethod
    def query(
        db: Session,
        event: Optional[AuditEvent] = None,
        user_id: Optional[int] = None,
        sap_entity: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Newest first. ``user_id`` matches entries the user made or was the subject of."""
        q = db.query(AuditLog)
        if event is not None:
            q = q.filter(AuditLog.event == event.value)
        if user_id is not None:
            q = q.filter(or_(AuditLog.actor_id == user_id, AuditLog.user_id == user_id))
        if sap_entity:
            q = q.filter(AuditLog.sap_entity == sap_entity)

        total = q.count()
        entries = (
            q.order_by(AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"logs": entries, "total": total, "page": page}


audit_service = AuditService()

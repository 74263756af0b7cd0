"""Read access to the append-only audit trail."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select

from audit_service.models.audit import AuditLog

from .base import SQLAlchemyRepository, repository_method


class AuditLogRepository(SQLAlchemyRepository):
    """Query audit log entries. Entries are never updated or deleted."""

    @repository_method
    def get(self, entry_id: int) -> Optional[AuditLog]:
        return self.session.get(AuditLog, entry_id)

    @repository_method
    def list_entries(
        self,
        *,
        limit: int = 100,
        before_id: Optional[int] = None,
        action: Optional[str] = None,
        actor_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[AuditLog]:
        """Return entries newest first, starting below ``before_id``."""

        stmt = select(AuditLog)
        if before_id is not None:
            stmt = stmt.where(AuditLog.id < before_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if actor_id is not None:
            stmt = stmt.where(AuditLog.actor_id == actor_id)
        if target_type:
            stmt = stmt.where(AuditLog.target_type == target_type)
        if target_id:
            stmt = stmt.where(AuditLog.target_id == target_id)
        if since is not None:
            stmt = stmt.where(AuditLog.timestamp >= since)
        if until is not None:
            stmt = stmt.where(AuditLog.timestamp < until)
        stmt = stmt.order_by(AuditLog.id.desc()).limit(limit)
        return self.session.scalars(stmt).all()


__all__ = ["AuditLogRepository"]

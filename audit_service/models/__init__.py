"""Model exports for convenience."""

from audit_service.db.session import Base
from audit_service.models.audit import AuditLog

__all__ = [
    "Base",
    "AuditLog",
]

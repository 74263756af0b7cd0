"""Entry point business logic uses to record audit trail entries."""

from __future__ import annotations

import logging
from typing import Any, Optional

from flask import current_app, has_app_context, has_request_context, request

from audit_service.services.audit_errors import AuditError
from audit_service.services.audit_record import ActorId, AuditRecord
from audit_service.services.audit_sink import AuditSink

logger = logging.getLogger(__name__)

EXTENSION_KEY = "audit_logger"


def client_ip() -> Optional[str]:
    """Return the originating client address of the current request."""

    if not has_request_context():
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    ip_address = forwarded or request.remote_addr or ""
    return ip_address.split(",")[0].strip() or None


class AuditLogger:
    """Fail-silent façade over an ``AuditSink``.

    ``log_audit`` never raises and never waits for the database: it builds
    the record, hands it to the sink and returns.
    """

    def __init__(self, sink: AuditSink) -> None:
        self.sink = sink

    def log_audit(
        self,
        actor_id: ActorId,
        action: str,
        target_id: Any = None,
        target_type: Optional[str] = None,
        details: Optional[str] = None,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        try:
            if ip_address is None:
                ip_address = client_ip()
            record = AuditRecord.create(
                actor_id,
                action,
                target_id,
                target_type,
                details,
                reason,
                ip_address,
            )
            self.sink.submit(record)
        except AuditError as exc:
            logger.warning(
                "audit.submit_rejected action=%s actor_id=%s error=%s",
                action,
                actor_id,
                exc,
            )
        except Exception:
            logger.exception(
                "audit.submit_failed action=%s actor_id=%s", action, actor_id
            )


def get_audit_logger() -> Optional[AuditLogger]:
    """Return the ``AuditLogger`` registered on the current application."""

    if not has_app_context():
        return None
    return current_app.extensions.get(EXTENSION_KEY)


def log_audit(
    actor_id: ActorId,
    action: str,
    target_id: Any = None,
    target_type: Optional[str] = None,
    details: Optional[str] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> None:
    """Record an audit event through the application's ``AuditLogger``."""

    audit_logger = get_audit_logger()
    if audit_logger is None:
        logger.warning(
            "audit.no_logger action=%s actor_id=%s", action, actor_id
        )
        return
    audit_logger.log_audit(
        actor_id,
        action,
        target_id,
        target_type,
        details,
        reason,
        ip_address,
    )


__all__ = ["AuditLogger", "client_ip", "get_audit_logger", "log_audit"]

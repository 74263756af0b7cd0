"""Read-only admin endpoints for the audit trail."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from marshmallow import ValidationError

from audit_service.auth.jwt_handler import (
    AUDIT_VIEW_PERMISSION,
    require_permission,
)
from audit_service.db.session import session_scope
from audit_service.models.repositories import (
    AuditLogRepository,
    RepositoryError,
)
from audit_service.routes.helpers import error_response, repository_error_response
from audit_service.schemas.audit import AuditLogQuerySchema, AuditLogSchema

audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/admin/audit-logs")

entry_schema = AuditLogSchema()
entries_schema = AuditLogSchema(many=True)
query_schema = AuditLogQuerySchema()


@audit_logs_bp.get("")
@require_permission(AUDIT_VIEW_PERMISSION)
def list_audit_logs():
    """Return audit entries newest first, filtered and keyset paginated."""

    try:
        filters = query_schema.load(request.args)
    except ValidationError as exc:
        return error_response(422, "invalid query parameters", exc.messages)

    limit = filters["limit"]
    try:
        with session_scope(name="audit_logs.list") as session:
            entries = AuditLogRepository(session).list_entries(**filters)
            items = entries_schema.dump(entries)
    except RepositoryError as exc:
        return repository_error_response(exc)

    next_before_id = items[-1]["id"] if len(items) == limit else None
    return jsonify({"items": items, "next_before_id": next_before_id})


@audit_logs_bp.get("/<int:entry_id>")
@require_permission(AUDIT_VIEW_PERMISSION)
def get_audit_log(entry_id: int):
    """Return a single audit entry."""

    try:
        with session_scope(name="audit_logs.get") as session:
            entry = AuditLogRepository(session).get(entry_id)
            payload = entry_schema.dump(entry) if entry is not None else None
    except RepositoryError as exc:
        return repository_error_response(exc)
    if payload is None:
        return error_response(404, "audit entry not found")
    return jsonify({"entry": payload})

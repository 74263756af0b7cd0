"""Audit trail Marshmallow schemas."""
from __future__ import annotations

from datetime import timezone
from typing import Any, Mapping

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    pre_load,
    validates_schema,
)
from marshmallow.validate import Length, Range

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


class AuditLogSchema(Schema):
    """Schema for serializing ``AuditLog`` rows."""

    id = fields.Integer(required=True)
    actor_id = fields.Integer(allow_none=True)
    action = fields.String(required=True)
    target_id = fields.String(allow_none=True)
    target_type = fields.String(allow_none=True)
    details = fields.String(allow_none=True)
    reason = fields.String(allow_none=True)
    timestamp = fields.DateTime(required=True)
    ip_address = fields.String(allow_none=True)


class AuditLogQuerySchema(Schema):
    """Schema validating audit trail listing filters."""

    class Meta:
        unknown = EXCLUDE

    limit = fields.Integer(
        load_default=DEFAULT_LIMIT,
        validate=Range(min=1, max=MAX_LIMIT),
    )
    before_id = fields.Integer(validate=Range(min=1))
    action = fields.String(validate=Length(min=1, max=50))
    actor_id = fields.Integer()
    target_type = fields.String(validate=Length(min=1, max=50))
    target_id = fields.String(validate=Length(min=1, max=50))
    since = fields.AwareDateTime(default_timezone=timezone.utc)
    until = fields.AwareDateTime(default_timezone=timezone.utc)

    @pre_load
    def _drop_blank(
        self,
        data: Mapping[str, Any],
        **_: Any,
    ) -> dict[str, Any]:
        return {
            key: value.strip() if isinstance(value, str) else value
            for key, value in data.items()
            if not (isinstance(value, str) and not value.strip())
        }

    @validates_schema
    def _check_range(self, data: dict[str, Any], **_: Any) -> None:
        since = data.get("since")
        until = data.get("until")
        if since is not None and until is not None and since >= until:
            raise ValidationError("since must be before until", "until")

    @post_load
    def _to_utc(self, data: dict[str, Any], **_: Any) -> dict[str, Any]:
        for key in ("since", "until"):
            if data.get(key) is not None:
                data[key] = data[key].astimezone(timezone.utc)
        return data


__all__ = ["AuditLogQuerySchema", "AuditLogSchema", "DEFAULT_LIMIT", "MAX_LIMIT"]

"""Immutable audit record and its persisted row shape."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import insert

from audit_service.models.audit import audit_logs_table

ActorId = Union[int, str, None]

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

AUDIT_INSERT = insert(audit_logs_table)


class InvalidActorId(ValueError):
    """Raised when an actor id cannot be stored in the integer column."""

    def __init__(self, value: ActorId) -> None:
        super().__init__(f"invalid actor id: {value!r}")
        self.value = value


def normalize_actor_id(value: ActorId) -> ActorId:
    """Map absent or blank actor ids to ``None``; strip surrounding space."""

    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def parse_actor_id(value: ActorId) -> Optional[int]:
    """Convert a normalized actor id into the integer stored in the row."""

    value = normalize_actor_id(value)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidActorId(value)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _INTEGER_PATTERN.fullmatch(value):
        parsed = int(value)
    else:
        raise InvalidActorId(value)
    if not _INT32_MIN <= parsed <= _INT32_MAX:
        raise InvalidActorId(value)
    return parsed


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """One administrative action, as submitted by business logic.

    The actor id is kept as given (after blank normalization); it is parsed
    into an integer only when the row is built, so a malformed id surfaces as
    a persistence failure rather than at the call site. The timestamp is not
    part of the record: the sink stamps it at persistence time.
    """

    action: str
    actor_id: ActorId = None
    target_id: Optional[str] = None
    target_type: Optional[str] = None
    details: Optional[str] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None

    @classmethod
    def create(
        cls,
        actor_id: ActorId,
        action: str,
        target_id: Any = None,
        target_type: Optional[str] = None,
        details: Optional[str] = None,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> "AuditRecord":
        return cls(
            action=action,
            actor_id=normalize_actor_id(actor_id),
            target_id=_optional_text(target_id),
            target_type=_optional_text(target_type),
            details=_optional_text(details),
            reason=_optional_text(reason),
            ip_address=_optional_text(ip_address),
        )

    def to_row(self, timestamp: datetime) -> dict[str, Any]:
        """Return the column values for the ``audit_logs`` insert."""

        return {
            "actor_id": parse_actor_id(self.actor_id),
            "action": self.action,
            "target_id": self.target_id,
            "target_type": self.target_type,
            "details": self.details,
            "reason": self.reason,
            "timestamp": timestamp,
            "ip_address": self.ip_address,
        }

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for diagnostics."""

        return asdict(self)


__all__ = [
    "AUDIT_INSERT",
    "AuditRecord",
    "InvalidActorId",
    "normalize_actor_id",
    "parse_actor_id",
]

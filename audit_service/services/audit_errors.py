"""Error types for the audit pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from audit_service.services.audit_record import AuditRecord


class AuditError(Exception):
    """Base class for errors raised while handing records to the sink."""


class AuditSinkClosed(AuditError):
    """The sink is not accepting records (not started, draining or stopped)."""

    def __init__(self, state: str) -> None:
        super().__init__(f"audit sink is not accepting records (state={state})")
        self.state = state


class AuditQueueFull(AuditError):
    """The bounded queue had no room for the record."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"audit queue is full (capacity={capacity})")
        self.capacity = capacity


class FailureKind(str, Enum):
    """Why a record never reached the table."""

    INVALID_ACTOR = "invalid_actor"
    CONNECTION = "connection"
    DATABASE = "database"
    UNEXPECTED = "unexpected"
    QUEUE_OVERFLOW = "queue_overflow"


@dataclass(frozen=True, slots=True)
class AuditFailure:
    """Outcome reported for a dropped record."""

    kind: FailureKind
    record: AuditRecord
    error: Optional[BaseException] = None

    @property
    def message(self) -> str:
        if self.error is None:
            return self.kind.value
        return f"{type(self.error).__name__}: {self.error}"


__all__ = [
    "AuditError",
    "AuditFailure",
    "AuditQueueFull",
    "AuditSinkClosed",
    "FailureKind",
]

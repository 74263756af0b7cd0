"""Repositories for audit persistence."""

from __future__ import annotations

from .audit import AuditLogRepository
from .base import RepositoryError, SQLAlchemyRepository

__all__ = [
    "AuditLogRepository",
    "RepositoryError",
    "SQLAlchemyRepository",
]

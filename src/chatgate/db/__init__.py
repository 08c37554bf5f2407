"""Durable tier: SQLAlchemy models, repositories and the store."""

from .session import DatabaseSessionManager
from .store import SqlDurableStore

__all__ = ["DatabaseSessionManager", "SqlDurableStore"]

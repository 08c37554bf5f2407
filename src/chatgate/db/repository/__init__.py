"""Repository layer for database operations."""

from .base import BaseRepository
from .session_repo import MessageRepository, SessionRepository
from .tenant_repo import ApiKeyRepository, TenantRepository

__all__ = [
    "BaseRepository",
    "TenantRepository",
    "ApiKeyRepository",
    "SessionRepository",
    "MessageRepository",
]

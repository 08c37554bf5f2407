"""Database models for the gateway."""

from .base import Base
from .session import Message, Session
from .tenant import ApiKey, Tenant

__all__ = [
    "Base",
    "Tenant",
    "ApiKey",
    "Session",
    "Message",
]

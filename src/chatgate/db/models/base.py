"""SQLAlchemy declarative base for all models."""

from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models.

    Includes:
    - AsyncAttrs for async attribute loading
    - DeclarativeBase for SQLAlchemy 2.0 declarative mapping
    """

    pass


def utcnow() -> datetime:
    return datetime.now(UTC)

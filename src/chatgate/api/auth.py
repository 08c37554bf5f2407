"""API key authentication.

Keys are opaque bearer tokens; only their SHA-256 digest is stored.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Protocol

import structlog

from chatgate.core.errors import AuthenticationError
from chatgate.core.interfaces import AuthContext

logger = structlog.get_logger()

API_KEY_PREFIX = "cg_"


class ApiKeyResolver(Protocol):
    async def resolve_api_key(self, key_hash: str) -> tuple[str, list[str]] | None: ...


def hash_api_key(api_key: str) -> str:
    """Hex SHA-256 digest of an API key."""
    return hashlib.sha256(api_key.encode()).hexdigest()


def generate_api_key() -> str:
    """Generate a new random API key."""
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


class ApiKeyAuthenticator:
    """Resolves bearer API keys through the durable store."""

    def __init__(self, resolver: ApiKeyResolver) -> None:
        self.resolver = resolver

    async def authenticate(self, api_key: str) -> AuthContext:
        """Authenticate an API key.

        Args:
            api_key: Raw bearer token

        Returns:
            Tenant identity and scopes

        Raises:
            AuthenticationError: If the key is empty, unknown or revoked
        """
        if not api_key:
            raise AuthenticationError()

        resolved = await self.resolver.resolve_api_key(hash_api_key(api_key))
        if resolved is None:
            # Log a key prefix only
            logger.warning("api_key_rejected", key_prefix=api_key[:6])
            raise AuthenticationError()

        tenant_id, scopes = resolved
        return AuthContext(tenant_id=tenant_id, scopes=frozenset(scopes))

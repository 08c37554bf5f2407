"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, Request

from chatgate.core.errors import AuthenticationError
from chatgate.core.interfaces import AuthContext
from chatgate.orchestrator import ChatService

from .container import GatewayContainer


def get_container(request: Request) -> GatewayContainer:
    """Container built at start-up."""
    return request.app.state.container


def get_chat_service(
    container: GatewayContainer = Depends(get_container),
) -> ChatService:
    return container.service


async def get_auth_context(
    request: Request,
    container: GatewayContainer = Depends(get_container),
    authorization: str | None = Header(default=None),
) -> AuthContext:
    """Authenticate the bearer API key of the request.

    Raises:
        AuthenticationError: If the header is missing, malformed or the key is unknown
    """
    if not authorization:
        raise AuthenticationError()
    scheme, _, api_key = authorization.partition(" ")
    if scheme.lower() != "bearer" or not api_key.strip():
        raise AuthenticationError("Authorization header must be 'Bearer <api key>'")
    auth = await container.authenticator.authenticate(api_key.strip())
    request.state.tenant_id = auth.tenant_id
    return auth


# Type aliases for cleaner route signatures
Container = Annotated[GatewayContainer, Depends(get_container)]
Service = Annotated[ChatService, Depends(get_chat_service)]
Auth = Annotated[AuthContext, Depends(get_auth_context)]

"""Health check endpoints."""

from fastapi import APIRouter

from chatgate import __version__

from ..dependencies import Container
from ..schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(container: Container) -> HealthResponse:
    """Check API health status.

    Returns:
        Health status with per-provider credential availability
    """
    providers = {p.value: ok for p, ok in container.registry.availability().items()}
    return HealthResponse(status="healthy", version=__version__, providers=providers)

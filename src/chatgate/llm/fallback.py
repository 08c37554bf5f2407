"""Fallback chain around the routing engine.

A ProviderError raised before any output reached the client re-invokes the
router with the failed provider excluded. Once output was sent the error
propagates unchanged.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from chatgate.core.errors import ProviderError

from .registry import ProviderRegistry
from .router import LLMRouter, RoutingDecision, RoutingOptions
from .schemas import ProviderName

logger = structlog.get_logger()

T = TypeVar("T")


class FallbackExecutor:
    """Runs a provider call, falling back to the next routed provider."""

    def __init__(
        self,
        router: LLMRouter,
        registry: ProviderRegistry,
        max_attempts: int | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            router: Routing engine
            registry: Provider registry supplying availability
            max_attempts: Attempt bound, defaults to the number of providers
        """
        self.router = router
        self.registry = registry
        self.max_attempts = max_attempts or len(ProviderName)

    async def run(
        self,
        options: RoutingOptions,
        call: Callable[[RoutingDecision], Awaitable[T]],
        output_sent: Callable[[], bool] = lambda: False,
    ) -> tuple[RoutingDecision, T]:
        """Route and call, retrying on provider failure.

        Args:
            options: Routing options for the first attempt
            call: Provider call for a decision
            output_sent: Reports whether any output already reached the client

        Returns:
            Tuple of (decision that succeeded, call result)

        Raises:
            ProviderError: When every attempt failed or output was already sent
        """
        current = options
        exhausted = False
        last_error: ProviderError | None = None

        def _retryable(exc: BaseException) -> bool:
            return isinstance(exc, ProviderError) and not output_sent()

        def _stop_when_exhausted(retry_state: RetryCallState) -> bool:
            return exhausted

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts) | _stop_when_exhausted,
            retry=retry_if_exception(_retryable),
            reraise=True,
        ):
            with attempt:
                decision = self.router.decide(current, self.registry.availability())
                # Routing degrades to the default provider; once that failed
                # there is nothing left to try
                if last_error is not None and decision.provider in current.excluded_providers:
                    exhausted = True
                    raise last_error
                try:
                    result = await call(decision)
                except ProviderError as e:
                    logger.warning(
                        "provider_attempt_failed",
                        provider=decision.provider.value,
                        attempt=attempt.retry_state.attempt_number,
                        status=e.status,
                    )
                    last_error = e
                    current = current.excluding(decision.provider)
                    raise

        return decision, result

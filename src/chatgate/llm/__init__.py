"""LLM orchestration layer.

Provider adapters, the routing engine and the fallback chain. Only the
value types are re-exported here; import the registry, router and adapters
from their modules.
"""

from .models import (
    PROVIDER_CAPABILITIES,
    QualityPreference,
    TenantTier,
    estimate_cost,
    get_default_model,
    infer_tier_from_quotas,
    is_provider_allowed,
)
from .schemas import (
    ChatMessage,
    CompletionRequest,
    CompletionResult,
    FinishReason,
    ProviderName,
    Role,
    StreamChunk,
    Tool,
    ToolCall,
    UsageInfo,
)

__all__ = [
    # Models
    "PROVIDER_CAPABILITIES",
    "QualityPreference",
    "TenantTier",
    "estimate_cost",
    "get_default_model",
    "infer_tier_from_quotas",
    "is_provider_allowed",
    # Schemas
    "ChatMessage",
    "CompletionRequest",
    "CompletionResult",
    "FinishReason",
    "ProviderName",
    "Role",
    "StreamChunk",
    "Tool",
    "ToolCall",
    "UsageInfo",
]

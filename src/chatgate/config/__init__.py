"""Static plan configuration."""

from .plans import MODEL_PROVIDERS, PLANS, PlanConfig, get_model_provider, get_plan_config

__all__ = [
    "MODEL_PROVIDERS",
    "PLANS",
    "PlanConfig",
    "get_model_provider",
    "get_plan_config",
]

"""Provider adapters, one per backend."""

from .anthropic import AnthropicAdapter
from .base import ProviderAdapter
from .edge import EdgeAdapter
from .openai import OpenAIAdapter

__all__ = [
    "AnthropicAdapter",
    "EdgeAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
]

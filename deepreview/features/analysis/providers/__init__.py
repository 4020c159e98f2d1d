"""
Analysis Providers Package

Available providers:
- ChatCompletionsProvider: OpenAI-style chat completions (ByteDance Ark, DeepSeek)
- DashScopeProvider: DashScope text generation (DouBao)
"""

from .base import AttemptOutcome, BaseProvider, ProviderAttempt
from .chat_completions import ChatCompletionsProvider, DashScopeProvider

__all__ = [
    "AttemptOutcome",
    "BaseProvider",
    "ProviderAttempt",
    "ChatCompletionsProvider",
    "DashScopeProvider",
]

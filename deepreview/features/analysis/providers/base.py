"""
Base Provider Interface for text-generation services

Every analysis provider (ByteDance Ark, DouBao/DashScope, DeepSeek) inherits
from BaseProvider, so the gateway can walk an ordered list of them without
knowing which one it is talking to. Adding a provider means adding a list
entry, not new branching in the gateway.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger("DeepReview.Analysis.Provider")


class AttemptOutcome(Enum):
    """Outcome of one provider attempt inside the retry loop."""
    SUCCESS = "success"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
    LOCAL = "local"


@dataclass
class ProviderAttempt:
    """
    Record of a single provider call made by the gateway.

    Attributes:
        provider: Provider name
        attempt: 1-based attempt number within that provider's retry budget
        outcome: What happened
        error: Error message when the attempt failed
        metadata: Extra info (duration_ms, error code, ...)
    """
    provider: str
    attempt: int
    outcome: AttemptOutcome
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        return self.outcome in (AttemptOutcome.SUCCESS, AttemptOutcome.LOCAL)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "provider": self.provider,
            "attempt": self.attempt,
            "outcome": self.outcome.value,
            "error": self.error,
            "metadata": self.metadata,
            "at": self.at.isoformat(),
        }


class BaseProvider(ABC):
    """
    Abstract base class for all text-generation providers.

    Providers must implement:
    - name: Unique provider identifier
    - is_configured: Whether a credential is available
    - invoke: Send one prompt and return the generated text, raising an
      AnalysisError subclass on failure

    allows_local_substitute marks providers that may stand in with the local
    template when they have no credential.
    """

    allows_local_substitute: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique display name for this provider (e.g., 'DeepSeek')."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when a credential is set."""

    @abstractmethod
    async def invoke(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: The full user prompt
            max_tokens: Optional override of the provider's default output budget

        Returns:
            The assistant's text content

        Raises:
            AnalysisError: classified failure (credential, rate limit, server, ...)
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} configured={self.is_configured}>"

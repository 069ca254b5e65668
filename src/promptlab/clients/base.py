"""Base LLM client interface for promptlab."""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field

from ..models.candidate import estimate_tokens


class TokenUsage(BaseModel):
    """Token counts reported by the provider."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class GenerationOptions(BaseModel):
    """Per-call generation options."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    json_mode: bool = False
    model: Optional[str] = None


class GenerationResult(BaseModel):
    """Text produced by one generation call."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    cost: Optional[float] = None
    latency_ms: float = 0.0


class BaseLLMClient(ABC):
    """Abstract base class for text-generation clients.

    Implementations raise an ``LLMError`` subclass when the provider rejects
    a call and ``LLMResponseError`` when a call succeeds with an unusable body.
    """

    @abstractmethod
    async def agenerate(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Send asynchronous generation request."""
        pass

    @property
    def reports_cost(self) -> bool:
        """Whether ``GenerationResult.cost`` reflects real spend."""
        return True

    def count_tokens(self, text: str) -> int:
        """Estimate token count using character-based approximation."""
        return estimate_tokens(text)

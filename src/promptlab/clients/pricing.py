"""Per-model token prices used when none are configured."""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """USD per million tokens."""

    prompt_per_million: float = Field(ge=0.0)
    completion_per_million: float = Field(ge=0.0)

    @property
    def is_free(self) -> bool:
        return self.prompt_per_million == 0 and self.completion_per_million == 0


MODEL_PRICING: Dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(prompt_per_million=5.00, completion_per_million=20.00),
    "gpt-4o-mini": ModelPricing(prompt_per_million=0.15, completion_per_million=0.60),
    "gpt-4-turbo": ModelPricing(prompt_per_million=10.00, completion_per_million=30.00),
    "gpt-3.5-turbo": ModelPricing(prompt_per_million=0.50, completion_per_million=1.50),
    "claude-4-opus": ModelPricing(prompt_per_million=15.00, completion_per_million=75.00),
    "claude-4-sonnet": ModelPricing(prompt_per_million=3.00, completion_per_million=15.00),
    "claude-3.5-sonnet": ModelPricing(prompt_per_million=3.00, completion_per_million=15.00),
    "claude-3.5-haiku": ModelPricing(prompt_per_million=0.80, completion_per_million=4.00),
    "gemini-2.5-pro": ModelPricing(prompt_per_million=1.25, completion_per_million=10.00),
    "gemini-2.5-flash": ModelPricing(prompt_per_million=0.10, completion_per_million=0.40),
    "gemini-2.0-flash": ModelPricing(prompt_per_million=0.10, completion_per_million=0.40),
    "mistral-large": ModelPricing(prompt_per_million=2.00, completion_per_million=6.00),
    "mistral-medium-3": ModelPricing(prompt_per_million=0.40, completion_per_million=2.00),
    "mistral-small": ModelPricing(prompt_per_million=0.20, completion_per_million=0.60),
    "codestral": ModelPricing(prompt_per_million=0.20, completion_per_million=0.60),
}


def lookup_pricing(model: str) -> Optional[ModelPricing]:
    """Price of ``model`` by longest known prefix.

    Provider prefixes (``openai/gpt-4o``) and dated snapshots
    (``gpt-4o-mini-2024-07-18``) resolve to the base model.
    """
    name = model.strip().lower().rsplit("/", 1)[-1]
    matches = [known for known in MODEL_PRICING if name == known or name.startswith(known + "-")]
    if not matches:
        return None
    return MODEL_PRICING[max(matches, key=len)]

"""Prompt candidate model for evolutionary optimization."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

CHARS_PER_TOKEN_ESTIMATE = 4
COMPONENT_SEPARATOR = "\n\n"
FREE_TEXT_SLOT = "prompt"


def estimate_tokens(text: str) -> int:
    """Estimate token count using character-based approximation."""
    return -(-len(text) // CHARS_PER_TOKEN_ESTIMATE)


class CandidateMetadata(BaseModel):
    """Bookkeeping attached to a candidate."""

    token_estimate: int = Field(default=0, ge=0)
    evaluation_cost: float = Field(default=0.0, ge=0.0)
    evaluation_latency_ms: float = Field(default=0.0, ge=0.0)
    mutation_fallbacks: List[str] = Field(
        default_factory=list,
        description="Rewrite mutations that kept the original text"
    )
    evaluation_warnings: List[str] = Field(default_factory=list)


class Candidate(BaseModel):
    """Prompt candidate in evolutionary population."""

    id: str
    generation: int = Field(ge=0, description="Generation number")
    prompt_components: Dict[str, str] = Field(
        min_length=1,
        description="Named prompt templates, in slot order"
    )
    parent_ids: List[str] = Field(default_factory=list, max_length=2)
    mutation_history: List[str] = Field(default_factory=list)
    combined_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    criterion_scores: Dict[str, float] = Field(default_factory=dict)
    metadata: CandidateMetadata = Field(default_factory=CandidateMetadata)

    @property
    def is_evaluated(self) -> bool:
        """Whether fitness has been attached."""
        return self.combined_score is not None

    @property
    def slot_names(self) -> List[str]:
        return list(self.prompt_components)

    def render(self) -> str:
        """Join all components into one text, used for diversity and token estimates."""
        return COMPONENT_SEPARATOR.join(self.prompt_components.values())

    def refresh_token_estimate(self) -> None:
        self.metadata.token_estimate = estimate_tokens(self.render())

    def __str__(self) -> str:
        score = f"{self.combined_score:.3f}" if self.combined_score is not None else "unscored"
        return f"Candidate({self.id}, gen={self.generation}, score={score})"

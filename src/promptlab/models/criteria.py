"""Evaluation criteria models and validation."""

from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigurationError

WEIGHT_SUM_TOLERANCE = 1e-6

DEFAULT_JUDGE_RUBRIC: Dict[str, float] = {
    "accuracy": 0.25,
    "helpfulness": 0.25,
    "completeness": 0.2,
    "clarity": 0.15,
    "groundedness": 0.15,
}

RUBRIC_DESCRIPTIONS: Dict[str, str] = {
    "accuracy": "How factually correct is the response based on the reference information?",
    "helpfulness": "How well does the response address the user's needs?",
    "completeness": "Does the response cover all important aspects of the query?",
    "clarity": "How clear and easy to understand is the response?",
    "groundedness": "How well does the response stick to the provided information without hallucinating?",
}


class CriterionKind(str, Enum):
    """How a criterion is scored."""

    DETERMINISTIC_METRIC = "deterministic-metric"
    LLM_JUDGED = "llm-judged"


class EvaluationCriterion(BaseModel):
    """One weighted evaluation criterion, immutable for a run."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    weight: float = Field(ge=0.0, le=1.0)
    kind: CriterionKind
    description: Optional[str] = None
    rubric: Optional[Dict[str, float]] = Field(
        default=None,
        description="Judge sub-score weights; defaults to DEFAULT_JUDGE_RUBRIC"
    )

    def effective_rubric(self) -> Dict[str, float]:
        return dict(self.rubric) if self.rubric else dict(DEFAULT_JUDGE_RUBRIC)


def retrieval_accuracy(weight: float = 0.4, name: str = "retrieval_accuracy") -> EvaluationCriterion:
    """Deterministic chunk-retrieval F1 criterion."""
    return EvaluationCriterion(
        name=name,
        weight=weight,
        kind=CriterionKind.DETERMINISTIC_METRIC,
        description="Average F1 of retrieved vs expected chunk ids",
    )


def response_quality(
    weight: float = 0.6,
    name: str = "response_quality",
    rubric: Optional[Dict[str, float]] = None,
) -> EvaluationCriterion:
    """LLM-judged response quality criterion."""
    return EvaluationCriterion(
        name=name,
        weight=weight,
        kind=CriterionKind.LLM_JUDGED,
        description="Judge rubric score of the generated response",
        rubric=rubric,
    )


def default_criteria() -> List[EvaluationCriterion]:
    """Hybrid criteria: 40% retrieval F1, 60% judged response quality."""
    return [retrieval_accuracy(), response_quality()]


def validate_criteria(criteria: Sequence[EvaluationCriterion]) -> None:
    """Raise ConfigurationError unless criteria form a valid weighted set."""
    if not criteria:
        raise ConfigurationError("At least one evaluation criterion is required")

    names = [criterion.name for criterion in criteria]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate criterion names: {', '.join(duplicates)}")

    total = sum(criterion.weight for criterion in criteria)
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ConfigurationError(
            f"Criterion weights must sum to 1.0, got {total:.4f}"
        )

    for criterion in criteria:
        if criterion.kind != CriterionKind.LLM_JUDGED or criterion.rubric is None:
            continue
        if not criterion.rubric:
            raise ConfigurationError(f"Rubric of '{criterion.name}' is empty")
        if sum(criterion.rubric.values()) <= 0:
            raise ConfigurationError(
                f"Rubric weights of '{criterion.name}' must be positive"
            )

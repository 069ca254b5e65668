"""Fitness report models."""

from typing import Dict, List

from pydantic import BaseModel, Field


class CaseResult(BaseModel):
    """Scores of one test case for one candidate."""

    query: str
    criterion_scores: Dict[str, float] = Field(default_factory=dict)
    sub_scores: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    combined_score: float = 0.0


class FitnessReport(BaseModel):
    """Evaluation outcome for one candidate."""

    candidate_id: str
    combined_score: float
    criterion_scores: Dict[str, float]
    penalized_criteria: List[str] = Field(default_factory=list)
    case_results: List[CaseResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    cost: float = 0.0
    latency_ms: float = 0.0
    skipped: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.penalized_criteria)

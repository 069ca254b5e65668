"""Optimization run and history models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .candidate import Candidate
from .config import OptimizationConfig
from .criteria import EvaluationCriterion
from .population import Population


class ConvergenceReason(str, Enum):
    """Why a run stopped."""

    TARGET_REACHED = "target-reached"
    BUDGET_EXCEEDED = "budget-exceeded"
    STAGNATION = "stagnation"
    MAX_GENERATIONS = "max-generations"
    STOPPED = "stopped"


class GenerationRecord(BaseModel):
    """Summary of one evaluated generation."""

    generation: int
    best_score: float
    average_score: float
    worst_score: float
    diversity: float = Field(ge=0.0, le=1.0)
    best_candidate: Candidate
    improved: bool
    stagnation_count: int
    failure_patterns: List[str] = Field(default_factory=list)
    cumulative_cost: float = 0.0
    timestamp: datetime = Field(default_factory=datetime.now)


class OptimizationRun(BaseModel):
    """State and result of one optimization run."""

    run_id: str
    config: OptimizationConfig
    criteria: List[EvaluationCriterion]
    generation: int = 0
    populations: List[Population] = Field(default_factory=list)
    history: List[GenerationRecord] = Field(default_factory=list)
    best_candidate: Optional[Candidate] = None
    best_score_ever: Optional[float] = None
    stagnation_count: int = 0
    total_cost: float = 0.0
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    convergence_reason: Optional[ConvergenceReason] = None
    recommendations: List[str] = Field(default_factory=list)

    @property
    def weights(self) -> Dict[str, float]:
        return {criterion.name: criterion.weight for criterion in self.criteria}

    def all_candidates(self) -> List[Candidate]:
        """Every distinct candidate seen in the run, in creation order."""
        seen: Dict[str, Candidate] = {}
        for population in self.populations:
            for candidate in population.candidates:
                seen.setdefault(candidate.id, candidate)
        return list(seen.values())


class OptimizationProgress(BaseModel):
    """Polling snapshot of a running optimization."""

    current_generation: int
    max_generations: int
    best_score: float
    average_score: float
    stagnation_count: int
    total_cost: float
    time_elapsed: float
    running: bool

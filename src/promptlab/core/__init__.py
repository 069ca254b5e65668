"""Core prompt optimization engine."""

from .convergence import ConvergenceController
from .crossover import ComponentCrossover
from .engine.optimizer import PromptOptimizer
from .fitness import EVALUATION_FAILURE_PENALTY, FitnessAggregator
from .mutator import PromptMutator
from .population import PopulationManager
from .rate_limit import RateLimiter
from .runner import CandidateOutput, CandidateRunner, RAGCandidateRunner
from .scoring import (
    CriterionScorer,
    LLMJudgeScorer,
    RetrievalAccuracyScorer,
    RetrievalMetrics,
    compute_retrieval_metrics,
    parse_judge_response,
)
from .selection import TournamentSelector

__all__ = [
    "PromptOptimizer",
    "FitnessAggregator",
    "EVALUATION_FAILURE_PENALTY",
    "PopulationManager",
    "ConvergenceController",
    "ComponentCrossover",
    "PromptMutator",
    "TournamentSelector",
    "RateLimiter",
    "CandidateOutput",
    "CandidateRunner",
    "RAGCandidateRunner",
    "CriterionScorer",
    "LLMJudgeScorer",
    "RetrievalAccuracyScorer",
    "RetrievalMetrics",
    "compute_retrieval_metrics",
    "parse_judge_response",
]

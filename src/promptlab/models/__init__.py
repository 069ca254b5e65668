"""Data models for prompt optimization."""

from .candidate import Candidate, CandidateMetadata, estimate_tokens
from .config import PROFILE_PRESETS, SUPPORTED_PROFILES, OptimizationConfig
from .criteria import (
    DEFAULT_JUDGE_RUBRIC,
    CriterionKind,
    EvaluationCriterion,
    default_criteria,
    response_quality,
    retrieval_accuracy,
    validate_criteria,
)
from .dataset import ChunkId, TestCase, load_test_cases
from .events import EventCallback, EventType, OptimizationEvent
from .mutations import MUTATION_CATALOG
from .population import Population
from .report import CaseResult, FitnessReport
from .result import ConvergenceReason, GenerationRecord, OptimizationProgress, OptimizationRun

__all__ = [
    "Candidate",
    "CandidateMetadata",
    "estimate_tokens",
    "OptimizationConfig",
    "PROFILE_PRESETS",
    "SUPPORTED_PROFILES",
    "CriterionKind",
    "EvaluationCriterion",
    "DEFAULT_JUDGE_RUBRIC",
    "default_criteria",
    "response_quality",
    "retrieval_accuracy",
    "validate_criteria",
    "ChunkId",
    "TestCase",
    "load_test_cases",
    "EventCallback",
    "EventType",
    "OptimizationEvent",
    "MUTATION_CATALOG",
    "Population",
    "CaseResult",
    "FitnessReport",
    "ConvergenceReason",
    "GenerationRecord",
    "OptimizationProgress",
    "OptimizationRun",
]

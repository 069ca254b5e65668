"""promptlab - genetic prompt optimization with hybrid RAG fitness."""

from .analysis import FailureAnalyzer
from .clients import BaseLLMClient, BaseRetriever, InMemoryRetriever, LLMClient
from .config import Settings, get_settings
from .core import FitnessAggregator, PromptMutator, PromptOptimizer, RAGCandidateRunner
from .errors import ConfigurationError, EvaluationError, LLMError, PromptLabError
from .models import (
    Candidate,
    ConvergenceReason,
    EvaluationCriterion,
    EventType,
    OptimizationConfig,
    OptimizationEvent,
    OptimizationRun,
    TestCase,
    default_criteria,
    response_quality,
    retrieval_accuracy,
)

__version__ = "0.1.0"

__all__ = [
    "PromptOptimizer",
    "FitnessAggregator",
    "PromptMutator",
    "RAGCandidateRunner",
    "FailureAnalyzer",
    "BaseLLMClient",
    "LLMClient",
    "BaseRetriever",
    "InMemoryRetriever",
    "Settings",
    "get_settings",
    "PromptLabError",
    "ConfigurationError",
    "EvaluationError",
    "LLMError",
    "Candidate",
    "ConvergenceReason",
    "EvaluationCriterion",
    "EventType",
    "OptimizationConfig",
    "OptimizationEvent",
    "OptimizationRun",
    "TestCase",
    "default_criteria",
    "response_quality",
    "retrieval_accuracy",
]

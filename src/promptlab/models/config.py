"""Optimization configuration models."""

from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, Field

DEFAULT_POPULATION_SIZE = 10
DEFAULT_MAX_GENERATIONS = 10
DEFAULT_MUTATION_RATE = 0.3
DEFAULT_CROSSOVER_RATE = 0.7
DEFAULT_ELITISM_FRACTION = 0.2
DEFAULT_TOURNAMENT_SIZE = 3
DEFAULT_MAX_STAGNATION = 5
DEFAULT_IMPROVEMENT_THRESHOLD = 0.02
DEFAULT_TARGET_SCORE = 0.85
DEFAULT_RATE_LIMIT_INTERVAL = 0.2
DEFAULT_JUDGE_TEMPERATURE = 0.1
DEFAULT_JUDGE_MAX_TOKENS = 600
DEFAULT_REWRITE_TEMPERATURE = 0.3
DEFAULT_PASSING_THRESHOLD = 0.7

DEFAULT_JUDGE_SYSTEM_PROMPT = (
    "You are an expert evaluator of assistant responses. Reply with JSON only."
)

DEFAULT_JUDGE_TEMPLATE = """You are an expert evaluator. Evaluate the AI assistant's response against the provided reference information and the user query.

USER QUERY:
{query}

REFERENCE INFORMATION (Ground Truth):
{reference}

RETRIEVED CONTEXT:
{context}

AI ASSISTANT'S RESPONSE:
{response}

EVALUATION CRITERIA:
Rate each aspect from 0.0 to 1.0:

{rubric}

RESPONSE FORMAT:
Provide your evaluation as a JSON object with the following structure:
{schema}

EVALUATION:"""

DEFAULT_REWRITE_TEMPLATE = """Please rewrite the following prompt in {format} format while preserving all the original meaning and intent.
Keep every placeholder in curly braces (for example {{query}}) exactly as it appears.

Original prompt:
{prompt}

Rewritten in {format} format:"""

SUPPORTED_PROFILES: Set[str] = {"fast", "balanced", "quality", "advanced"}

PROFILE_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "population_size": 6,
        "max_generations": 4,
        "mutation_rate": 0.5,
        "crossover_rate": 0.6,
        "elitism_fraction": 0.2,
        "max_stagnation": 2,
        "target_score": 0.8,
    },
    "balanced": {
        "population_size": 10,
        "max_generations": 10,
        "mutation_rate": 0.3,
        "crossover_rate": 0.7,
        "elitism_fraction": 0.2,
        "max_stagnation": 5,
        "target_score": 0.85,
    },
    "quality": {
        "population_size": 16,
        "max_generations": 20,
        "mutation_rate": 0.25,
        "crossover_rate": 0.8,
        "elitism_fraction": 0.125,
        "max_stagnation": 8,
        "target_score": 0.9,
    },
    "advanced": {},
}


class OptimizationConfig(BaseModel):
    """Genetic-algorithm configuration for one optimization run."""

    population_size: int = Field(default=DEFAULT_POPULATION_SIZE, ge=2, le=200)
    max_generations: int = Field(default=DEFAULT_MAX_GENERATIONS, ge=0, le=500)
    mutation_rate: float = Field(default=DEFAULT_MUTATION_RATE, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=DEFAULT_CROSSOVER_RATE, ge=0.0, le=1.0)
    elitism_fraction: float = Field(default=DEFAULT_ELITISM_FRACTION, ge=0.0, le=1.0)
    tournament_size: int = Field(default=DEFAULT_TOURNAMENT_SIZE, ge=1)
    max_stagnation: int = Field(default=DEFAULT_MAX_STAGNATION, ge=1)
    improvement_threshold: float = Field(default=DEFAULT_IMPROVEMENT_THRESHOLD, ge=0.0, le=1.0)
    target_score: float = Field(default=DEFAULT_TARGET_SCORE, ge=0.0, le=1.0)
    cost_budget: Optional[float] = Field(default=None, ge=0.0, description="USD")
    time_budget_seconds: Optional[float] = Field(default=None, gt=0.0)
    max_concurrency: int = Field(default=1, ge=1, le=64)
    rate_limit_interval: float = Field(default=DEFAULT_RATE_LIMIT_INTERVAL, ge=0.0)
    seed: Optional[int] = None
    top_k: int = Field(default=3, ge=1)
    judge_temperature: float = Field(default=DEFAULT_JUDGE_TEMPERATURE, ge=0.0, le=2.0)
    judge_max_tokens: int = Field(default=DEFAULT_JUDGE_MAX_TOKENS, ge=16)
    rewrite_temperature: float = Field(default=DEFAULT_REWRITE_TEMPERATURE, ge=0.0, le=2.0)
    passing_threshold: float = Field(default=DEFAULT_PASSING_THRESHOLD, ge=0.0, le=1.0)
    sentence_crossover_fallback: bool = True
    judge_system_prompt: str = DEFAULT_JUDGE_SYSTEM_PROMPT
    judge_template: str = DEFAULT_JUDGE_TEMPLATE
    rewrite_template: str = DEFAULT_REWRITE_TEMPLATE

    @classmethod
    def from_profile(cls, profile: str, **overrides: Any) -> "OptimizationConfig":
        """Create config from a named profile with optional overrides."""
        if profile not in SUPPORTED_PROFILES:
            raise ValueError(
                f"Unknown profile '{profile}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
            )
        defaults = dict(PROFILE_PRESETS.get(profile, {}))
        defaults.update(overrides)
        return cls(**defaults)

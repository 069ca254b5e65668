"""Per-criterion scoring: retrieval F1 and LLM-judged rubrics."""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from ..clients import BaseLLMClient, GenerationOptions
from ..errors import ConfigurationError, EvaluationError
from ..models import Candidate, ChunkId, CriterionKind, EvaluationCriterion, OptimizationConfig, TestCase
from ..models.criteria import RUBRIC_DESCRIPTIONS
from .rate_limit import RateLimiter
from .runner import CandidateOutput

NEUTRAL_SCORE = 0.5
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
SCORE_PATTERN_TEMPLATE = r"[\"']?{name}[\"']?\s*[:=]\s*(-?\d*\.?\d+)"
NO_REFERENCE = "(no reference provided)"


class RetrievalMetrics(BaseModel):
    """Precision/recall/F1 of one retrieval."""

    precision: float
    recall: float
    f1: float
    correctly_retrieved: List[ChunkId] = Field(default_factory=list)
    missed: List[ChunkId] = Field(default_factory=list)
    unexpected: List[ChunkId] = Field(default_factory=list)
    exact_match: bool = False


def compute_retrieval_metrics(
    expected: Sequence[ChunkId],
    retrieved: Sequence[ChunkId],
) -> RetrievalMetrics:
    """Compare retrieved chunk ids against the expected set."""
    expected_set = set(expected)
    retrieved_set = set(retrieved)

    correctly_retrieved = [chunk for chunk in expected if chunk in retrieved_set]
    missed = [chunk for chunk in expected if chunk not in retrieved_set]
    unexpected = [chunk for chunk in retrieved if chunk not in expected_set]

    precision = len(expected_set & retrieved_set) / len(retrieved_set) if retrieved_set else 0.0
    recall = len(expected_set & retrieved_set) / len(expected_set) if expected_set else 0.0
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0

    return RetrievalMetrics(
        precision=precision,
        recall=recall,
        f1=f1,
        correctly_retrieved=correctly_retrieved,
        missed=missed,
        unexpected=unexpected,
        exact_match=not missed and not unexpected,
    )


class ScoreResult(BaseModel):
    """Outcome of one criterion scorer over all test cases."""

    score: float = Field(ge=0.0, le=1.0)
    case_scores: List[float] = Field(default_factory=list)
    case_details: List[Dict[str, float]] = Field(default_factory=list)
    cost: float = 0.0
    latency_ms: float = 0.0
    warnings: List[str] = Field(default_factory=list)
    parse_failures: int = 0


class JudgeVerdict(BaseModel):
    """Parsed judge output."""

    scores: Dict[str, float]
    method: str
    parse_failed: bool = False
    reasoning: Optional[str] = None
    feedback: Optional[str] = None


def clamp_score(value: float) -> float:
    return max(0.0, min(1.0, value))


def _to_score(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return clamp_score(float(value))
    if isinstance(value, str):
        try:
            return clamp_score(float(value.strip()))
        except ValueError:
            return None
    return None


def _parse_json_scores(text: str, names: Sequence[str]) -> Optional[JudgeVerdict]:
    match = JSON_OBJECT_PATTERN.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    lowered = {str(key).lower(): value for key, value in parsed.items()}
    scores = {}
    for name in names:
        score = _to_score(lowered.get(name.lower()))
        if score is not None:
            scores[name] = score
    if not scores:
        return None

    return JudgeVerdict(
        scores=scores,
        method="json",
        reasoning=lowered.get("reasoning") if isinstance(lowered.get("reasoning"), str) else None,
        feedback=lowered.get("feedback") if isinstance(lowered.get("feedback"), str) else None,
    )


def extract_score(text: str, name: str) -> Optional[float]:
    """Find ``"name": <number>`` in free text."""
    pattern = re.compile(SCORE_PATTERN_TEMPLATE.format(name=re.escape(name)), re.IGNORECASE)
    match = pattern.search(text)
    if not match:
        return None
    return _to_score(match.group(1))


def parse_judge_response(text: str, names: Sequence[str]) -> JudgeVerdict:
    """Parse judge sub-scores: JSON first, then regex, then neutral.

    Sub-scores the judge omitted are filled with the neutral score. Never raises.
    """
    verdict = _parse_json_scores(text, names)
    if verdict is None:
        scores = {}
        for name in names:
            score = extract_score(text, name)
            if score is not None:
                scores[name] = score
        if scores:
            verdict = JudgeVerdict(scores=scores, method="regex")
        else:
            return JudgeVerdict(
                scores={name: NEUTRAL_SCORE for name in names},
                method="neutral",
                parse_failed=True,
            )

    for name in names:
        verdict.scores.setdefault(name, NEUTRAL_SCORE)
    return verdict


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class CriterionScorer(ABC):
    """Scores one criterion for a candidate over all test cases."""

    def __init__(self, criterion: EvaluationCriterion):
        self.criterion = criterion

    @abstractmethod
    async def score(
        self,
        candidate: Candidate,
        test_cases: Sequence[TestCase],
        outputs: Sequence[CandidateOutput],
    ) -> ScoreResult:
        """Return a normalized score in [0, 1]."""
        pass


class RetrievalAccuracyScorer(CriterionScorer):
    """Average retrieval F1 across test cases."""

    async def score(
        self,
        candidate: Candidate,
        test_cases: Sequence[TestCase],
        outputs: Sequence[CandidateOutput],
    ) -> ScoreResult:
        case_scores: List[float] = []
        case_details: List[Dict[str, float]] = []
        for test_case, output in zip(test_cases, outputs):
            metrics = compute_retrieval_metrics(
                test_case.expected_chunk_ids, output.retrieved_chunk_ids
            )
            case_scores.append(metrics.f1)
            case_details.append(
                {"precision": metrics.precision, "recall": metrics.recall, "f1": metrics.f1}
            )
        return ScoreResult(
            score=clamp_score(_mean(case_scores)),
            case_scores=case_scores,
            case_details=case_details,
        )


class LLMJudgeScorer(CriterionScorer):
    """Rubric scoring by a judge model.

    Judge call failures propagate as ``EvaluationError`` carrying the cost
    already spent; every judge call is paced by ``rate_limiter``. Unparsable
    judge output is scored neutrally and reported in ``warnings``.
    """

    def __init__(
        self,
        criterion: EvaluationCriterion,
        judge_client: BaseLLMClient,
        config: Optional[OptimizationConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(criterion)
        self.judge = judge_client
        self.config = config or OptimizationConfig()
        self.rate_limiter = rate_limiter or RateLimiter(self.config.rate_limit_interval)
        self.rubric = criterion.effective_rubric()

    async def score(
        self,
        candidate: Candidate,
        test_cases: Sequence[TestCase],
        outputs: Sequence[CandidateOutput],
    ) -> ScoreResult:
        case_scores: List[float] = []
        case_details: List[Dict[str, float]] = []
        warnings: List[str] = []
        parse_failures = 0
        cost = 0.0
        start_time = time.time()

        for test_case, output in zip(test_cases, outputs):
            await self.rate_limiter.acquire()
            try:
                result = await self.judge.agenerate(
                    self.build_prompt(test_case, output),
                    GenerationOptions(
                        temperature=self.config.judge_temperature,
                        max_tokens=self.config.judge_max_tokens,
                        system_prompt=self.config.judge_system_prompt,
                        json_mode=True,
                    ),
                )
            except Exception as e:
                raise EvaluationError(
                    f"judge call failed on '{test_case.query[:40]}': {e}", cost=cost
                ) from e
            cost += result.cost or 0.0
            verdict = parse_judge_response(result.text, list(self.rubric))
            if verdict.parse_failed:
                parse_failures += 1
                message = (
                    f"{self.criterion.name}: unparsable judge output for "
                    f"'{test_case.query[:40]}', using neutral score"
                )
                warnings.append(message)
                logger.warning(f"Candidate {candidate.id}: {message}")
                case_scores.append(NEUTRAL_SCORE)
            else:
                logger.debug(f"Judge verdict via {verdict.method}: {verdict.scores}")
                case_scores.append(self._weighted(verdict.scores))
            case_details.append(dict(verdict.scores))

        return ScoreResult(
            score=clamp_score(_mean(case_scores)),
            case_scores=case_scores,
            case_details=case_details,
            cost=cost,
            latency_ms=(time.time() - start_time) * 1000,
            warnings=warnings,
            parse_failures=parse_failures,
        )

    def build_prompt(self, test_case: TestCase, output: CandidateOutput) -> str:
        """Render the rubric prompt for one test case."""
        rubric_lines = []
        for index, name in enumerate(self.rubric, 1):
            description = RUBRIC_DESCRIPTIONS.get(name, f"Rate the {name} of the response.")
            rubric_lines.append(f"{index}. {name.upper()}: {description}")

        schema = {name: "0.0-1.0" for name in self.rubric}
        schema["reasoning"] = "Brief explanation of your evaluation"
        schema["feedback"] = "Specific feedback for improvement"

        return self.config.judge_template.format(
            query=test_case.query,
            reference=test_case.reference or NO_REFERENCE,
            context=output.context or "(no context retrieved)",
            response=output.response,
            rubric="\n".join(rubric_lines),
            schema=json.dumps(schema, indent=2),
        )

    def _weighted(self, scores: Dict[str, float]) -> float:
        total_weight = sum(self.rubric.values())
        return clamp_score(
            sum(self.rubric[name] * scores[name] for name in self.rubric) / total_weight
        )


def build_scorer(
    criterion: EvaluationCriterion,
    judge_client: Optional[BaseLLMClient],
    config: Optional[OptimizationConfig] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> CriterionScorer:
    """Default scorer for a criterion kind."""
    if criterion.kind == CriterionKind.DETERMINISTIC_METRIC:
        return RetrievalAccuracyScorer(criterion)
    if judge_client is None:
        raise ConfigurationError(f"Criterion '{criterion.name}' needs a judge client")
    return LLMJudgeScorer(criterion, judge_client, config, rate_limiter=rate_limiter)

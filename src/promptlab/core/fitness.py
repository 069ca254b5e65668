"""Hybrid fitness: combine criterion scores into one weighted score per candidate."""

import asyncio
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from ..clients import BaseLLMClient
from ..errors import EvaluationError
from ..models import (
    Candidate,
    CaseResult,
    EvaluationCriterion,
    FitnessReport,
    OptimizationConfig,
    TestCase,
)
from .rate_limit import RateLimiter
from .runner import CandidateOutput, CandidateRunner
from .scoring import CriterionScorer, ScoreResult, build_scorer, clamp_score

EVALUATION_FAILURE_PENALTY = 0.1

ProgressFn = Callable[[FitnessReport, int, int], None]


def combine_scores(
    criterion_scores: Mapping[str, float],
    criteria: Sequence[EvaluationCriterion],
) -> float:
    """Weighted sum of criterion scores."""
    return clamp_score(sum(c.weight * criterion_scores[c.name] for c in criteria))


def spent_cost(error: Exception) -> float:
    """Cost already incurred by a call sequence that raised ``error``."""
    return error.cost if isinstance(error, EvaluationError) else 0.0


class FitnessAggregator:
    """Evaluates candidates against test cases under weighted criteria."""

    def __init__(
        self,
        runner: CandidateRunner,
        judge_client: Optional[BaseLLMClient] = None,
        config: Optional[OptimizationConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        scorers: Optional[Mapping[str, CriterionScorer]] = None,
    ):
        """Initialize aggregator; ``scorers`` override the default scorer per criterion name."""
        self.runner = runner
        self.judge = judge_client
        self.config = config or OptimizationConfig()
        self.rate_limiter = rate_limiter or RateLimiter(self.config.rate_limit_interval)
        self.scorer_overrides: Dict[str, CriterionScorer] = dict(scorers or {})
        self._scorers: Dict[str, CriterionScorer] = {}

    def scorer_for(self, criterion: EvaluationCriterion) -> CriterionScorer:
        if criterion.name in self.scorer_overrides:
            return self.scorer_overrides[criterion.name]
        if criterion.name not in self._scorers:
            self._scorers[criterion.name] = build_scorer(
                criterion, self.judge, self.config, rate_limiter=self.rate_limiter
            )
        return self._scorers[criterion.name]

    async def evaluate(
        self,
        candidate: Candidate,
        test_cases: Sequence[TestCase],
        criteria: Sequence[EvaluationCriterion],
    ) -> FitnessReport:
        """Score a candidate and attach the results to it."""
        if candidate.is_evaluated:
            return FitnessReport(
                candidate_id=candidate.id,
                combined_score=candidate.combined_score,
                criterion_scores=dict(candidate.criterion_scores),
                skipped=True,
            )

        start_time = time.time()
        warnings: List[str] = []
        penalized: List[str] = []
        cost = 0.0

        try:
            outputs = await self._run_test_cases(candidate, test_cases)
        except Exception as e:
            message = f"Candidate run failed: {e}"
            logger.warning(f"Candidate {candidate.id}: {message}")
            warnings.append(message)
            cost += spent_cost(e)
            outputs = None
        else:
            cost += sum(output.cost for output in outputs)

        results: Dict[str, ScoreResult] = {}
        criterion_scores: Dict[str, float] = {}
        for criterion in criteria:
            if outputs is None:
                criterion_scores[criterion.name] = EVALUATION_FAILURE_PENALTY
                penalized.append(criterion.name)
                continue
            try:
                result = await self.scorer_for(criterion).score(candidate, test_cases, outputs)
            except Exception as e:
                message = f"{criterion.name} scoring failed: {e}"
                logger.warning(f"Candidate {candidate.id}: {message}")
                warnings.append(message)
                cost += spent_cost(e)
                criterion_scores[criterion.name] = EVALUATION_FAILURE_PENALTY
                penalized.append(criterion.name)
                continue
            results[criterion.name] = result
            criterion_scores[criterion.name] = result.score
            cost += result.cost
            warnings.extend(result.warnings)

        combined = combine_scores(criterion_scores, criteria)
        latency_ms = (time.time() - start_time) * 1000

        candidate.criterion_scores = criterion_scores
        candidate.combined_score = combined
        candidate.metadata.evaluation_cost = cost
        candidate.metadata.evaluation_latency_ms = latency_ms
        candidate.metadata.evaluation_warnings = list(warnings)

        logger.debug(f"Evaluated {candidate.id}: combined={combined:.3f} {criterion_scores}")
        return FitnessReport(
            candidate_id=candidate.id,
            combined_score=combined,
            criterion_scores=criterion_scores,
            penalized_criteria=penalized,
            case_results=self._case_results(test_cases, criteria, results),
            warnings=warnings,
            cost=cost,
            latency_ms=latency_ms,
        )

    async def evaluate_population(
        self,
        candidates: Sequence[Candidate],
        test_cases: Sequence[TestCase],
        criteria: Sequence[EvaluationCriterion],
        on_progress: Optional[ProgressFn] = None,
    ) -> List[FitnessReport]:
        """Evaluate unscored candidates with bounded concurrency.

        Results are complete when this returns; a failure of one candidate is
        recorded as a penalty and never cancels the others.
        """
        pending = [c for c in candidates if not c.is_evaluated]
        total = len(pending)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        completed = 0

        async def evaluate_one(candidate: Candidate) -> FitnessReport:
            nonlocal completed
            async with semaphore:
                try:
                    report = await self.evaluate(candidate, test_cases, criteria)
                except Exception as e:
                    logger.warning(f"Evaluation of {candidate.id} failed: {e}")
                    report = self._penalize(candidate, criteria, str(e))
            completed += 1
            if on_progress:
                on_progress(report, completed, total)
            return report

        return list(await asyncio.gather(*(evaluate_one(c) for c in pending)))

    async def _run_test_cases(
        self,
        candidate: Candidate,
        test_cases: Sequence[TestCase],
    ) -> List[CandidateOutput]:
        outputs: List[CandidateOutput] = []
        cost = 0.0
        for test_case in test_cases:
            await self.rate_limiter.acquire()
            try:
                output = await self.runner.run(candidate, test_case)
            except Exception as e:
                raise EvaluationError(str(e), cost=cost + spent_cost(e)) from e
            cost += output.cost
            outputs.append(output)
        return outputs

    def _penalize(
        self,
        candidate: Candidate,
        criteria: Sequence[EvaluationCriterion],
        reason: str,
    ) -> FitnessReport:
        scores = {criterion.name: EVALUATION_FAILURE_PENALTY for criterion in criteria}
        combined = combine_scores(scores, criteria)
        candidate.criterion_scores = scores
        candidate.combined_score = combined
        candidate.metadata.evaluation_warnings = [reason]
        return FitnessReport(
            candidate_id=candidate.id,
            combined_score=combined,
            criterion_scores=scores,
            penalized_criteria=list(scores),
            warnings=[reason],
        )

    def _case_results(
        self,
        test_cases: Sequence[TestCase],
        criteria: Sequence[EvaluationCriterion],
        results: Mapping[str, ScoreResult],
    ) -> List[CaseResult]:
        case_results: List[CaseResult] = []
        for index, test_case in enumerate(test_cases):
            scores: Dict[str, float] = {}
            sub_scores: Dict[str, Dict[str, float]] = {}
            for criterion in criteria:
                result = results.get(criterion.name)
                if result is None or index >= len(result.case_scores):
                    scores[criterion.name] = EVALUATION_FAILURE_PENALTY
                    continue
                scores[criterion.name] = result.case_scores[index]
                if index < len(result.case_details):
                    sub_scores[criterion.name] = result.case_details[index]
            case_results.append(
                CaseResult(
                    query=test_case.query,
                    criterion_scores=scores,
                    sub_scores=sub_scores,
                    combined_score=combine_scores(scores, criteria),
                )
            )
        return case_results

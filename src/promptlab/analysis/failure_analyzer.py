"""Failure pattern analysis and run recommendations."""

from typing import List, Sequence

from loguru import logger

from ..models import CriterionKind, EvaluationCriterion, FitnessReport, OptimizationRun
from ..models.mutations import ADD_EXAMPLES

DEFAULT_PASSING_THRESHOLD = 0.7
LOW_RETRIEVAL_F1 = 0.5
LOW_RESPONSE_SCORE = 0.7
LOW_GROUNDEDNESS = 0.7
PATTERN_SHARE = 0.5
EXCELLENT_SCORE = 0.8
GOOD_SCORE = 0.6
FEW_IMPROVEMENTS = 3

POOR_RETRIEVAL = "Poor chunk retrieval accuracy"
LOW_RESPONSE_QUALITY = "Low response quality"
POORLY_GROUNDED = "Responses not well grounded in context"


class FailureAnalyzer:
    """Finds recurring weaknesses in a candidate's per-test-case scores."""

    def __init__(self, passing_threshold: float = DEFAULT_PASSING_THRESHOLD):
        self.passing_threshold = passing_threshold

    def analyze(
        self,
        report: FitnessReport,
        criteria: Sequence[EvaluationCriterion],
    ) -> List[str]:
        """Patterns shared by more than half of the failing test cases."""
        failures = [
            case for case in report.case_results
            if case.combined_score < self.passing_threshold
        ]
        if not failures:
            return []

        retrieval = [c.name for c in criteria if c.kind == CriterionKind.DETERMINISTIC_METRIC]
        judged = [c.name for c in criteria if c.kind == CriterionKind.LLM_JUDGED]

        low_retrieval = sum(
            1 for case in failures
            if any(case.criterion_scores.get(name, 0.0) < LOW_RETRIEVAL_F1 for name in retrieval)
        )
        low_response = sum(
            1 for case in failures
            if any(case.criterion_scores.get(name, 0.0) < LOW_RESPONSE_SCORE for name in judged)
        )
        low_groundedness = sum(
            1 for case in failures
            if any(
                case.sub_scores.get(name, {}).get("groundedness", 1.0) < LOW_GROUNDEDNESS
                for name in judged
            )
        )

        patterns: List[str] = []
        threshold = len(failures) * PATTERN_SHARE
        if low_retrieval > threshold:
            patterns.append(POOR_RETRIEVAL)
        if low_response > threshold:
            patterns.append(LOW_RESPONSE_QUALITY)
        if low_groundedness > threshold:
            patterns.append(POORLY_GROUNDED)

        logger.debug(
            f"{report.candidate_id}: {len(failures)}/{len(report.case_results)} "
            f"cases below {self.passing_threshold}, patterns={patterns}"
        )
        return patterns

    def recommend(self, run: OptimizationRun) -> List[str]:
        """Human-readable advice for the finished run."""
        recommendations: List[str] = []
        best = run.best_candidate
        best_score = run.best_score_ever or 0.0

        if best_score > EXCELLENT_SCORE:
            recommendations.append("Excellent performance achieved")
        elif best_score > GOOD_SCORE:
            recommendations.append("Good performance, consider further refinement")
        else:
            recommendations.append("Performance below target, review approach")

        improvements = sum(1 for record in run.history if record.improved)
        if improvements < FEW_IMPROVEMENTS and run.history:
            recommendations.append("Try increasing mutation rate or population size")

        if best is not None and ADD_EXAMPLES in best.mutation_history:
            recommendations.append("Examples improved performance")

        final_patterns = run.history[-1].failure_patterns if run.history else []
        if POOR_RETRIEVAL in final_patterns:
            recommendations.append("Focus on improving query enhancement prompts")
        if POORLY_GROUNDED in final_patterns:
            recommendations.append("Emphasize context adherence in response generation prompts")

        fallbacks = sum(len(c.metadata.mutation_fallbacks) for c in run.all_candidates())
        if fallbacks:
            recommendations.append(
                f"{fallbacks} reformat rewrites kept their original text; check the rewrite model"
            )
        return recommendations

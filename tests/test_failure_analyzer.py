"""Tests for failure pattern analysis and recommendations."""

from promptlab.analysis import FailureAnalyzer
from promptlab.analysis.failure_analyzer import LOW_RESPONSE_QUALITY, POOR_RETRIEVAL, POORLY_GROUNDED
from promptlab.models import (
    CaseResult,
    FitnessReport,
    GenerationRecord,
    OptimizationConfig,
    OptimizationRun,
    Population,
    default_criteria,
)
from promptlab.models.mutations import ADD_EXAMPLES

from conftest import make_candidate


def case(retrieval: float, quality: float, groundedness: float = 0.9) -> CaseResult:
    return CaseResult(
        query="q",
        criterion_scores={"retrieval_accuracy": retrieval, "response_quality": quality},
        sub_scores={"response_quality": {"groundedness": groundedness}},
        combined_score=0.4 * retrieval + 0.6 * quality,
    )


def report(*cases: CaseResult) -> FitnessReport:
    return FitnessReport(
        candidate_id="cand-00000",
        combined_score=sum(c.combined_score for c in cases) / len(cases),
        criterion_scores={},
        case_results=list(cases),
    )


def test_no_failures_no_patterns():
    assert FailureAnalyzer().analyze(report(case(1.0, 0.9)), default_criteria()) == []


def test_poor_retrieval_pattern():
    patterns = FailureAnalyzer().analyze(
        report(case(0.0, 0.9), case(0.2, 0.95), case(1.0, 0.9)), default_criteria()
    )
    assert patterns == [POOR_RETRIEVAL]


def test_quality_and_grounding_patterns():
    patterns = FailureAnalyzer().analyze(
        report(case(1.0, 0.3, 0.2), case(1.0, 0.4, 0.5)), default_criteria()
    )
    assert LOW_RESPONSE_QUALITY in patterns
    assert POORLY_GROUNDED in patterns
    assert POOR_RETRIEVAL not in patterns


def test_pattern_needs_majority_of_failures():
    patterns = FailureAnalyzer().analyze(
        report(case(0.0, 0.9), case(1.0, 0.3, 0.9)), default_criteria()
    )
    assert patterns == []


def test_recommendations():
    best = make_candidate("cand-00004", 0.55)
    best.mutation_history = [ADD_EXAMPLES]
    best.metadata.mutation_fallbacks = ["reformat-as-xml"]
    run = OptimizationRun(
        run_id="run_test",
        config=OptimizationConfig(),
        criteria=default_criteria(),
        best_candidate=best,
        best_score_ever=0.55,
        populations=[Population(generation=0, candidates=[best])],
        history=[
            GenerationRecord(
                generation=0,
                best_score=0.55,
                average_score=0.4,
                worst_score=0.2,
                diversity=0.3,
                best_candidate=best,
                improved=True,
                stagnation_count=0,
                failure_patterns=[POOR_RETRIEVAL],
            )
        ],
    )

    recommendations = FailureAnalyzer().recommend(run)

    assert recommendations[0] == "Performance below target, review approach"
    assert "Try increasing mutation rate or population size" in recommendations
    assert "Examples improved performance" in recommendations
    assert "Focus on improving query enhancement prompts" in recommendations
    assert any("reformat rewrites" in r for r in recommendations)

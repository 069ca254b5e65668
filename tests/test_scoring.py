"""Tests for retrieval metrics and judge response parsing."""

import pytest

from promptlab.core.rate_limit import RateLimiter
from promptlab.core.runner import CandidateOutput
from promptlab.core.scoring import (
    NEUTRAL_SCORE,
    LLMJudgeScorer,
    RetrievalAccuracyScorer,
    compute_retrieval_metrics,
    parse_judge_response,
)
from promptlab.errors import EvaluationError
from promptlab.models import DEFAULT_JUDGE_RUBRIC, response_quality, retrieval_accuracy

from conftest import ScriptedLLM, constant_judge, judge_json, make_candidate

RUBRIC = list(DEFAULT_JUDGE_RUBRIC)


class TestRetrievalMetrics:

    def test_partial_overlap(self):
        metrics = compute_retrieval_metrics([1, 5], [1, 2, 5])
        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(1.0)
        assert metrics.f1 == pytest.approx(0.8)
        assert metrics.unexpected == [2]
        assert not metrics.exact_match

    def test_exact_match(self):
        metrics = compute_retrieval_metrics(["a", "b"], ["b", "a"])
        assert metrics.f1 == pytest.approx(1.0)
        assert metrics.exact_match

    def test_nothing_retrieved(self):
        metrics = compute_retrieval_metrics([1], [])
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1 == 0.0
        assert metrics.missed == [1]

    def test_nothing_expected(self):
        metrics = compute_retrieval_metrics([], [3])
        assert metrics.recall == 0.0
        assert metrics.f1 == 0.0

    def test_both_empty(self):
        assert compute_retrieval_metrics([], []).f1 == 0.0


class TestJudgeParsing:

    def test_json_object(self):
        verdict = parse_judge_response(judge_json(0.9, clarity=0.4), RUBRIC)
        assert not verdict.parse_failed
        assert verdict.method == "json"
        assert verdict.scores["accuracy"] == pytest.approx(0.9)
        assert verdict.scores["clarity"] == pytest.approx(0.4)
        assert verdict.reasoning == "fine"

    def test_json_inside_prose(self):
        text = 'Here you go:\n{"accuracy": 0.8, "helpfulness": "0.6"}\nThanks'
        verdict = parse_judge_response(text, RUBRIC)
        assert verdict.scores["accuracy"] == pytest.approx(0.8)
        assert verdict.scores["helpfulness"] == pytest.approx(0.6)
        assert verdict.scores["clarity"] == NEUTRAL_SCORE

    def test_regex_fallback(self):
        text = "accuracy: 0.7, helpfulness = 0.9 and completeness: 1"
        verdict = parse_judge_response(text, RUBRIC)
        assert verdict.method == "regex"
        assert verdict.scores["accuracy"] == pytest.approx(0.7)
        assert verdict.scores["helpfulness"] == pytest.approx(0.9)
        assert verdict.scores["completeness"] == pytest.approx(1.0)

    def test_scores_are_clamped(self):
        verdict = parse_judge_response('{"accuracy": 1.7, "clarity": -2}', RUBRIC)
        assert verdict.scores["accuracy"] == 1.0
        assert verdict.scores["clarity"] == 0.0

    def test_unparsable_is_neutral(self):
        verdict = parse_judge_response("I refuse to grade this.", RUBRIC)
        assert verdict.parse_failed
        assert verdict.scores == {name: NEUTRAL_SCORE for name in RUBRIC}


@pytest.mark.asyncio
async def test_retrieval_scorer_averages_f1(test_cases):
    outputs = [
        CandidateOutput(query=test_cases[0].query, retrieved_chunk_ids=[1]),
        CandidateOutput(query=test_cases[1].query, retrieved_chunk_ids=[2]),
    ]
    result = await RetrievalAccuracyScorer(retrieval_accuracy()).score(
        make_candidate("cand-00000"), test_cases, outputs
    )
    second_f1 = 2 * 1.0 * 0.5 / 1.5
    assert result.case_scores == pytest.approx([1.0, second_f1])
    assert result.score == pytest.approx((1.0 + second_f1) / 2)


@pytest.mark.asyncio
async def test_judge_garbage_scores_exactly_neutral(test_cases):
    judge = ScriptedLLM(lambda prompt, options: "no scores here", cost=0.002)
    scorer = LLMJudgeScorer(response_quality(), judge)
    outputs = [CandidateOutput(query=case.query, response="answer") for case in test_cases]

    result = await scorer.score(make_candidate("cand-00000"), test_cases, outputs)

    assert result.score == NEUTRAL_SCORE
    assert result.case_scores == [NEUTRAL_SCORE, NEUTRAL_SCORE]
    assert result.parse_failures == 2
    assert len(result.warnings) == 2
    assert result.cost == pytest.approx(0.004)


@pytest.mark.asyncio
async def test_judge_weights_rubric(test_cases):
    judge = ScriptedLLM(lambda prompt, options: judge_json(1.0, clarity=0.0, groundedness=0.0))
    scorer = LLMJudgeScorer(response_quality(), judge)
    outputs = [CandidateOutput(query=case.query, response="answer") for case in test_cases]

    result = await scorer.score(make_candidate("cand-00000"), test_cases, outputs)

    assert result.score == pytest.approx(0.7)
    assert "Use the reset link." in judge.prompts[0]


@pytest.mark.asyncio
async def test_judge_call_failure_carries_spent_cost(test_cases):
    def fail_second(prompt, options):
        if len(judge.prompts) == 2:
            raise RuntimeError("judge down")
        return judge_json(0.9)

    judge = ScriptedLLM(fail_second, cost=0.3)
    scorer = LLMJudgeScorer(response_quality(), judge)
    outputs = [CandidateOutput(query=case.query) for case in test_cases]

    with pytest.raises(EvaluationError, match="judge down") as excinfo:
        await scorer.score(make_candidate("cand-00000"), test_cases, outputs)

    assert excinfo.value.cost == pytest.approx(0.3)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_judge_calls_wait_for_the_rate_limiter(test_cases):
    class CountingLimiter(RateLimiter):
        acquired = 0

        async def acquire(self):
            self.acquired += 1

    limiter = CountingLimiter(1.0)
    scorer = LLMJudgeScorer(response_quality(), constant_judge(0.8), rate_limiter=limiter)
    outputs = [CandidateOutput(query=case.query) for case in test_cases]

    await scorer.score(make_candidate("cand-00000"), test_cases, outputs)

    assert limiter.acquired == len(test_cases)

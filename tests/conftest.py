"""Shared fakes and fixtures for promptlab tests."""

import asyncio
import json
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from promptlab.clients import BaseLLMClient, BaseRetriever, GenerationOptions, GenerationResult, SearchHit
from promptlab.core.runner import CandidateOutput, CandidateRunner
from promptlab.models import Candidate, DEFAULT_JUDGE_RUBRIC, OptimizationConfig, TestCase

Responder = Callable[[str, Optional[GenerationOptions]], str]


class ScriptedLLM(BaseLLMClient):
    """LLM fake that answers every prompt through ``responder``."""

    def __init__(self, responder: Optional[Responder] = None, cost: float = 0.0):
        self.responder = responder or (lambda prompt, options: "ok")
        self.cost = cost
        self.prompts: List[str] = []

    async def agenerate(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        self.prompts.append(prompt)
        return GenerationResult(text=self.responder(prompt, options), cost=self.cost)


class EchoRewriter(ScriptedLLM):
    """Rewrite client that returns the original prompt wrapped in a heading."""

    def __init__(self):
        super().__init__(self._rewrite)

    @staticmethod
    def _rewrite(prompt: str, options: Optional[GenerationOptions]) -> str:
        original = prompt.split("Original prompt:\n", 1)[1].rsplit("\n\nRewritten in", 1)[0]
        return f"# Instructions\n\n{original}"


class StaticRetriever(BaseRetriever):
    """Returns the same hits for every query."""

    def __init__(self, hits: Sequence[SearchHit]):
        self.hits = list(hits)
        self.queries: List[str] = []

    async def asearch(self, query: str, top_k: int = 3) -> List[SearchHit]:
        self.queries.append(query)
        return self.hits[:top_k]


class EchoRunner(CandidateRunner):
    """Retrieves the expected chunks and answers with the rendered candidate."""

    def __init__(
        self,
        retrieved: Optional[Sequence] = None,
        fail_ids: Sequence[str] = (),
        fail_all: bool = False,
        delay: float = 0.0,
    ):
        self.retrieved = list(retrieved) if retrieved is not None else None
        self.fail_ids = set(fail_ids)
        self.fail_all = fail_all
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0

    async def run(self, candidate: Candidate, test_case: TestCase) -> CandidateOutput:
        self.calls += 1
        if self.fail_all or candidate.id in self.fail_ids:
            raise RuntimeError(f"runner exploded on {candidate.id}")
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        retrieved = self.retrieved if self.retrieved is not None else list(test_case.expected_chunk_ids)
        return CandidateOutput(
            query=test_case.query,
            retrieved_chunk_ids=retrieved,
            context="context",
            response=candidate.render(),
        )


def judge_json(score: float, **overrides: float) -> str:
    scores: Dict[str, float] = {name: score for name in DEFAULT_JUDGE_RUBRIC}
    scores.update(overrides)
    return json.dumps({**scores, "reasoning": "fine", "feedback": "none"})


def constant_judge(score: float, cost: float = 0.0) -> ScriptedLLM:
    return ScriptedLLM(lambda prompt, options: judge_json(score), cost=cost)


def make_candidate(
    candidate_id: str,
    score: Optional[float] = None,
    text: str = "Answer the question.",
    generation: int = 0,
) -> Candidate:
    candidate = Candidate(id=candidate_id, generation=generation, prompt_components={"prompt": text})
    if score is not None:
        candidate.combined_score = score
        candidate.criterion_scores = {"retrieval_accuracy": score, "response_quality": score}
    return candidate


@pytest.fixture
def test_cases() -> List[TestCase]:
    return [
        TestCase(query="How do I reset my password?", expected_chunk_ids=[1], reference="Use the reset link."),
        TestCase(query="Which payment methods work?", expected_chunk_ids=[2, 3], reference="Cards and PayPal."),
    ]


@pytest.fixture
def make_config() -> Callable[..., OptimizationConfig]:
    """Fast deterministic config factory."""

    def factory(**overrides) -> OptimizationConfig:
        values = {
            "population_size": 4,
            "max_generations": 3,
            "rate_limit_interval": 0.0,
            "seed": 7,
        }
        values.update(overrides)
        return OptimizationConfig(**values)

    return factory

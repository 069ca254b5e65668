"""Tests for crossover and mutation operators."""

import random

import pytest

from promptlab.core.crossover import ComponentCrossover, interleave_sentences
from promptlab.core.mutator import PromptMutator, wrap_markdown
from promptlab.errors import LLMServerError
from promptlab.models import Candidate, MUTATION_CATALOG, OptimizationConfig
from promptlab.models.mutations import REFORMAT_MARKDOWN, REFORMAT_XML

from conftest import EchoRewriter, ScriptedLLM, make_candidate

STRUCTURED_A = {
    "query_enhancement": "Rewrite {query} for search.",
    "response_generation": "Answer {query} using {context}.",
}
STRUCTURED_B = {
    "query_enhancement": "Expand {query} with synonyms.",
    "response_generation": "Using {context}, reply to {query} briefly.",
    "context_formatting": "Sources:\n{chunks}",
}


def structured(candidate_id: str, components) -> Candidate:
    return Candidate(id=candidate_id, generation=1, prompt_components=dict(components), combined_score=0.5)


class TestCrossover:

    def test_offspring_records_both_parents(self):
        crossover = ComponentCrossover(rng=random.Random(0))
        child = crossover.crossover(
            structured("cand-00001", STRUCTURED_A), structured("cand-00002", STRUCTURED_B), "cand-00009", 2
        )
        assert child.parent_ids == ["cand-00001", "cand-00002"]
        assert child.generation == 2
        assert child.combined_score is None
        assert child.mutation_history == []

    def test_slots_come_from_a_parent(self):
        crossover = ComponentCrossover(rng=random.Random(5))
        for index in range(20):
            child = crossover.crossover(
                structured("cand-00001", STRUCTURED_A),
                structured("cand-00002", STRUCTURED_B),
                f"cand-1{index:04d}",
                1,
            )
            assert set(child.prompt_components) == set(STRUCTURED_B)
            for slot, text in child.prompt_components.items():
                assert text in (STRUCTURED_A.get(slot), STRUCTURED_B.get(slot))
            assert child.prompt_components["context_formatting"] == STRUCTURED_B["context_formatting"]

    def test_free_text_parents_interleave_sentences(self):
        crossover = ComponentCrossover(rng=random.Random(2))
        parent_a = make_candidate("cand-00001", 0.5, text="Be brief. Cite sources. Stay polite")
        parent_b = make_candidate("cand-00002", 0.5, text="Use lists. Avoid jargon")
        child = crossover.crossover(parent_a, parent_b, "cand-00003", 1)
        assert list(child.prompt_components) == ["prompt"]
        for sentence in ("Be brief", "Cite sources", "Stay polite"):
            assert sentence in child.prompt_components["prompt"]

    def test_sentence_fallback_can_be_disabled(self):
        crossover = ComponentCrossover(rng=random.Random(2), sentence_fallback=False)
        parent_a = make_candidate("cand-00001", 0.5, text="One. Two")
        parent_b = make_candidate("cand-00002", 0.5, text="Three. Four")
        child = crossover.crossover(parent_a, parent_b, "cand-00003", 1)
        assert child.prompt_components["prompt"] in ("One. Two", "Three. Four")

    def test_interleave_keeps_first_text_order(self):
        result = interleave_sentences("A. B. C", "X. Y", random.Random(0))
        kept = [part for part in result.split(". ") if part in ("A", "B", "C")]
        assert kept == ["A", "B", "C"]


class TestMutator:

    @pytest.mark.asyncio
    async def test_forced_mutation_records_history(self):
        mutator = PromptMutator(rng=random.Random(4))
        original = make_candidate("cand-00001", text="Answer the question.")
        mutated = await mutator.mutate(original, mutation_rate=0.0, force=True)

        assert mutated is not original
        assert 1 <= len(mutated.mutation_history) <= 3
        assert all(name in MUTATION_CATALOG for name in mutated.mutation_history)
        assert original.mutation_history == []
        assert original.prompt_components == {"prompt": "Answer the question."}

    @pytest.mark.asyncio
    async def test_zero_rate_returns_same_candidate(self):
        mutator = PromptMutator(rng=random.Random(4))
        original = make_candidate("cand-00001")
        assert await mutator.mutate(original, mutation_rate=0.0) is original

    @pytest.mark.asyncio
    async def test_templated_reformat_without_client(self):
        mutator = PromptMutator(rng=random.Random(0))
        candidate = make_candidate("cand-00001")
        text = await mutator.apply(REFORMAT_MARKDOWN, "Answer {query}.", candidate)
        assert text == wrap_markdown("Answer {query}.")
        xml = await mutator.apply(REFORMAT_XML, "Answer {query}.", candidate)
        assert xml.startswith("<instructions>")
        assert candidate.metadata.mutation_fallbacks == []

    @pytest.mark.asyncio
    async def test_rewrite_uses_llm(self):
        mutator = PromptMutator(rewrite_client=EchoRewriter(), rng=random.Random(0))
        candidate = make_candidate("cand-00001")
        text = await mutator.apply(REFORMAT_MARKDOWN, "Answer {query} with {context}.", candidate)
        assert text == "# Instructions\n\nAnswer {query} with {context}."
        assert candidate.metadata.mutation_fallbacks == []

    @pytest.mark.asyncio
    async def test_failed_rewrite_keeps_text_and_is_flagged(self):
        def fail(prompt, options):
            raise LLMServerError("503")

        mutator = PromptMutator(rewrite_client=ScriptedLLM(fail), rng=random.Random(0))
        candidate = make_candidate("cand-00001")
        text = await mutator.apply(REFORMAT_XML, "Answer {query}.", candidate)
        assert text == "Answer {query}."
        assert candidate.metadata.mutation_fallbacks == [REFORMAT_XML]

    @pytest.mark.asyncio
    async def test_rewrite_dropping_placeholder_is_rejected(self):
        rewriter = ScriptedLLM(lambda prompt, options: "## Answer\nReply using the context.", cost=0.01)
        mutator = PromptMutator(rewrite_client=rewriter, rng=random.Random(0))
        candidate = make_candidate("cand-00001")
        text = await mutator.apply(REFORMAT_MARKDOWN, "Answer {query} using {context}.", candidate)
        assert text == "Answer {query} using {context}."
        assert candidate.metadata.mutation_fallbacks == [REFORMAT_MARKDOWN]
        assert mutator.cost_spent == pytest.approx(0.01)

    @pytest.mark.asyncio
    async def test_rewrite_template_uses_configured_temperature(self):
        seen = []

        def record(prompt, options):
            seen.append(options.temperature)
            return prompt

        config = OptimizationConfig(rewrite_temperature=0.9)
        mutator = PromptMutator(rewrite_client=ScriptedLLM(record), config=config, rng=random.Random(0))
        await mutator.apply(REFORMAT_MARKDOWN, "Plain text.", make_candidate("cand-00001"))
        assert seen == [0.9]

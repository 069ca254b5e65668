"""Tests for the retrieval-augmented candidate runner and the in-memory retriever."""

import pytest

from promptlab.clients import Document, InMemoryRetriever, SearchHit
from promptlab.core.runner import RAGCandidateRunner, fill_template
from promptlab.errors import EvaluationError, LLMConnectionError
from promptlab.models import Candidate, TestCase

from conftest import ScriptedLLM, StaticRetriever

HITS = [
    SearchHit(document_id=1, score=0.9, title="Reset", content="Use the reset link."),
    SearchHit(document_id=4, score=0.4, title=None, content="Contact support."),
]


def candidate_with(components) -> Candidate:
    return Candidate(id="cand-00000", generation=0, prompt_components=components)


def test_fill_template_leaves_unknown_braces():
    assert fill_template("Q: {query} {other}", {"query": "why"}) == "Q: why {other}"


@pytest.mark.asyncio
async def test_single_slot_answers_with_context():
    llm = ScriptedLLM(lambda prompt, options: "  Click reset.  ", cost=0.003)
    retriever = StaticRetriever(HITS)
    runner = RAGCandidateRunner(llm, retriever, top_k=2)
    test_case = TestCase(query="How to reset?", expected_chunk_ids=[1])

    output = await runner.run(candidate_with({"prompt": "Context:\n{context}\n\nQ: {query}"}), test_case)

    assert output.retrieved_chunk_ids == [1, 4]
    assert output.response == "Click reset."
    assert output.cost == pytest.approx(0.003)
    assert retriever.queries == ["How to reset?"]
    assert "[1] Reset: Use the reset link." in llm.prompts[0]
    assert "Q: How to reset?" in llm.prompts[0]


@pytest.mark.asyncio
async def test_structured_slots_enhance_and_format():
    def respond(prompt, options):
        return "reset password link" if prompt.startswith("Rewrite") else "answer"

    llm = ScriptedLLM(respond)
    retriever = StaticRetriever(HITS)
    runner = RAGCandidateRunner(llm, retriever)
    candidate = candidate_with({
        "query_enhancement": "Rewrite for search: {query}",
        "context_formatting": "SOURCES\n{chunks}",
        "response_generation": "{context}\nAnswer: {query}",
    })

    output = await runner.run(candidate, TestCase(query="forgot pw"))

    assert output.enhanced_query == "reset password link"
    assert retriever.queries == ["reset password link"]
    assert output.context.startswith("SOURCES\n[1]")
    assert llm.prompts[1].endswith("Answer: forgot pw")


@pytest.mark.asyncio
async def test_enhancement_failure_falls_back_to_raw_query():
    def respond(prompt, options):
        if prompt.startswith("Rewrite"):
            raise LLMConnectionError("timeout")
        return "answer"

    retriever = StaticRetriever(HITS)
    runner = RAGCandidateRunner(ScriptedLLM(respond), retriever)
    candidate = candidate_with({
        "query_enhancement": "Rewrite: {query}",
        "response_generation": "{context} {query}",
    })

    output = await runner.run(candidate, TestCase(query="forgot pw"))

    assert output.enhanced_query is None
    assert retriever.queries == ["forgot pw"]
    assert output.response == "answer"


@pytest.mark.asyncio
async def test_in_memory_retriever_ranks_by_overlap():
    retriever = InMemoryRetriever([
        Document(id=1, content="Reset your password from the login page.", keywords=["password"]),
        Document(id=2, content="Shipping takes three days.", keywords=["shipping"]),
        Document(id=3, content="Password rules: eight characters.", keywords=[]),
    ])

    hits = await retriever.asearch("reset password", top_k=3)

    assert [hit.document_id for hit in hits][0] == 1
    assert 2 not in [hit.document_id for hit in hits]
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)


@pytest.mark.asyncio
async def test_in_memory_retriever_respects_top_k(tmp_path):
    path = tmp_path / "kb.jsonl"
    path.write_text(
        "\n".join(
            f'{{"id": {i}, "content": "refund policy item {i}", "keywords": ["refund"]}}'
            for i in range(5)
        ),
        encoding="utf-8",
    )
    retriever = InMemoryRetriever.from_jsonl(path)
    assert len(await retriever.asearch("refund policy", top_k=2)) == 2
    assert await retriever.asearch("") == []


@pytest.mark.asyncio
async def test_answer_failure_reports_enhancement_cost():
    def respond(prompt, options):
        if prompt.startswith("Rewrite"):
            return "reset password"
        raise LLMConnectionError("timeout")

    runner = RAGCandidateRunner(ScriptedLLM(respond, cost=0.1), StaticRetriever(HITS))
    candidate = candidate_with({
        "query_enhancement": "Rewrite: {query}",
        "response_generation": "{context} {query}",
    })

    with pytest.raises(EvaluationError) as excinfo:
        await runner.run(candidate, TestCase(query="forgot pw"))

    assert excinfo.value.cost == pytest.approx(0.1)
    assert isinstance(excinfo.value.__cause__, LLMConnectionError)

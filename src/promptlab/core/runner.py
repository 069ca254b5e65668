"""Run a candidate's prompt components against one test case."""

import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..clients import BaseLLMClient, BaseRetriever, GenerationOptions, SearchHit
from ..errors import EvaluationError, LLMError
from ..models import Candidate, ChunkId, TestCase

QUERY_ENHANCEMENT_SLOT = "query_enhancement"
CONTEXT_FORMATTING_SLOT = "context_formatting"
RESPONSE_GENERATION_SLOT = "response_generation"

QUERY_ENHANCEMENT_TEMPERATURE = 0.3
QUERY_ENHANCEMENT_MAX_TOKENS = 100


class CandidateOutput(BaseModel):
    """What a candidate produced for one test case."""

    query: str
    enhanced_query: Optional[str] = None
    retrieved_chunk_ids: List[ChunkId] = Field(default_factory=list)
    context: str = ""
    response: str = ""
    cost: float = 0.0
    latency_ms: float = 0.0


class CandidateRunner(ABC):
    """Produces retrieval results and a response for a candidate."""

    @abstractmethod
    async def run(self, candidate: Candidate, test_case: TestCase) -> CandidateOutput:
        """Run the candidate on a single test case."""
        pass


def fill_template(template: str, values: Dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders, leaving unknown braces untouched."""
    result = template
    for name, value in values.items():
        result = result.replace("{" + name + "}", value)
    return result


def format_chunks(hits: List[SearchHit]) -> str:
    parts = []
    for index, hit in enumerate(hits, 1):
        title = f"{hit.title}: " if hit.title else ""
        parts.append(f"[{index}] {title}{hit.content}")
    return "\n\n".join(parts)


class RAGCandidateRunner(CandidateRunner):
    """Retrieval-augmented pipeline driven by the candidate's template slots.

    Recognised slots: ``query_enhancement`` (``{query}``), ``context_formatting``
    (``{chunks}``) and ``response_generation`` (``{context}``, ``{query}``).
    A candidate without a ``response_generation`` slot uses its first slot.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        retriever: BaseRetriever,
        top_k: int = 3,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self.llm = llm_client
        self.retriever = retriever
        self.top_k = top_k
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def run(self, candidate: Candidate, test_case: TestCase) -> CandidateOutput:
        start_time = time.time()
        components = candidate.prompt_components
        cost = 0.0

        enhanced_query: Optional[str] = None
        if QUERY_ENHANCEMENT_SLOT in components:
            enhanced_query, enhancement_cost = await self._enhance_query(
                components[QUERY_ENHANCEMENT_SLOT], test_case.query
            )
            cost += enhancement_cost

        hits = await self.retriever.asearch(enhanced_query or test_case.query, top_k=self.top_k)
        chunks = format_chunks(hits)
        if CONTEXT_FORMATTING_SLOT in components:
            context = fill_template(components[CONTEXT_FORMATTING_SLOT], {"chunks": chunks})
        else:
            context = chunks

        template = components.get(RESPONSE_GENERATION_SLOT) or next(iter(components.values()))
        prompt = fill_template(template, {"context": context, "query": test_case.query})
        try:
            generation = await self.llm.agenerate(
                prompt,
                GenerationOptions(temperature=self.temperature, max_tokens=self.max_tokens),
            )
        except Exception as e:
            raise EvaluationError(f"response generation failed: {e}", cost=cost) from e
        cost += generation.cost or 0.0

        return CandidateOutput(
            query=test_case.query,
            enhanced_query=enhanced_query,
            retrieved_chunk_ids=[hit.document_id for hit in hits],
            context=context,
            response=generation.text.strip(),
            cost=cost,
            latency_ms=(time.time() - start_time) * 1000,
        )

    async def _enhance_query(self, template: str, query: str) -> Tuple[Optional[str], float]:
        """Rewrite the query for retrieval; the raw query is used when the call fails."""
        try:
            result = await self.llm.agenerate(
                fill_template(template, {"query": query}),
                GenerationOptions(
                    temperature=QUERY_ENHANCEMENT_TEMPERATURE,
                    max_tokens=QUERY_ENHANCEMENT_MAX_TOKENS,
                ),
            )
        except LLMError as e:
            logger.warning(f"Query enhancement failed, using original query: {e}")
            return None, 0.0
        return result.text.strip() or None, result.cost or 0.0

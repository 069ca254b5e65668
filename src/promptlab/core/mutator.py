"""Structural prompt mutations."""

import random
import re
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from ..clients import BaseLLMClient, GenerationOptions
from ..models import Candidate, OptimizationConfig
from ..models.mutations import (
    ADD_CONSTRAINT,
    ADD_CONTEXT,
    ADD_EXAMPLES,
    MUTATION_CATALOG,
    REFORMAT_MARKDOWN,
    REFORMAT_XML,
    TONE_ADJUSTMENT,
)

MIN_MUTATIONS = 1
MAX_MUTATIONS = 3
REWRITE_MAX_TOKENS = 1200

CONTEXT_INSERTIONS = (
    "Context: Please consider relevant background information.",
    "Context: Base every statement on the retrieved information above.",
    "Context: The user may not be familiar with technical terms.",
)
CONSTRAINT_INSERTIONS = (
    "Constraints: Keep the response under 200 words.",
    "Constraints: Use only the information provided in the context.",
    "Constraints: If the context does not contain the answer, say so explicitly.",
)
EXAMPLE_INSERTIONS = (
    "Example: Provide specific examples in your response.",
    "Example: When steps are involved, list them as a numbered sequence.",
)
TONE_PREFIXES = (
    "Please be thorough and detailed.",
    "Respond in a friendly and empathetic tone.",
    "Be concise and professional.",
)

REWRITE_FORMATS = {
    REFORMAT_MARKDOWN: "markdown",
    REFORMAT_XML: "XML",
}

PLACEHOLDER_PATTERN = re.compile(r"\{[A-Za-z_][A-Za-z0-9_]*\}")


def placeholders(text: str) -> Set[str]:
    return set(PLACEHOLDER_PATTERN.findall(text))


def wrap_markdown(text: str) -> str:
    return f"## Instructions\n\n{text}"


def wrap_xml(text: str) -> str:
    return f"<instructions>\n{text}\n</instructions>"


TEMPLATED_REFORMATS: Dict[str, Callable[[str], str]] = {
    REFORMAT_MARKDOWN: wrap_markdown,
    REFORMAT_XML: wrap_xml,
}


class PromptMutator:
    """Applies 1-3 catalog transformations to random slots of a candidate.

    Reformat mutations are delegated to ``rewrite_client`` when one is given.
    A failed rewrite keeps the original text and is recorded in
    ``metadata.mutation_fallbacks`` so it stays distinguishable from a
    successful rewrite.
    """

    def __init__(
        self,
        rewrite_client: Optional[BaseLLMClient] = None,
        config: Optional[OptimizationConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize mutator with an optional rewrite LLM and a (seeded) random source."""
        self.llm = rewrite_client
        self.config = config or OptimizationConfig()
        self.rng = rng or random.Random()
        self.cost_spent = 0.0

    def choose_mutations(self) -> List[str]:
        """Draw 1-3 catalog entries (repeats allowed)."""
        count = self.rng.randint(MIN_MUTATIONS, MAX_MUTATIONS)
        return [self.rng.choice(MUTATION_CATALOG) for _ in range(count)]

    async def mutate(
        self,
        candidate: Candidate,
        mutation_rate: float,
        force: bool = False,
    ) -> Candidate:
        """Return a mutated copy with probability ``mutation_rate`` (always if ``force``).

        The input candidate is never modified.
        """
        if not force and self.rng.random() >= mutation_rate:
            return candidate

        mutated = candidate.model_copy(deep=True)
        for mutation in self.choose_mutations():
            slot = self.rng.choice(mutated.slot_names)
            original = mutated.prompt_components[slot]
            rewritten = await self.apply(mutation, original, mutated)
            mutated.prompt_components[slot] = rewritten
            mutated.mutation_history.append(mutation)

        mutated.refresh_token_estimate()
        logger.debug(f"Mutated {candidate.id}: {mutated.mutation_history}")
        return mutated

    async def apply(self, mutation: str, text: str, candidate: Candidate) -> str:
        """Apply one named transformation to a slot text."""
        if mutation == ADD_CONTEXT:
            return self._append(text, CONTEXT_INSERTIONS)
        if mutation == ADD_CONSTRAINT:
            return self._append(text, CONSTRAINT_INSERTIONS)
        if mutation == ADD_EXAMPLES:
            return self._append(text, EXAMPLE_INSERTIONS)
        if mutation == TONE_ADJUSTMENT:
            return self._prepend_tone(text)
        if mutation in REWRITE_FORMATS:
            return await self._reformat(mutation, text, candidate)
        raise ValueError(f"Unknown mutation '{mutation}'")

    def _append(self, text: str, options: tuple) -> str:
        fresh = [option for option in options if option not in text]
        if not fresh:
            return text
        return f"{text}\n\n{self.rng.choice(fresh)}"

    def _prepend_tone(self, text: str) -> str:
        for prefix in TONE_PREFIXES:
            if text.startswith(prefix):
                text = text[len(prefix):].lstrip()
                break
        return f"{self.rng.choice(TONE_PREFIXES)} {text}"

    async def _reformat(self, mutation: str, text: str, candidate: Candidate) -> str:
        if self.llm is None:
            return TEMPLATED_REFORMATS[mutation](text)

        target_format = REWRITE_FORMATS[mutation]
        prompt = self.config.rewrite_template.format(format=target_format, prompt=text)
        try:
            result = await self.llm.agenerate(
                prompt,
                GenerationOptions(
                    temperature=self.config.rewrite_temperature,
                    max_tokens=REWRITE_MAX_TOKENS,
                ),
            )
        except Exception as e:
            logger.warning(f"Failed to generate {target_format} variation, keeping original: {e}")
            candidate.metadata.mutation_fallbacks.append(mutation)
            return text

        self.cost_spent += result.cost or 0.0
        rewritten = result.text.strip()
        missing = placeholders(text) - placeholders(rewritten)
        if not rewritten or missing:
            logger.warning(
                f"{target_format} rewrite rejected "
                f"({'empty' if not rewritten else 'lost ' + ', '.join(sorted(missing))}), keeping original"
            )
            candidate.metadata.mutation_fallbacks.append(mutation)
            return text
        return rewritten

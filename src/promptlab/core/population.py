"""Population succession: initialization, elitism and offspring generation."""

import random
from typing import Dict, Mapping, Optional, Union

from loguru import logger

from ..models import Candidate, OptimizationConfig, Population
from ..models.candidate import FREE_TEXT_SLOT
from .crossover import ComponentCrossover
from .mutator import PromptMutator
from .selection import TournamentSelector, elite_count, select_elite

ID_PREFIX = "cand"

BasePrompt = Union[str, Mapping[str, str]]


def as_components(base_prompt: BasePrompt) -> Dict[str, str]:
    """Normalize a base prompt into named components."""
    if isinstance(base_prompt, str):
        return {FREE_TEXT_SLOT: base_prompt}
    return dict(base_prompt)


class PopulationManager:
    """Builds generation 0 and each following generation.

    Populations passed in are never modified; every new generation is a new
    ``Population`` object whose elite slice reuses the previous candidates.
    """

    def __init__(
        self,
        config: OptimizationConfig,
        mutator: PromptMutator,
        crossover: Optional[ComponentCrossover] = None,
        selector: Optional[TournamentSelector] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize manager with variation and selection operators."""
        self.config = config
        self.rng = rng or random.Random(config.seed)
        self.mutator = mutator
        self.crossover = crossover or ComponentCrossover(
            rng=self.rng, sentence_fallback=config.sentence_crossover_fallback
        )
        self.selector = selector or TournamentSelector(config.tournament_size, rng=self.rng)
        self._next_index = 0

    def next_id(self) -> str:
        candidate_id = f"{ID_PREFIX}-{self._next_index:05d}"
        self._next_index += 1
        return candidate_id

    async def initialize(self, base_prompt: BasePrompt, population_size: Optional[int] = None) -> Population:
        """Generation 0: the base candidate plus force-mutated variants of it."""
        size = population_size or self.config.population_size
        base = Candidate(
            id=self.next_id(),
            generation=0,
            prompt_components=as_components(base_prompt),
        )
        base.refresh_token_estimate()
        candidates = [base]

        while len(candidates) < size:
            template = base.model_copy(
                update={"id": self.next_id(), "parent_ids": [base.id]}, deep=True
            )
            try:
                variant = await self.mutator.mutate(template, mutation_rate=1.0, force=True)
            except Exception as e:
                logger.warning(f"Initial mutation of {template.id} failed, keeping base copy: {e}")
                variant = template
            candidates.append(variant)

        logger.info(f"Initialized population with {len(candidates)} candidates")
        return Population(generation=0, candidates=candidates)

    async def advance(self, population: Population) -> Population:
        """Next generation: elites verbatim, then crossover and mutation offspring."""
        size = self.config.population_size
        generation = population.generation + 1
        elites = select_elite(
            population.candidates,
            min(elite_count(size, self.config.elitism_fraction), size),
        )
        candidates = list(elites)
        logger.debug(f"Generation {generation}: carrying elites {[c.id for c in elites]}")

        while len(candidates) < size:
            parent_a = self.selector.select(population.candidates)
            parent_b = self.selector.select(population.candidates)
            offspring = self._breed(parent_a, parent_b, generation)
            try:
                offspring = await self.mutator.mutate(offspring, self.config.mutation_rate)
            except Exception as e:
                logger.warning(f"Mutation of {offspring.id} failed, keeping unmutated offspring: {e}")
            candidates.append(offspring)

        return Population(generation=generation, candidates=candidates)

    def _breed(self, parent_a: Candidate, parent_b: Candidate, generation: int) -> Candidate:
        if self.rng.random() < self.config.crossover_rate:
            return self.crossover.crossover(parent_a, parent_b, self.next_id(), generation)

        clone = Candidate(
            id=self.next_id(),
            generation=generation,
            prompt_components=dict(parent_a.prompt_components),
            parent_ids=[parent_a.id],
        )
        clone.refresh_token_estimate()
        return clone

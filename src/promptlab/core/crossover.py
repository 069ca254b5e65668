"""Structured crossover over named prompt slots."""

import random
from typing import Dict, List, Optional

from loguru import logger

from ..models import Candidate
from ..models.candidate import FREE_TEXT_SLOT

SLOT_PICK_PROBABILITY = 0.5
SENTENCE_SEPARATOR = ". "


def interleave_sentences(text_a: str, text_b: str, rng: random.Random) -> str:
    """Keep every sentence of ``text_a``, interleaving sentences of ``text_b`` at random."""
    sentences_a = text_a.split(SENTENCE_SEPARATOR)
    sentences_b = text_b.split(SENTENCE_SEPARATOR)
    combined: List[str] = []

    for i in range(max(len(sentences_a), len(sentences_b))):
        if i < len(sentences_a):
            combined.append(sentences_a[i])
        if i < len(sentences_b) and rng.random() < SLOT_PICK_PROBABILITY:
            combined.append(sentences_b[i])

    return SENTENCE_SEPARATOR.join(combined)


class ComponentCrossover:
    """Combine two parents slot by slot so templates stay well-formed."""

    def __init__(self, rng: Optional[random.Random] = None, sentence_fallback: bool = True):
        self.rng = rng or random.Random()
        self.sentence_fallback = sentence_fallback

    def crossover(
        self,
        parent_a: Candidate,
        parent_b: Candidate,
        offspring_id: str,
        generation: int,
    ) -> Candidate:
        """Create an unscored offspring from two parents."""
        if self._is_free_text_pair(parent_a, parent_b):
            components = {
                FREE_TEXT_SLOT: interleave_sentences(
                    parent_a.prompt_components[FREE_TEXT_SLOT],
                    parent_b.prompt_components[FREE_TEXT_SLOT],
                    self.rng,
                )
            }
            logger.debug(f"Sentence crossover {parent_a.id} x {parent_b.id}")
        else:
            components = self._pick_slots(parent_a, parent_b)

        offspring = Candidate(
            id=offspring_id,
            generation=generation,
            prompt_components=components,
            parent_ids=[parent_a.id, parent_b.id],
        )
        offspring.refresh_token_estimate()
        return offspring

    def _pick_slots(self, parent_a: Candidate, parent_b: Candidate) -> Dict[str, str]:
        components: Dict[str, str] = {}
        for slot, text in parent_a.prompt_components.items():
            if slot in parent_b.prompt_components and self.rng.random() >= SLOT_PICK_PROBABILITY:
                components[slot] = parent_b.prompt_components[slot]
            else:
                components[slot] = text
        for slot, text in parent_b.prompt_components.items():
            components.setdefault(slot, text)
        return components

    def _is_free_text_pair(self, parent_a: Candidate, parent_b: Candidate) -> bool:
        """Both parents hold only the unstructured free-text slot, with different text."""
        if not self.sentence_fallback:
            return False
        if parent_a.slot_names != [FREE_TEXT_SLOT] or parent_b.slot_names != [FREE_TEXT_SLOT]:
            return False
        return parent_a.prompt_components[FREE_TEXT_SLOT] != parent_b.prompt_components[FREE_TEXT_SLOT]

"""Tournament selection and elitism."""

import math
import random
from typing import List, Optional, Sequence

from loguru import logger

from ..models import Candidate

DEFAULT_TOURNAMENT_SIZE = 3
FRACTION_ROUNDING_DIGITS = 9


def rank_key(candidate: Candidate):
    """Sort key: highest combined score first, then lowest id."""
    return (-(candidate.combined_score or 0.0), candidate.id)


def elite_count(population_size: int, elitism_fraction: float) -> int:
    """ceil(population_size * elitism_fraction), ignoring float noise."""
    return math.ceil(round(population_size * elitism_fraction, FRACTION_ROUNDING_DIGITS))


def select_elite(candidates: Sequence[Candidate], count: int) -> List[Candidate]:
    """Top ``count`` scored candidates, best first."""
    if count <= 0:
        return []
    scored = [c for c in candidates if c.is_evaluated]
    return sorted(scored, key=rank_key)[:count]


class TournamentSelector:
    """Pick a parent as the best of a small random sample."""

    def __init__(
        self,
        tournament_size: int = DEFAULT_TOURNAMENT_SIZE,
        rng: Optional[random.Random] = None,
    ):
        """Initialize selector with tournament size and a (seeded) random source."""
        if tournament_size < 1:
            raise ValueError("Tournament size must be at least 1")
        self.tournament_size = tournament_size
        self.rng = rng or random.Random()

    def select(self, candidates: Sequence[Candidate]) -> Candidate:
        """Run one tournament among scored candidates."""
        scored = [c for c in candidates if c.is_evaluated]
        if not scored:
            raise ValueError("Cannot select from a population without scored candidates")

        tournament = [self.rng.choice(scored) for _ in range(self.tournament_size)]
        winner = min(tournament, key=rank_key)
        logger.debug(
            f"Tournament {[c.id for c in tournament]} -> {winner.id} "
            f"({winner.combined_score:.3f})"
        )
        return winner

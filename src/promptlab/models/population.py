"""Population model: one generation of candidates."""

from typing import List, Optional

from pydantic import BaseModel, Field

from .candidate import Candidate


class Population(BaseModel):
    """Ordered candidates of one generation."""

    generation: int = Field(ge=0)
    candidates: List[Candidate] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.candidates)

    def scored(self) -> List[Candidate]:
        return [c for c in self.candidates if c.is_evaluated]

    def unscored(self) -> List[Candidate]:
        return [c for c in self.candidates if not c.is_evaluated]

    def best(self) -> Optional[Candidate]:
        """Highest combined score, ties broken by lowest id."""
        scored = self.scored()
        if not scored:
            return None
        return min(scored, key=lambda c: (-(c.combined_score or 0.0), c.id))

    def scores(self) -> List[float]:
        return [c.combined_score for c in self.scored()]

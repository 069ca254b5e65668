"""Progress tracker for optimization runs using tqdm."""

import time
from types import TracebackType
from typing import Optional, Type

from tqdm import tqdm


class ProgressTracker:
    """Track optimization progress with tqdm."""

    def __init__(self, max_generations: int, population_size: int = 1):
        """Initialize progress tracker."""
        self.max_generations = max_generations
        self.population_size = population_size
        self.baseline_score: Optional[float] = None
        self.best_score = 0.0
        self._pbar: Optional[tqdm] = None
        self._start_time: Optional[float] = None

    def start(self) -> None:
        """Start the progress bar."""
        self._start_time = time.time()
        self._pbar = tqdm(
            total=self.max_generations + 1,
            desc="Prompt optimization",
            unit="gen",
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
            dynamic_ncols=True,
        )

    def close(self) -> None:
        """Close the progress bar."""
        if self._pbar:
            self._pbar.close()
            self._pbar = None

    def __enter__(self) -> "ProgressTracker":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def update_generation(self, generation: int, best_score: float) -> None:
        """Record a finished generation and advance the bar."""
        if self.baseline_score is None:
            self.baseline_score = best_score
        self.best_score = max(self.best_score, best_score)

        improvement = (self.best_score - self.baseline_score) * 100
        if self._pbar:
            self._pbar.set_postfix({
                "gen": f"{generation}/{self.max_generations}",
                "best": f"{self.best_score:.3f}",
                "impr": f"{improvement:+.1f}pt",
            })
            self._pbar.update(1)

    def on_evaluation(self, completed: int, total: int) -> None:
        """Callback for candidate evaluation tracking."""
        if self._pbar:
            self._pbar.set_postfix_str(
                f"gen={self._pbar.n}/{self.max_generations} "
                f"best={self.best_score:.3f} "
                f"evals={completed}/{total}",
                refresh=True,
            )

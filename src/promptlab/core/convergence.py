"""Stop conditions for the generation loop."""

from typing import Optional

from loguru import logger

from ..models import ConvergenceReason, OptimizationConfig, OptimizationRun, Population


class ConvergenceController:
    """Tracks best score and stagnation, and decides whether to run another generation."""

    def __init__(self, config: OptimizationConfig):
        self.config = config

    def record_generation(self, run: OptimizationRun, population: Population) -> bool:
        """Update best candidate and stagnation after a generation is evaluated.

        Returns True when the generation improved on the previous best by more
        than ``improvement_threshold``.
        """
        best = population.best()
        if best is None:
            run.stagnation_count += 1
            return False

        previous = run.best_score_ever
        score = best.combined_score
        improved = previous is None or score > previous + self.config.improvement_threshold

        if previous is None or score > previous:
            run.best_score_ever = score
            run.best_candidate = best

        if improved:
            run.stagnation_count = 0
        else:
            run.stagnation_count += 1
        return improved

    def check(
        self,
        run: OptimizationRun,
        elapsed_seconds: float = 0.0,
        stop_requested: bool = False,
    ) -> Optional[ConvergenceReason]:
        """First satisfied stop condition, or None."""
        if stop_requested:
            return ConvergenceReason.STOPPED
        if run.best_score_ever is not None and run.best_score_ever >= self.config.target_score:
            return ConvergenceReason.TARGET_REACHED
        if self._budget_exceeded(run, elapsed_seconds):
            return ConvergenceReason.BUDGET_EXCEEDED
        if run.stagnation_count >= self.config.max_stagnation:
            return ConvergenceReason.STAGNATION
        if run.generation >= self.config.max_generations:
            return ConvergenceReason.MAX_GENERATIONS
        return None

    def should_continue(
        self,
        run: OptimizationRun,
        elapsed_seconds: float = 0.0,
        stop_requested: bool = False,
    ) -> bool:
        """Evaluated before starting a new generation; records the reason on stop."""
        reason = self.check(run, elapsed_seconds, stop_requested)
        if reason is None:
            return True
        run.convergence_reason = reason
        logger.info(f"Stopping after generation {run.generation}: {reason.value}")
        return False

    def _budget_exceeded(self, run: OptimizationRun, elapsed_seconds: float) -> bool:
        if self.config.cost_budget is not None and run.total_cost > self.config.cost_budget:
            return True
        if (
            self.config.time_budget_seconds is not None
            and elapsed_seconds > self.config.time_budget_seconds
        ):
            return True
        return False

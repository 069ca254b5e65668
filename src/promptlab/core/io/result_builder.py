"""Optimization result finalization and summary."""

import time
from datetime import datetime
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from ...analysis import FailureAnalyzer
from ...models import OptimizationRun

PROMPT_PREVIEW_CHARS = 400


class ResultBuilder:
    """Complete a finished run and print it."""

    def __init__(self, analyzer: FailureAnalyzer, console: Optional[Console] = None):
        """Initialize result builder."""
        self.analyzer = analyzer
        self.console = console or Console()

    def finalize(self, run: OptimizationRun, start_time: float) -> OptimizationRun:
        """Stamp timing and attach recommendations."""
        run.finished_at = datetime.now()
        run.duration_seconds = time.time() - start_time
        run.recommendations = self.analyzer.recommend(run)
        return run

    def log_result(self, run: OptimizationRun) -> None:
        """Log the outcome of a run."""
        reason = run.convergence_reason.value if run.convergence_reason else "unknown"
        best = run.best_score_ever if run.best_score_ever is not None else 0.0
        logger.success(
            f"Optimization complete in {run.duration_seconds:.1f}s: "
            f"best={best:.3f} after {run.generation} generations ({reason})"
        )
        for recommendation in run.recommendations:
            logger.info(f"Recommendation: {recommendation}")

    def print_summary(self, run: OptimizationRun) -> None:
        """Print generation history, best prompt and recommendations."""
        self.console.print("\n[bold green]+----------------------------------------------+[/bold green]")
        self.console.print("[bold green]|       Prompt Optimization Results            |[/bold green]")
        self.console.print("[bold green]+----------------------------------------------+[/bold green]\n")

        reason = run.convergence_reason.value if run.convergence_reason else "unknown"
        self.console.print(f"Run ID: [cyan]{run.run_id}[/cyan]")
        self.console.print(f"Duration: [cyan]{run.duration_seconds:.1f}s[/cyan]")
        self.console.print(f"Stopped: [cyan]{reason}[/cyan]")
        self.console.print(f"Cost: [cyan]${run.total_cost:.4f}[/cyan]\n")

        table = Table(title="Generations")
        table.add_column("Gen", justify="right")
        table.add_column("Best", justify="right")
        table.add_column("Avg", justify="right")
        table.add_column("Worst", justify="right")
        table.add_column("Diversity", justify="right")
        table.add_column("Failure patterns")
        for record in run.history:
            marker = " *" if record.improved else ""
            table.add_row(
                f"{record.generation}{marker}",
                f"{record.best_score:.3f}",
                f"{record.average_score:.3f}",
                f"{record.worst_score:.3f}",
                f"{record.diversity:.2f}",
                ", ".join(record.failure_patterns) or "-",
            )
        self.console.print(table)

        best = run.best_candidate
        if best is not None:
            self.console.print(f"\n[bold]Best candidate {best.id}[/bold] ({best.combined_score:.3f})")
            for name, score in best.criterion_scores.items():
                self.console.print(f"  {name}: {score:.3f}")
            if best.mutation_history:
                self.console.print(f"  mutations: {', '.join(best.mutation_history)}")
            for slot, text in best.prompt_components.items():
                preview = text if len(text) <= PROMPT_PREVIEW_CHARS else text[:PROMPT_PREVIEW_CHARS] + "..."
                self.console.print(f"\n[cyan]{slot}[/cyan]\n{preview}")

        if run.recommendations:
            self.console.print("\n[bold]Recommendations:[/bold]")
            for recommendation in run.recommendations:
                self.console.print(f"  - {recommendation}")
        self.console.print()

"""Prompt optimizer - genetic search over prompt candidates with hybrid fitness."""

import asyncio
import random
import threading
import time
from datetime import datetime
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from rich.console import Console

from ...analysis import FailureAnalyzer
from ...clients import BaseLLMClient, BaseRetriever
from ...errors import ConfigurationError
from ...models import (
    EvaluationCriterion,
    EventCallback,
    EventType,
    FitnessReport,
    GenerationRecord,
    OptimizationConfig,
    OptimizationEvent,
    OptimizationProgress,
    OptimizationRun,
    Population,
    TestCase,
    default_criteria,
    validate_criteria,
)
from ..convergence import ConvergenceController
from ..fitness import FitnessAggregator
from ..io.result_builder import ResultBuilder
from ..mutator import PromptMutator
from ..population import BasePrompt, PopulationManager, as_components
from ..rate_limit import RateLimiter
from ..runner import CandidateRunner, RAGCandidateRunner
from ..ui.progress_tracker import ProgressTracker


def average_similarity(texts: List[str]) -> float:
    """Average pairwise similarity of prompt texts."""
    total_similarity = 0.0
    pairs = 0
    for i, text_a in enumerate(texts):
        for text_b in texts[i + 1:]:
            total_similarity += SequenceMatcher(None, text_a, text_b).ratio()
            pairs += 1
    if pairs == 0:
        return 1.0
    return total_similarity / pairs


def population_diversity(population: Population) -> float:
    """1 - average pairwise similarity of rendered candidates."""
    texts = [candidate.render() for candidate in population.candidates]
    return min(1.0, max(0.0, 1.0 - average_similarity(texts)))


class PromptOptimizer:
    """Evolves a base prompt against test cases until a stop condition holds."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        runner: Optional[CandidateRunner] = None,
        criteria: Optional[Sequence[EvaluationCriterion]] = None,
        config: Optional[OptimizationConfig] = None,
        judge_client: Optional[BaseLLMClient] = None,
        retriever: Optional[BaseRetriever] = None,
        rewrite_client: Optional[BaseLLMClient] = None,
        on_event: Optional[Iterable[EventCallback]] = None,
        show_progress: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize optimizer.

        Without an explicit ``runner`` a ``RAGCandidateRunner`` over
        ``retriever`` is used. The judge and rewrite clients default to
        ``llm_client``.
        """
        self.config = config or OptimizationConfig()
        self.criteria: List[EvaluationCriterion] = (
            list(criteria) if criteria is not None else default_criteria()
        )
        validate_criteria(self.criteria)

        if runner is None:
            if retriever is None:
                raise ConfigurationError("Either a candidate runner or a retriever is required")
            runner = RAGCandidateRunner(llm_client, retriever, top_k=self.config.top_k)

        self.llm = llm_client
        self.runner = runner
        self.judge = judge_client or llm_client
        self.rewrite_client = rewrite_client or llm_client
        if self.config.cost_budget is not None:
            self._check_cost_tracking()
        self.callbacks: List[EventCallback] = list(on_event or [])
        self.show_progress = show_progress

        self.analyzer = FailureAnalyzer(self.config.passing_threshold)
        self.convergence = ConvergenceController(self.config)
        self.result_builder = ResultBuilder(self.analyzer, console=console)

        self.run: Optional[OptimizationRun] = None
        self._stop_event = threading.Event()
        self._running = False
        self._start_time: Optional[float] = None
        self._reports: Dict[str, FitnessReport] = {}
        self._evaluation_cost = 0.0

    def add_callback(self, callback: EventCallback) -> None:
        self.callbacks.append(callback)

    def stop(self) -> None:
        """Request the run to end before the next generation starts."""
        logger.info("Stop requested")
        self._stop_event.set()

    def optimize(self, base_prompt: BasePrompt, test_cases: Sequence[TestCase]) -> OptimizationRun:
        """Run optimization synchronously."""
        return asyncio.run(self.aoptimize(base_prompt, test_cases))

    async def aoptimize(
        self,
        base_prompt: BasePrompt,
        test_cases: Sequence[TestCase],
    ) -> OptimizationRun:
        """Run optimization until convergence and return the finished run."""
        self._validate_inputs(base_prompt, test_cases)
        test_cases = list(test_cases)

        rng = random.Random(self.config.seed)
        mutator = PromptMutator(rewrite_client=self.rewrite_client, config=self.config, rng=rng)
        population_manager = PopulationManager(self.config, mutator, rng=rng)
        aggregator = FitnessAggregator(
            self.runner,
            judge_client=self.judge,
            config=self.config,
            rate_limiter=RateLimiter(self.config.rate_limit_interval),
        )

        run = OptimizationRun(
            run_id=f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            config=self.config,
            criteria=self.criteria,
        )
        self.run = run
        self._reports = {}
        self._evaluation_cost = 0.0
        self._start_time = time.time()
        self._running = True
        self._log_run_settings(run, len(test_cases))

        tracker = ProgressTracker(self.config.max_generations, self.config.population_size)
        try:
            if self.show_progress:
                tracker.start()
            population = await population_manager.initialize(base_prompt)
            while True:
                await self._run_generation(run, population, aggregator, mutator, test_cases, tracker)
                if not self.convergence.should_continue(
                    run, self._elapsed(), self._stop_event.is_set()
                ):
                    break
                population = await population_manager.advance(population)
                run.total_cost = self._evaluation_cost + mutator.cost_spent
        except Exception as e:
            logger.error(f"Optimization failed at generation {run.generation}: {e}")
            self._emit(EventType.ERROR, {"generation": run.generation, "message": str(e), "fatal": True})
            raise
        finally:
            tracker.close()
            self._running = False
            self._stop_event.clear()

        self.result_builder.finalize(run, self._start_time)
        self._emit(
            EventType.CONVERGENCE,
            {
                "reason": run.convergence_reason.value if run.convergence_reason else None,
                "generation": run.generation,
                "best_score": run.best_score_ever,
                "best_candidate_id": run.best_candidate.id if run.best_candidate else None,
                "total_cost": run.total_cost,
            },
        )
        self.result_builder.log_result(run)
        return run

    def get_progress(self) -> OptimizationProgress:
        """Snapshot of the current (or last) run."""
        run = self.run
        if run is None:
            return OptimizationProgress(
                current_generation=0,
                max_generations=self.config.max_generations,
                best_score=0.0,
                average_score=0.0,
                stagnation_count=0,
                total_cost=0.0,
                time_elapsed=0.0,
                running=self._running,
            )
        average = run.history[-1].average_score if run.history else 0.0
        elapsed = self._elapsed() if self._running else run.duration_seconds
        return OptimizationProgress(
            current_generation=run.generation,
            max_generations=self.config.max_generations,
            best_score=run.best_score_ever or 0.0,
            average_score=average,
            stagnation_count=run.stagnation_count,
            total_cost=run.total_cost,
            time_elapsed=elapsed,
            running=self._running,
        )

    async def _run_generation(
        self,
        run: OptimizationRun,
        population: Population,
        aggregator: FitnessAggregator,
        mutator: PromptMutator,
        test_cases: List[TestCase],
        tracker: ProgressTracker,
    ) -> None:
        """Evaluate one generation and record it on the run."""
        generation = population.generation
        run.generation = generation
        run.populations.append(population)
        self._log_generation_header(generation)
        self._emit(
            EventType.GENERATION_START,
            {
                "generation": generation,
                "population_size": len(population),
                "unscored": len(population.unscored()),
            },
        )

        def on_progress(report: FitnessReport, completed: int, total: int) -> None:
            tracker.on_evaluation(completed, total)
            self._emit(
                EventType.EVALUATION_PROGRESS,
                {
                    "generation": generation,
                    "candidate_id": report.candidate_id,
                    "score": report.combined_score,
                    "completed": completed,
                    "total": total,
                },
            )
            if report.degraded:
                self._emit(
                    EventType.ERROR,
                    {
                        "generation": generation,
                        "candidate_id": report.candidate_id,
                        "penalized_criteria": list(report.penalized_criteria),
                        "message": "; ".join(report.warnings),
                        "fatal": False,
                    },
                )

        reports = await aggregator.evaluate_population(
            population.candidates, test_cases, self.criteria, on_progress=on_progress
        )
        for report in reports:
            self._reports[report.candidate_id] = report
            self._evaluation_cost += report.cost
        run.total_cost = self._evaluation_cost + mutator.cost_spent

        previous_best = run.best_score_ever
        improved = self.convergence.record_generation(run, population)
        record = self._build_record(run, population, improved)
        run.history.append(record)
        tracker.update_generation(generation, record.best_score)

        logger.info(
            f"Generation {generation}: best={record.best_score:.3f} "
            f"avg={record.average_score:.3f} worst={record.worst_score:.3f} "
            f"diversity={record.diversity:.2f} cost=${run.total_cost:.4f}"
        )
        if improved:
            self._emit(
                EventType.IMPROVEMENT_FOUND,
                {
                    "generation": generation,
                    "previous_best": previous_best,
                    "best_score": run.best_score_ever,
                    "candidate_id": record.best_candidate.id,
                },
            )
        else:
            self._emit(
                EventType.STAGNATION,
                {
                    "generation": generation,
                    "stagnation_count": run.stagnation_count,
                    "best_score": run.best_score_ever,
                },
            )

    def _build_record(
        self,
        run: OptimizationRun,
        population: Population,
        improved: bool,
    ) -> GenerationRecord:
        scores = population.scores()
        best = population.best()
        if best is None:
            raise RuntimeError(f"Generation {population.generation} has no scored candidates")

        report = self._reports.get(best.id)
        patterns = self.analyzer.analyze(report, self.criteria) if report else []
        return GenerationRecord(
            generation=population.generation,
            best_score=max(scores),
            average_score=sum(scores) / len(scores),
            worst_score=min(scores),
            diversity=population_diversity(population),
            best_candidate=best.model_copy(deep=True),
            improved=improved,
            stagnation_count=run.stagnation_count,
            failure_patterns=patterns,
            cumulative_cost=run.total_cost,
        )

    def _check_cost_tracking(self) -> None:
        clients = (self.llm, self.judge, self.rewrite_client)
        if not any(client.reports_cost for client in clients):
            raise ConfigurationError(
                f"cost_budget={self.config.cost_budget} can never be reached: no client has "
                "token prices. Set prompt_price_per_million/completion_price_per_million "
                "or use a model with listed prices."
            )

    def _validate_inputs(self, base_prompt: BasePrompt, test_cases: Sequence[TestCase]) -> None:
        if base_prompt is None:
            raise ConfigurationError("A base prompt is required")
        components = as_components(base_prompt)
        if not components or not any(text.strip() for text in components.values()):
            raise ConfigurationError("A base prompt is required")
        if not test_cases:
            raise ConfigurationError("At least one test case is required")

    def _emit(self, event_type: EventType, data: Dict[str, Any]) -> None:
        event = OptimizationEvent(type=event_type, data=data)
        for callback in self.callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event callback failed on {event_type.value}: {e}")

    def _elapsed(self) -> float:
        if self._start_time is None:
            return 0.0
        return time.time() - self._start_time

    def _log_run_settings(self, run: OptimizationRun, test_case_count: int) -> None:
        logger.info(f"Starting prompt optimization: {run.run_id}")
        logger.info(f"Population: {self.config.population_size}")
        logger.info(f"Generations: {self.config.max_generations}")
        logger.info(f"Test cases: {test_case_count}")
        logger.info(f"Criteria: {run.weights}")

    def _log_generation_header(self, generation: int) -> None:
        logger.info(f"{'=' * 60}")
        logger.info(f"Generation {generation}/{self.config.max_generations}")
        logger.info(f"{'=' * 60}")

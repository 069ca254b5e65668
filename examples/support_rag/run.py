"""Minimal promptlab example: optimize a three-slot RAG prompt for a support FAQ."""

from pathlib import Path

import yaml

from promptlab import InMemoryRetriever, LLMClient, OptimizationConfig, PromptOptimizer, RAGCandidateRunner
from promptlab.config import Settings
from promptlab.models import load_test_cases

HERE = Path(__file__).parent

settings = Settings(
    model="gpt-4o-mini",
)

config = OptimizationConfig.from_profile("fast", seed=42, cost_budget=0.5)

llm_client = LLMClient(settings)
retriever = InMemoryRetriever.from_jsonl(HERE / "knowledge.jsonl")
runner = RAGCandidateRunner(llm_client, retriever, top_k=config.top_k)

optimizer = PromptOptimizer(
    llm_client=llm_client,
    runner=runner,
    config=config,
    judge_client=LLMClient.judge(settings),
    show_progress=True,
)

base_prompt = yaml.safe_load((HERE / "prompt.yaml").read_text(encoding="utf-8"))
run = optimizer.optimize(base_prompt, load_test_cases(HERE / "testcases.jsonl"))
optimizer.result_builder.print_summary(run)

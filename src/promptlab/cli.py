"""Command-line interface for promptlab."""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Union

if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")
    os.environ["PYTHONIOENCODING"] = "utf-8"

import yaml
from loguru import logger

from .errors import ConfigurationError, PromptLabError
from .models.config import PROFILE_PRESETS, SUPPORTED_PROFILES

PROMPTLAB_YAML = "promptlab.yaml"
DEFAULT_PROFILE = "balanced"
REQUIRED_CONFIG_FIELDS = ("prompt", "testcases", "knowledge")
PROMPT_MAPPING_SUFFIXES = (".yaml", ".yml")
SETTINGS_KEYS = (
    "api_key",
    "model",
    "judge_model",
    "base_url",
    "temperature",
    "max_tokens",
    "prompt_price_per_million",
    "completion_price_per_million",
)

EXAMPLE_CONFIG = """\
# promptlab configuration
# API key: set PROMPTLAB_API_KEY or OPENAI_API_KEY in environment
# For local models (SGLang, vLLM, Ollama) set base_url, no API key needed.

# Required
prompt: prompt.txt            # plain text, or a .yaml mapping of named slots
testcases: testcases.jsonl
knowledge: knowledge.jsonl
model: gpt-4o-mini

# Local model endpoint (uncomment for local inference)
# base_url: http://localhost:8000/v1
# judge_model: gpt-4o

# Token prices (USD per million) for models without a listed price.
# Needed for cost_budget with local or custom models.
# prompt_price_per_million: 0.5
# completion_price_per_million: 1.5

# Profile: fast | balanced | quality | advanced
#   fast     - 4 generations, small population, high mutation
#   balanced - 10 generations, moderate settings (default)
#   quality  - 20 generations, larger population
#   advanced - no presets, you control every parameter
profile: balanced

# Optional overrides (any value below overrides the profile default)
# max_generations: 10
# population_size: 10
# mutation_rate: 0.3
# target_score: 0.85
# cost_budget: 1.0
# time_budget_seconds: 600
# max_concurrency: 2
# seed: 42

# Criteria weights must sum to 1.0
# retrieval_weight: 0.4
# quality_weight: 0.6
"""

EXAMPLE_PROMPT = (
    "You are a helpful support assistant. Answer the question using only the context.\n\n"
    "Context:\n{context}\n\nQuestion: {query}\n\nAnswer:"
)

EXAMPLE_TEST_CASES = [
    {
        "query": "How do I reset my password?",
        "expected_chunk_ids": [1],
        "reference": "Use the 'Forgot password' link on the sign-in page and follow the emailed link.",
        "category": "account",
    },
    {
        "query": "What payment methods are accepted?",
        "expected_chunk_ids": [2],
        "reference": "Credit cards, PayPal and bank transfer are accepted.",
        "category": "billing",
    },
    {
        "query": "How long does shipping take?",
        "expected_chunk_ids": [3],
        "reference": "Standard shipping takes 3-5 business days.",
        "category": "shipping",
    },
]

EXAMPLE_KNOWLEDGE = [
    {
        "id": 1,
        "title": "Password reset",
        "content": "To reset your password click 'Forgot password' on the sign-in page. "
                   "We email you a link that is valid for 24 hours.",
        "keywords": ["password", "reset", "login"],
    },
    {
        "id": 2,
        "title": "Payment methods",
        "content": "We accept credit cards, PayPal and bank transfer for all orders.",
        "keywords": ["payment", "paypal", "card"],
    },
    {
        "id": 3,
        "title": "Shipping times",
        "content": "Standard shipping takes 3-5 business days. Express shipping arrives next day.",
        "keywords": ["shipping", "delivery"],
    },
]


def main() -> None:
    """promptlab CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="promptlab",
        description="promptlab - genetic prompt optimization for RAG assistants",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Create example project files")

    run_parser = subparsers.add_parser("run", help="Run prompt optimization")
    run_parser.add_argument("--prompt", type=str, help="Path to base prompt file (.txt or .yaml)")
    run_parser.add_argument("--testcases", type=str, help="Path to test cases JSONL file")
    run_parser.add_argument("--knowledge", type=str, help="Path to knowledge base JSONL file")
    run_parser.add_argument("--generations", type=int, help="Maximum number of generations")
    run_parser.add_argument("--population-size", type=int, help="Population size")
    run_parser.add_argument("--model", type=str, help="LLM model name")
    run_parser.add_argument("--judge-model", type=str, help="Judge model name")
    run_parser.add_argument(
        "--profile",
        type=str,
        choices=sorted(SUPPORTED_PROFILES),
        help="Optimization profile: fast|balanced|quality|advanced",
    )
    run_parser.add_argument("--base-url", type=str, help="OpenAI-compatible API base URL")
    run_parser.add_argument("--api-key", type=str, help="API key (or set OPENAI_API_KEY)")
    run_parser.add_argument("--cost-budget", type=float, help="Stop when spend exceeds this (USD)")
    run_parser.add_argument("--seed", type=int, help="Random seed")
    run_parser.add_argument("--config", type=str, default=PROMPTLAB_YAML, help="Config file path")

    args = parser.parse_args()

    if args.command == "init":
        cmd_init()
    elif args.command == "run":
        cmd_run(args)
    else:
        parser.print_help()


def cmd_init() -> None:
    """Create example promptlab project files."""
    cwd = Path.cwd()

    files = {
        PROMPTLAB_YAML: EXAMPLE_CONFIG,
        "prompt.txt": EXAMPLE_PROMPT,
        "testcases.jsonl": _to_jsonl(EXAMPLE_TEST_CASES),
        "knowledge.jsonl": _to_jsonl(EXAMPLE_KNOWLEDGE),
    }

    for filename, content in files.items():
        filepath = cwd / filename
        if filepath.exists():
            logger.warning(f"Skipped (already exists): {filename}")
            continue
        filepath.write_text(content, encoding="utf-8")
        logger.success(f"Created: {filename}")

    print("\nProject initialized! Next steps:")
    print("  1. Edit promptlab.yaml: set model and base_url (for local) or API key (for cloud)")
    print("  2. Edit prompt.txt with your base prompt")
    print("  3. Replace testcases.jsonl and knowledge.jsonl with your data")
    print("  4. Run: promptlab run")


def cmd_run(args: argparse.Namespace) -> None:
    """Run prompt optimization."""
    from .clients import InMemoryRetriever, LLMClient
    from .config import Settings
    from .core import PromptOptimizer, RAGCandidateRunner
    from .models import load_test_cases

    config_data = _load_yaml_config(args.config)
    try:
        effective = _merge_config(config_data, args)
        _validate_required_config(effective)
        opt_config = _build_optimization_config(effective)
        criteria = _build_criteria(effective)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    settings_overrides = {
        key: effective[key]
        for key in SETTINGS_KEYS
        if effective.get(key) is not None
    }
    settings = Settings(**settings_overrides)
    if not settings.api_key:
        if settings.base_url:
            settings.api_key = "local"
            logger.info("Using local endpoint without API key.")
        else:
            logger.error("No API key. Set PROMPTLAB_API_KEY / OPENAI_API_KEY or use --api-key.")
            sys.exit(1)

    for key in REQUIRED_CONFIG_FIELDS:
        if not Path(effective[key]).exists():
            logger.error(f"{key} file not found: {effective[key]}")
            sys.exit(1)

    try:
        base_prompt = _load_prompt(Path(effective["prompt"]))
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    test_cases = load_test_cases(effective["testcases"])
    retriever = InMemoryRetriever.from_jsonl(effective["knowledge"])

    llm_client = LLMClient(settings)
    runner = RAGCandidateRunner(
        llm_client,
        retriever,
        top_k=opt_config.top_k,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )

    logger.info(
        f"Starting promptlab: {opt_config.max_generations} generations, "
        f"population={opt_config.population_size}, model={settings.model}"
    )

    try:
        optimizer = PromptOptimizer(
            llm_client=llm_client,
            runner=runner,
            criteria=criteria,
            config=opt_config,
            judge_client=LLMClient.judge(settings),
            show_progress=True,
        )
        run = optimizer.optimize(base_prompt, test_cases)
        optimizer.result_builder.print_summary(run)
    except KeyboardInterrupt:
        logger.warning("Optimization interrupted by user")
        sys.exit(130)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    except PromptLabError as e:
        logger.error(f"Optimization failed: {e}")
        raise


def _build_optimization_config(effective: Dict[str, Any]) -> "OptimizationConfig":
    """Build OptimizationConfig from effective config dict."""
    from .models import OptimizationConfig

    overrides: Dict[str, Any] = {}
    config_fields = OptimizationConfig.model_fields
    for key, value in effective.items():
        canonical = "max_generations" if key == "generations" else key
        if canonical in config_fields and value is not None:
            overrides[canonical] = value

    profile = effective.get("profile", DEFAULT_PROFILE)
    return OptimizationConfig.from_profile(profile, **overrides)


def _build_criteria(effective: Dict[str, Any]) -> list:
    """Default hybrid criteria with optional weight overrides."""
    from .models import response_quality, retrieval_accuracy, validate_criteria

    criteria = [
        retrieval_accuracy(weight=float(effective.get("retrieval_weight", 0.4))),
        response_quality(weight=float(effective.get("quality_weight", 0.6))),
    ]
    validate_criteria(criteria)
    return criteria


def _load_prompt(path: Path) -> Union[str, Dict[str, str]]:
    """Read a plain-text prompt or a YAML mapping of named prompt slots."""
    if path.suffix.lower() in PROMPT_MAPPING_SUFFIXES:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict) or not data:
            raise ConfigurationError(f"{path} must contain a mapping of slot names to templates")
        components = {str(name): str(text) for name, text in data.items()}
        logger.info(f"Loaded prompt slots from {path}: {', '.join(components)}")
        return components

    text = path.read_text(encoding="utf-8").strip()
    logger.info(f"Loaded prompt from {path} ({len(text)} chars)")
    return text


def _load_yaml_config(config_path: str) -> Dict[str, Any]:
    """Load YAML config file if it exists."""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _merge_config(yaml_data: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Merge config using 3 layers: profile defaults, YAML file, CLI flags."""
    profile_from_env = os.environ.get("PROMPTLAB_PROFILE")
    result = dict(yaml_data)
    cli_overrides = {
        "prompt": args.prompt,
        "testcases": args.testcases,
        "knowledge": args.knowledge,
        "profile": args.profile,
        "generations": args.generations,
        "population_size": args.population_size,
        "model": args.model,
        "judge_model": args.judge_model,
        "base_url": args.base_url,
        "api_key": args.api_key,
        "cost_budget": args.cost_budget,
        "seed": args.seed,
    }
    for key, value in cli_overrides.items():
        if value is not None:
            result[key] = value

    profile = (result.get("profile") or profile_from_env or DEFAULT_PROFILE).strip().lower()
    if profile not in SUPPORTED_PROFILES:
        raise ValueError(
            f"Unsupported profile '{profile}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
        )

    # Layer 1: profile defaults
    effective = dict(PROFILE_PRESETS[profile])
    # Layer 2/3: user overrides from YAML + CLI
    effective.update(result)
    effective["profile"] = profile
    return effective


def _validate_required_config(config: Dict[str, Any]) -> None:
    """Validate required user-facing config fields."""
    missing = [field for field in REQUIRED_CONFIG_FIELDS if not config.get(field)]
    if missing:
        raise ValueError(
            f"Missing required config fields: {', '.join(missing)}. "
            f"Set them in {PROMPTLAB_YAML} or pass via CLI."
        )


def _to_jsonl(entries: list) -> str:
    return "\n".join(json.dumps(entry, ensure_ascii=False) for entry in entries) + "\n"

"""Test case models for prompt optimization."""

import json
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field

ChunkId = Union[int, str]


class TestCase(BaseModel):
    """A query with retrieval ground truth and an optional judge reference."""

    __test__ = False

    query: str = Field(min_length=1)
    expected_chunk_ids: List[ChunkId] = Field(default_factory=list)
    reference: Optional[str] = Field(
        default=None,
        description="Ground-truth text shown to the judge"
    )
    category: Optional[str] = None
    difficulty: Optional[str] = None
    description: Optional[str] = None


def load_test_cases(path: Union[str, Path]) -> List[TestCase]:
    """Load test cases from a JSONL file."""
    cases: List[TestCase] = []

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                cases.append(TestCase.model_validate(json.loads(line)))

    logger.info(f"Loaded {len(cases)} test cases from {path}")
    return cases

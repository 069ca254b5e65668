"""External API clients."""

from .base import BaseLLMClient, GenerationOptions, GenerationResult, TokenUsage
from .llm_client import LLMClient
from .retrieval import BaseRetriever, Document, InMemoryRetriever, SearchHit

__all__ = [
    "BaseLLMClient",
    "GenerationOptions",
    "GenerationResult",
    "TokenUsage",
    "LLMClient",
    "BaseRetriever",
    "Document",
    "InMemoryRetriever",
    "SearchHit",
]

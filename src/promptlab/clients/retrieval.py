"""Retrieval collaborators: search interface and an in-memory keyword store."""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Set, Union

from loguru import logger
from pydantic import BaseModel, Field

from ..models.dataset import ChunkId

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")
KEYWORD_BOOST = 2.0
DEFAULT_SIMILARITY_THRESHOLD = 0.1


class SearchHit(BaseModel):
    """One retrieved document."""

    document_id: ChunkId
    score: float
    title: Optional[str] = None
    content: str = ""


class Document(BaseModel):
    """Knowledge-base chunk."""

    id: ChunkId
    content: str
    title: Optional[str] = None
    category: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class BaseRetriever(ABC):
    """Search interface returning hits ordered by descending similarity."""

    @abstractmethod
    async def asearch(self, query: str, top_k: int = 3) -> List[SearchHit]:
        """Search documents for a query."""
        pass


def tokenize(text: str) -> Set[str]:
    return set(TOKEN_PATTERN.findall(text.lower()))


class InMemoryRetriever(BaseRetriever):
    """Keyword-overlap retriever over a small in-memory knowledge base."""

    def __init__(
        self,
        documents: List[Document],
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        self.documents = documents
        self.similarity_threshold = similarity_threshold
        self._document_tokens = [
            tokenize(f"{doc.title or ''} {doc.content}") for doc in documents
        ]
        self._keyword_tokens = [
            tokenize(" ".join(doc.keywords)) for doc in documents
        ]

    @classmethod
    def from_jsonl(cls, path: Union[str, Path], **kwargs) -> "InMemoryRetriever":
        """Load documents from a JSONL file."""
        documents: List[Document] = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    documents.append(Document.model_validate(json.loads(line)))
        logger.info(f"Loaded {len(documents)} documents from {path}")
        return cls(documents, **kwargs)

    async def asearch(self, query: str, top_k: int = 3) -> List[SearchHit]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        hits: List[SearchHit] = []
        for doc, doc_tokens, keyword_tokens in zip(
            self.documents, self._document_tokens, self._keyword_tokens
        ):
            score = self._similarity(query_tokens, doc_tokens, keyword_tokens)
            if score >= self.similarity_threshold:
                hits.append(
                    SearchHit(document_id=doc.id, score=score, title=doc.title, content=doc.content)
                )

        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]

    def _similarity(self, query: Set[str], document: Set[str], keywords: Set[str]) -> float:
        """Share of query tokens found in the document, keyword hits weighted higher."""
        content_hits = len(query & document)
        keyword_hits = len(query & keywords)
        raw = content_hits + KEYWORD_BOOST * keyword_hits
        return min(1.0, raw / ((1 + KEYWORD_BOOST) * len(query)))

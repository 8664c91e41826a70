"""Retriever for semantic search over the persisted index.

Handles:
- Query embedding generation
- Index loading (a missing index means nothing has been ingested yet)
- FAISS vector search
- Projection of ranked chunks to caller-facing results
"""
import asyncio
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List

import structlog

from docchat import config
from docchat.errors import EmbeddingServiceError
from docchat.llm_client import Embedder
from docchat.rag.store_faiss import FAISSVectorStore, LoadStatus

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetrievalResult:
    """A retrieved chunk as returned to callers; the score stays internal."""

    text: str
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Retriever:
    """Semantic retriever for the RAG pipeline."""

    def __init__(
        self,
        embedder: Embedder,
        index_path: Path = None,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding service adapter
            index_path: Location of the persisted index (default from config)
            top_k: Default number of results (default from config)
        """
        self.embedder = embedder
        self.index_path = Path(index_path or config.VECTOR_INDEX_PATH)
        self.top_k = top_k or config.RETRIEVAL_TOP_K

        logger.info(
            "retriever_initialized",
            index_path=str(self.index_path),
            top_k=self.top_k,
        )

    async def retrieve(self, query: str, k: int = None) -> List[RetrievalResult]:
        """Retrieve the chunks most similar to a query.

        Low relevance never fails retrieval: the k nearest chunks are
        returned whatever their score.

        Args:
            query: User query text
            k: Number of results to return (overrides default)

        Returns:
            List of RetrievalResult objects, best first. Empty if nothing
            has been ingested yet.

        Raises:
            EmbeddingServiceError: If the query cannot be embedded
            IndexCorruptError: If the persisted index is unreadable
        """
        if not query or not query.strip():
            logger.warning("empty_query_provided")
            return []

        k = self.top_k if k is None else k

        logger.info("retrieval_started", query_length=len(query), top_k=k)

        result = await asyncio.to_thread(FAISSVectorStore.try_load, self.index_path)

        if result.status is LoadStatus.NOT_FOUND:
            logger.info("no_index_yet_empty_results", path=str(self.index_path))
            return []
        if result.status is LoadStatus.CORRUPT:
            raise result.error

        store = result.store
        if store.ntotal == 0:
            logger.warning("empty_index_no_results")
            return []

        vectors = await self.embedder.embed([query])
        if len(vectors) != 1:
            raise EmbeddingServiceError(
                f"Expected 1 query embedding, got {len(vectors)}"
            )

        hits = store.search(vectors[0], k)
        results = [RetrievalResult(text=c.text, source=c.source) for c, _ in hits]

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_score=hits[0][1] if hits else None,
        )

        return results

"""Ingest and query pipeline.

Orchestrates:
- Text chunking
- Embedding generation
- Serialised load -> add -> save cycles against the persisted index
- Retrieval and answer composition
"""
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from docchat import config
from docchat.errors import EmbeddingServiceError
from docchat.llm_client import Embedder, EmbeddingClient, GenerationClient, Generator
from docchat.rag.chunker import TextChunker
from docchat.rag.composer import AnswerComposer, AugmentedAnswer
from docchat.rag.extract import extract_text
from docchat.rag.retriever import Retriever
from docchat.rag.store_faiss import (
    FAISSVectorStore,
    IndexedEntry,
    LoadStatus,
)

logger = structlog.get_logger()


@dataclass
class IngestResult:
    source: str
    chunks_created: int
    total_entries: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "chunks_created": self.chunks_created,
            "total_entries": self.total_entries,
        }


class RagPipeline:
    """Entry point for ingesting documents and answering questions."""

    def __init__(
        self,
        embedder: Embedder,
        generator: Generator,
        index_path: Path = None,
        chunk_size: int = None,
        chunk_overlap: int = None,
        top_k: int = None,
        max_tokens: int = None,
        embedding_model: str = None,
    ):
        """Initialize the pipeline.

        Args:
            embedder: Embedding service adapter
            generator: Generation model adapter
            index_path: Location of the persisted index (default from config)
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
            top_k: Contexts retrieved per question (default from config)
            max_tokens: Output bound for the generation model (default from config)
            embedding_model: Model name recorded in the index metadata
        """
        self.index_path = Path(index_path or config.VECTOR_INDEX_PATH)
        self.embedder = embedder
        self.embedding_model = embedding_model or getattr(
            embedder, "model", config.EMBEDDING_MODEL
        )

        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        self.retriever = Retriever(embedder, index_path=self.index_path, top_k=top_k)
        self.composer = AnswerComposer(generator, max_tokens=max_tokens)

        # Guards every load -> add -> save cycle on index_path
        self._write_lock = asyncio.Lock()

        logger.info(
            "rag_pipeline_initialized",
            index_path=str(self.index_path),
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    async def _load_for_write(self) -> FAISSVectorStore:
        result = await asyncio.to_thread(FAISSVectorStore.try_load, self.index_path)

        if result.status is LoadStatus.NOT_FOUND:
            return FAISSVectorStore.create_empty(embedding_model=self.embedding_model)
        if result.status is LoadStatus.CORRUPT:
            raise result.error

        store = result.store
        if store.embedding_model and store.embedding_model != self.embedding_model:
            logger.warning(
                "embedding_model_changed",
                index_model=store.embedding_model,
                current_model=self.embedding_model,
            )
        return store

    async def ingest(self, text: str, source: str) -> IngestResult:
        """Chunk, embed and index a document's text.

        Embedding runs before the index lock is taken; the load, append and
        save run as one critical section so concurrent ingestions never drop
        each other's chunks.

        Raises:
            EmbeddingServiceError: If embedding fails (nothing is written)
            IndexCorruptError: If the persisted index is unreadable
        """
        logger.info("ingesting_document", source=source, text_length=len(text))

        chunks = self.chunker.chunk_text(text, source)

        if not chunks:
            logger.warning("no_chunks_created", source=source)
            return IngestResult(source=source, chunks_created=0, total_entries=0)

        vectors = await self.embedder.embed([c.text for c in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingServiceError(
                f"Expected {len(chunks)} embeddings, got {len(vectors)}"
            )

        entries = [IndexedEntry(vector=v, chunk=c) for v, c in zip(vectors, chunks)]

        async with self._write_lock:
            store = await self._load_for_write()
            store.add(entries)
            await asyncio.to_thread(store.save, self.index_path)
            total = store.ntotal

        logger.info(
            "document_ingested",
            source=source,
            chunks_created=len(chunks),
            total_entries=total,
        )

        return IngestResult(source=source, chunks_created=len(chunks), total_entries=total)

    async def ingest_file(self, file_path: Path, source: Optional[str] = None) -> IngestResult:
        """Extract a file's text and ingest it under its file name."""
        file_path = Path(file_path)
        text = await asyncio.to_thread(extract_text, file_path)
        return await self.ingest(text, source or file_path.name)

    async def query(self, question: str, k: Optional[int] = None) -> AugmentedAnswer:
        """Answer a question from the indexed documents.

        With nothing ingested yet the model is still asked, with an empty
        context list.
        """
        contexts = await self.retriever.retrieve(question, k=k)
        answer = await self.composer.compose(question, contexts)

        logger.info(
            "query_answered",
            question_length=len(question),
            num_contexts=len(contexts),
            answer_length=len(answer.answer),
        )

        return answer

    async def reset_index(self) -> None:
        """Delete the persisted index so the next ingestion starts fresh."""
        async with self._write_lock:
            if self.index_path.exists():
                self.index_path.unlink()
                logger.warning("index_deleted", path=str(self.index_path))

    async def get_stats(self) -> Dict[str, Any]:
        result = await asyncio.to_thread(FAISSVectorStore.try_load, self.index_path)
        stats: Dict[str, Any] = {"index_path": str(self.index_path), "status": result.status.value}
        if result.store is not None:
            stats.update(result.store.get_stats())
        return stats


# Singleton instance for convenience
_pipeline_instance: Optional[RagPipeline] = None


def get_pipeline() -> RagPipeline:
    """Get or create the process-wide pipeline.

    All writers share its lock, so the application should not build a
    second pipeline against the same index path.
    """
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = RagPipeline(
            embedder=EmbeddingClient(),
            generator=GenerationClient(),
        )
    return _pipeline_instance

"""FAISS vector store for semantic search.

Handles:
- Exact cosine search (IndexFlatIP over L2-normalised vectors)
- Dimension enforcement across all entries
- Single-file snapshots replaced atomically on save
- Load outcomes as values (loaded / not found / corrupt)
"""
import json
import os
import tempfile
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import faiss
import numpy as np
import structlog

from docchat.errors import (
    DimensionMismatchError,
    IndexCorruptError,
    IndexNotFoundError,
    InvalidConfigurationError,
    RagError,
)
from docchat.rag.chunker import Chunk

logger = structlog.get_logger()

FORMAT_VERSION = 1

# Scores equal to this many decimals count as ties
_SCORE_DECIMALS = 6
_TIE_EPSILON = 10 ** -_SCORE_DECIMALS


@dataclass(frozen=True)
class IndexedEntry:
    """A chunk together with its embedding."""

    vector: Sequence[float]
    chunk: Chunk


class LoadStatus(Enum):
    LOADED = "loaded"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


@dataclass
class LoadResult:
    """Outcome of reading a persisted index."""

    status: LoadStatus
    store: Optional["FAISSVectorStore"] = None
    error: Optional[RagError] = None


class FAISSVectorStore:
    """Append-only FAISS index over chunks, persisted as one snapshot file."""

    def __init__(self, dimension: Optional[int] = None, embedding_model: str = None):
        """Initialize an empty store.

        Args:
            dimension: Embedding dimension (fixed by the first add if not given)
            embedding_model: Name of the model that produced the vectors
        """
        self.dimension: Optional[int] = None
        self.embedding_model = embedding_model
        self.index: Optional[faiss.Index] = None
        self.chunks: List[Chunk] = []

        if dimension is not None:
            self._init_index(dimension)

    @classmethod
    def create_empty(
        cls, dimension: Optional[int] = None, embedding_model: str = None
    ) -> "FAISSVectorStore":
        logger.info("faiss_index_created", dimension=dimension)
        return cls(dimension=dimension, embedding_model=embedding_model)

    def _init_index(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError(f"Dimension must be positive, got {dimension}")
        self.dimension = dimension
        self.index = faiss.IndexFlatIP(dimension)

    @property
    def ntotal(self) -> int:
        return len(self.chunks)

    def _as_normalized_matrix(self, vectors: Sequence[Sequence[float]]) -> np.ndarray:
        try:
            matrix = np.array(vectors, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Vectors must be numeric and share one length: {e}"
            ) from e
        if matrix.ndim != 2:
            raise InvalidConfigurationError("Vectors must be numeric and share one length")
        if matrix.shape[1] != self.dimension:
            raise DimensionMismatchError(self.dimension, matrix.shape[1])
        faiss.normalize_L2(matrix)
        return matrix

    def add(self, entries: Sequence[IndexedEntry]) -> None:
        """Append entries to the index.

        Duplicates are kept: ingesting the same document twice indexes it twice.

        Raises:
            DimensionMismatchError: If a vector does not match the index dimension
        """
        if not entries:
            return

        if self.index is None:
            self._init_index(len(entries[0].vector))

        matrix = self._as_normalized_matrix([e.vector for e in entries])

        self.index.add(matrix)
        self.chunks.extend(e.chunk for e in entries)

        logger.info(
            "vectors_added",
            count=len(entries),
            total_vectors=self.ntotal,
        )

    def search(
        self, query_vector: Sequence[float], k: int
    ) -> List[Tuple[Chunk, float]]:
        """Search for the chunks most similar to a query vector.

        Args:
            query_vector: Query embedding
            k: Maximum number of results

        Returns:
            (chunk, cosine similarity) pairs, best first. Equal scores keep
            insertion order.

        Raises:
            DimensionMismatchError: If the query does not match the index dimension
        """
        if k <= 0 or self.ntotal == 0:
            return []

        query = self._as_normalized_matrix([query_vector])

        n = min(k, self.ntotal)
        scores, ids = self.index.search(query, n)
        candidates: Dict[int, float] = {
            int(i): float(s) for s, i in zip(scores[0], ids[0]) if i >= 0
        }

        # FAISS does not order ties by id; pull in everything tied with the
        # last result so insertion order decides who makes the cut.
        if n < self.ntotal:
            boundary = float(scores[0][n - 1])
            lims, tie_scores, tie_ids = self.index.range_search(
                query, boundary - _TIE_EPSILON
            )
            for s, i in zip(tie_scores[lims[0] : lims[1]], tie_ids[lims[0] : lims[1]]):
                candidates.setdefault(int(i), float(s))

        ranked = sorted(
            candidates.items(),
            key=lambda item: (-round(item[1], _SCORE_DECIMALS), item[0]),
        )[:k]

        logger.info(
            "vector_search_completed",
            top_k=k,
            results_found=len(ranked),
        )

        return [(self.chunks[i], score) for i, score in ranked]

    def save(self, path: Path) -> None:
        """Persist the full index state to a single file.

        The snapshot is written next to the target and moved into place with
        os.replace, so readers never observe a partial file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if self.index is not None:
            index_bytes = faiss.serialize_index(self.index)
        else:
            index_bytes = np.zeros(0, dtype=np.uint8)

        metadata = json.dumps(
            {
                "format_version": FORMAT_VERSION,
                "embedding_model": self.embedding_model,
                "dimension": self.dimension,
                "chunks": [{"text": c.text, "source": c.source} for c in self.chunks],
            }
        )

        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                np.savez(f, index=index_bytes, metadata=np.array(metadata))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(
            "faiss_index_saved",
            index_path=str(path),
            vector_count=self.ntotal,
        )

    @classmethod
    def load(cls, path: Path) -> "FAISSVectorStore":
        """Load a persisted index.

        Raises:
            IndexNotFoundError: If nothing is persisted at path
            IndexCorruptError: If the snapshot cannot be read or is inconsistent
        """
        path = Path(path)
        if not path.exists():
            raise IndexNotFoundError(f"Index not found: {path}")

        try:
            with np.load(path, allow_pickle=False) as archive:
                index_bytes = archive["index"]
                metadata = json.loads(str(archive["metadata"]))
        except (
            OSError,
            EOFError,
            ValueError,
            KeyError,
            TypeError,
            AttributeError,
            zipfile.BadZipFile,
        ) as e:
            raise IndexCorruptError(f"Failed to read index {path}: {e}") from e

        store = cls._from_snapshot(path, index_bytes, metadata)

        logger.info(
            "faiss_index_loaded",
            dimension=store.dimension,
            vector_count=store.ntotal,
            model=store.embedding_model,
        )
        return store

    @classmethod
    def _from_snapshot(
        cls, path: Path, index_bytes: np.ndarray, metadata: Any
    ) -> "FAISSVectorStore":
        try:
            if metadata.get("format_version") != FORMAT_VERSION:
                raise ValueError(
                    f"unsupported format version {metadata.get('format_version')}"
                )
            dimension = metadata["dimension"]
            chunks = [Chunk(text=c["text"], source=c["source"]) for c in metadata["chunks"]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise IndexCorruptError(f"Invalid index metadata in {path}: {e}") from e

        store = cls(embedding_model=metadata.get("embedding_model"))

        if dimension is None:
            if chunks or index_bytes.size:
                raise IndexCorruptError(f"Index {path} has entries but no dimension")
            return store

        try:
            index = faiss.deserialize_index(index_bytes)
        except RuntimeError as e:
            raise IndexCorruptError(f"Failed to deserialize FAISS index {path}: {e}") from e

        if index.d != dimension or index.ntotal != len(chunks):
            raise IndexCorruptError(
                f"Index {path} is inconsistent: dim={index.d}/{dimension}, "
                f"vectors={index.ntotal}, chunks={len(chunks)}"
            )

        store.dimension = dimension
        store.index = index
        store.chunks = chunks
        return store

    @classmethod
    def try_load(cls, path: Path) -> LoadResult:
        """Load a persisted index, reporting the outcome as a value."""
        try:
            return LoadResult(LoadStatus.LOADED, store=cls.load(path))
        except IndexNotFoundError as e:
            logger.info("no_index_found", path=str(path))
            return LoadResult(LoadStatus.NOT_FOUND, error=e)
        except IndexCorruptError as e:
            logger.error("index_corrupt", path=str(path), error=str(e))
            return LoadResult(LoadStatus.CORRUPT, error=e)

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        return {
            "vector_count": self.ntotal,
            "dimension": self.dimension,
            "embedding_model": self.embedding_model,
            "index_type": "IndexFlatIP",
        }

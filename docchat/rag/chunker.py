"""Character-based text chunking for the RAG pipeline.

Chunk size is a character budget used as a rough proxy for tokens
(2000 characters ≈ 500 tokens). Boundaries are positional and may fall
mid-word.
"""
from dataclasses import dataclass
from typing import List

import structlog

from docchat import config
from docchat.errors import InvalidConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a document's text tagged with its source."""

    text: str
    source: str


def chunk(text: str, source: str, chunk_size: int, overlap: int = 0) -> List[Chunk]:
    """Split text into fixed-size chunks in document order.

    Args:
        text: Extracted document text (may be empty)
        source: Identifier of the originating document
        chunk_size: Maximum chunk length in characters
        overlap: Characters shared by consecutive chunks

    Returns:
        List of Chunk objects

    Raises:
        InvalidConfigurationError: If chunk_size or overlap are out of range
    """
    if chunk_size <= 0:
        raise InvalidConfigurationError(
            f"Chunk size must be positive, got {chunk_size}"
        )
    if overlap < 0 or overlap >= chunk_size:
        raise InvalidConfigurationError(
            f"Overlap ({overlap}) must be in [0, chunk size ({chunk_size}))"
        )

    chunks = []
    step = chunk_size - overlap
    start = 0
    text_length = len(text)

    while start < text_length:
        end = min(start + chunk_size, text_length)
        chunks.append(Chunk(text=text[start:end], source=source))
        if end == text_length:
            break
        start += step

    return chunks


class TextChunker:
    """Character-based text chunker with optional overlap."""

    def __init__(self, chunk_size: int = None, chunk_overlap: int = None):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )

        # Fail fast on bad parameters instead of at the first document
        chunk("", "", self.chunk_size, self.chunk_overlap)

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str, source: str) -> List[Chunk]:
        """Split a document's text into chunks tagged with its source."""
        chunks = chunk(text, source, self.chunk_size, self.chunk_overlap)

        if chunks:
            logger.info(
                "text_chunked",
                source=source,
                text_length=len(text),
                chunk_count=len(chunks),
            )
        else:
            logger.debug("empty_text_no_chunks", source=source)

        return chunks

    def get_chunk_stats(self, chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.text) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }

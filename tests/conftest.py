"""Pytest configuration and fixtures.

The embedding and generation services are replaced by in-process fakes so
the suite runs without network access.
"""
import asyncio
from typing import Dict, List, Sequence

import pytest

from docchat.errors import EmbeddingServiceError, GenerationServiceError
from docchat.rag.pipeline import RagPipeline

ALPHABET = "abcdefghijklmnopqrstuvwxyz "


def letter_counts(text: str) -> List[float]:
    """Bag-of-letters embedding: texts sharing letters point the same way."""
    lowered = text.lower()
    return [float(lowered.count(c)) for c in ALPHABET]


class FakeEmbedder:
    """Embeds with letter counts unless a vector is pinned for the text."""

    model = "fake-letter-counts"

    def __init__(self):
        self.vectors: Dict[str, List[float]] = {}
        self.calls: List[List[str]] = []
        self.fail = False

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        # Yield so concurrent callers interleave
        await asyncio.sleep(0)
        if self.fail:
            raise EmbeddingServiceError("embedding service unavailable")
        return [self.vectors.get(t) or letter_counts(t) for t in texts]


class FakeGenerator:
    """Records prompts and returns a canned reply."""

    def __init__(self, reply: str = "The answer, see [1]."):
        self.reply = reply
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []
        self.fail = False

    async def generate(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if self.fail:
            raise GenerationServiceError("generation service unavailable")
        return self.reply


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def index_path(tmp_path):
    """Location of the persisted index for one test."""
    return tmp_path / "data" / "vectors.index"


@pytest.fixture
def pipeline(embedder, generator, index_path) -> RagPipeline:
    """Pipeline with 4-character chunks over the fake services."""
    return RagPipeline(
        embedder=embedder,
        generator=generator,
        index_path=index_path,
        chunk_size=4,
        chunk_overlap=0,
        top_k=4,
        max_tokens=256,
    )

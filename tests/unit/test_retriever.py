"""Tests for query-time retrieval."""
import pytest

from docchat.errors import EmbeddingServiceError, IndexCorruptError
from docchat.rag.chunker import Chunk
from docchat.rag.retriever import RetrievalResult, Retriever
from docchat.rag.store_faiss import FAISSVectorStore, IndexedEntry


@pytest.fixture
def populated_index(index_path):
    store = FAISSVectorStore.create_empty()
    store.add([
        IndexedEntry(vector=[1.0, 0.0], chunk=Chunk("cats purr", "pets.txt")),
        IndexedEntry(vector=[0.0, 1.0], chunk=Chunk("rockets fly", "space.txt")),
        IndexedEntry(vector=[0.7, 0.7], chunk=Chunk("cats in space", "mixed.txt")),
    ])
    store.save(index_path)
    return index_path


@pytest.mark.asyncio
async def test_no_index_returns_empty_results(embedder, index_path):
    retriever = Retriever(embedder, index_path=index_path)

    assert await retriever.retrieve("anything at all") == []


@pytest.mark.asyncio
async def test_results_ranked_and_projected(embedder, populated_index):
    embedder.vectors["feline"] = [1.0, 0.1]
    retriever = Retriever(embedder, index_path=populated_index)

    results = await retriever.retrieve("feline", k=2)

    assert results == [
        RetrievalResult(text="cats purr", source="pets.txt"),
        RetrievalResult(text="cats in space", source="mixed.txt"),
    ]
    assert embedder.calls == [["feline"]]


@pytest.mark.asyncio
async def test_default_k_from_constructor(embedder, populated_index):
    embedder.vectors["q"] = [1.0, 0.0]
    retriever = Retriever(embedder, index_path=populated_index, top_k=1)

    assert len(await retriever.retrieve("q")) == 1


@pytest.mark.asyncio
async def test_low_relevance_still_returns_nearest(embedder, populated_index):
    embedder.vectors["unrelated"] = [-1.0, -1.0]
    retriever = Retriever(embedder, index_path=populated_index)

    results = await retriever.retrieve("unrelated", k=4)

    assert len(results) == 3


@pytest.mark.asyncio
async def test_result_has_no_score(embedder, populated_index):
    embedder.vectors["q"] = [1.0, 0.0]
    retriever = Retriever(embedder, index_path=populated_index)

    result = (await retriever.retrieve("q", k=1))[0]

    assert result.to_dict() == {"text": "cats purr", "source": "pets.txt"}


@pytest.mark.asyncio
async def test_blank_query_skips_embedding(embedder, populated_index):
    retriever = Retriever(embedder, index_path=populated_index)

    assert await retriever.retrieve("   ") == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_corrupt_index_is_an_error(embedder, index_path):
    index_path.parent.mkdir(parents=True)
    index_path.write_bytes(b"corrupted")
    retriever = Retriever(embedder, index_path=index_path)

    with pytest.raises(IndexCorruptError):
        await retriever.retrieve("question")


@pytest.mark.asyncio
async def test_embedding_failure_propagates(embedder, populated_index):
    embedder.fail = True
    retriever = Retriever(embedder, index_path=populated_index)

    with pytest.raises(EmbeddingServiceError):
        await retriever.retrieve("question")

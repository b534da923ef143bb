import pytest
from unittest.mock import AsyncMock

from pdfchat.embeddings import EmbeddingClient
from pdfchat.providers import MockEmbeddingProvider
from pdfchat.retriever import Retriever
from pdfchat.vectorstore import VectorIndex, build_index, score


@pytest.mark.anyio
async def test_retrieve_returns_top_passages():
    embedder = AsyncMock()
    embedder.embed_one.return_value = [0.0, 1.0]
    index = build_index(
        ["about cats", "about dogs", "about both"],
        [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]],
    )

    retriever = Retriever(embedder)
    results = await retriever.retrieve(index, "Tell me about dogs", top_k=2)

    embedder.embed_one.assert_awaited_once_with("Tell me about dogs")
    assert results == ["about dogs", "about both"]


@pytest.mark.anyio
async def test_retrieve_skips_embedding_for_empty_index():
    embedder = AsyncMock()

    results = await Retriever(embedder).retrieve(VectorIndex(), "anything")

    assert results == []
    embedder.embed_one.assert_not_awaited()


@pytest.mark.anyio
async def test_retrieve_non_positive_top_k_returns_nothing():
    embedder = AsyncMock()
    index = build_index(["a passage"], [[1.0]])

    assert await Retriever(embedder).retrieve(index, "question", top_k=0) == []
    embedder.embed_one.assert_not_awaited()


@pytest.mark.anyio
async def test_retrieve_propagates_embedding_errors():
    embedder = AsyncMock()
    embedder.embed_one.side_effect = RuntimeError("boom")
    index = build_index(["a passage"], [[1.0]])

    with pytest.raises(RuntimeError):
        await Retriever(embedder).retrieve(index, "question")


@pytest.mark.anyio
async def test_identical_text_ranks_first_with_full_similarity():
    client = EmbeddingClient(MockEmbeddingProvider(dimension=16))
    chunks = ["The lease ends in March.", "Rent is paid monthly.", "Pets are not allowed."]
    index = build_index(chunks, await client.embed(chunks))

    query = await client.embed_one("Rent is paid monthly.")
    ranked = score(index, query)

    assert ranked[0].passage.content == "Rent is paid monthly."
    assert ranked[0].similarity == pytest.approx(1.0)
    assert await Retriever(client).retrieve(index, "Rent is paid monthly.", top_k=1) == ["Rent is paid monthly."]

import math

import numpy as np
import pytest

from pdfchat.errors import MismatchError
from pdfchat.vectorstore import (
    CONTEXT_SEPARATOR,
    DimensionMismatchError,
    Passage,
    VectorIndex,
    build_index,
    cosine_similarity,
    join_context,
    retrieve,
    score,
)


def test_cosine_similarity_basic_values():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 1.0], [1.0, 0.0]) == pytest.approx(1.0 / math.sqrt(2.0))


def test_cosine_similarity_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_cosine_similarity_rejects_different_dimensions():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_build_index_pairs_by_position():
    index = build_index(["a", "b"], [[1.0, 0.0], [0.0, 1.0]])

    assert len(index) == 2
    assert index.dimension == 2
    assert [passage.content for passage in index] == ["a", "b"]
    assert index.passages[1].embedding == (0.0, 1.0)


def test_build_index_rejects_length_mismatch():
    with pytest.raises(MismatchError):
        build_index(["a", "b"], [[1.0, 0.0]])


def test_index_rejects_mixed_dimensions():
    index = VectorIndex([Passage("a", (1.0, 0.0))])

    with pytest.raises(DimensionMismatchError):
        index.add(Passage("b", (1.0, 0.0, 0.0)))
    with pytest.raises(DimensionMismatchError):
        index.add(Passage("c", ()))
    assert len(index) == 1


def test_retrieve_orders_by_similarity():
    index = build_index(
        ["east", "north", "north-east"],
        [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]],
    )

    assert retrieve(index, [0.0, 1.0], k=2) == ["north", "north-east"]


def test_retrieve_breaks_ties_by_insertion_order():
    index = build_index(["first", "second", "third"], [[1.0, 0.0], [2.0, 0.0], [0.0, 1.0]])

    assert retrieve(index, [1.0, 0.0], k=2) == ["first", "second"]


def test_retrieve_returns_everything_when_k_exceeds_size():
    index = build_index(["a", "b"], [[1.0, 0.0], [0.0, 1.0]])

    assert retrieve(index, [1.0, 0.0], k=10) == ["a", "b"]
    assert retrieve(index, [1.0, 0.0], k=0) == []


def test_retrieve_empty_index_returns_nothing():
    assert retrieve(VectorIndex(), [1.0, 0.0]) == []


def test_score_zero_norm_passage_scores_zero():
    index = build_index(["zero", "one"], [[0.0, 0.0], [1.0, 0.0]])

    scored = score(index, [1.0, 0.0])

    assert [item.passage.content for item in scored] == ["one", "zero"]
    assert scored[1].similarity == 0.0
    assert scored[1].position == 0


def test_score_rejects_query_of_wrong_dimension():
    index = build_index(["a"], [[1.0, 0.0]])

    with pytest.raises(DimensionMismatchError):
        score(index, [1.0, 0.0, 0.0])


def test_index_matrix_refreshes_after_add():
    index = build_index(["a"], [[1.0, 0.0]])
    assert index.matrix().shape == (1, 2)

    index.add(Passage("b", (0.0, 1.0)))

    assert index.matrix().shape == (2, 2)


def test_join_context_uses_separator():
    assert join_context(["one", "two"]) == f"one{CONTEXT_SEPARATOR}two"
    assert join_context([]) == ""


def test_cosine_similarity_is_symmetric():
    a, b = [0.3, -1.2, 2.0], [1.5, 0.4, -0.7]

    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, a) == pytest.approx(1.0)


def test_similarities_stay_within_unit_range():
    rng = np.random.default_rng(7)
    vectors = rng.normal(size=(2000, 7))

    for vector in vectors:
        assert -1.0 <= cosine_similarity(vector, vector) <= 1.0
        assert -1.0 <= cosine_similarity(vector, -vector) <= 1.0
        assert -1.0 <= score(build_index(["a"], [vector]), vector)[0].similarity <= 1.0

    index = build_index([str(i) for i in range(len(vectors))], vectors)
    similarities = [item.similarity for item in score(index, vectors[0])]
    assert max(similarities) <= 1.0
    assert min(similarities) >= -1.0

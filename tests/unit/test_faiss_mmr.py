import numpy as np
import pytest

from app.domain.models import LeafletChunk
from app.infra.search.faiss_index import LeafletVectorIndex, build_leaflet_index


def _chunk(name, page):
    return LeafletChunk(text=name, page_number=page)


def _index():
    chunks = [_chunk("A", 1), _chunk("A-dup", 1), _chunk("B", 2), _chunk("far", 3)]
    vecs = [
        [1.0, 0.05, 0.0],
        [1.0, 0.06, 0.0],
        [0.6, -0.8, 0.0],
        [0.0, 0.0, 1.0],
    ]
    return LeafletVectorIndex(chunks, vecs)


def test_similarity_search_is_cosine_ranked():
    hits = _index().similarity_search([1.0, 0.0, 0.0], k=2)
    assert [c.text for c, _ in hits] == ["A", "A-dup"]
    assert hits[0][1] == pytest.approx(1 / np.hypot(1.0, 0.05), abs=1e-5)


def test_mmr_avoids_near_duplicates():
    hits = _index().max_marginal_relevance_search([1.0, 0.0, 0.0], k=2, fetch_k=4, lambda_mult=0.5)
    assert [c.text for c, _ in hits] == ["A", "B"]


def test_mmr_lambda_one_is_plain_relevance():
    hits = _index().max_marginal_relevance_search([1.0, 0.0, 0.0], k=3, fetch_k=4, lambda_mult=1.0)
    assert [c.text for c, _ in hits] == ["A", "A-dup", "B"]


def test_k_larger_than_index():
    hits = _index().max_marginal_relevance_search([0.0, 0.0, 1.0], k=10, fetch_k=20)
    assert len(hits) == 4
    assert hits[0][0].text == "far"


def test_empty_index_returns_nothing():
    idx = LeafletVectorIndex([], None, dim=3)
    assert idx.is_empty
    assert idx.search([1.0, 0.0, 0.0]) == []
    assert idx.max_marginal_relevance_search([1.0, 0.0, 0.0]) == []


def test_vector_count_must_match_chunks():
    with pytest.raises(ValueError):
        LeafletVectorIndex([_chunk("A", 1)], [[1.0, 0.0], [0.0, 1.0]])


def test_build_index_batches_embeddings(embedder):
    texts = ["posologia adultos", "gravidez aleitamento", "efeitos indesejaveis",
             "conservacao temperatura", "sobredosagem paracetamol"]
    chunks = [_chunk(t, i + 1) for i, t in enumerate(texts)]
    idx = build_leaflet_index(chunks=chunks, embedder=embedder, batch_size=2)
    assert len(idx) == 5
    assert embedder.batch_calls == 3
    top, _ = idx.similarity_search(embedder.embed_query("conservacao temperatura"), k=1)[0]
    assert top.page_number == 4

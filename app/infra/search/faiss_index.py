# app/infra/search/faiss_index.py
from __future__ import annotations
import os
from typing import List, Sequence, Tuple
import numpy as np

try:
    import faiss  # type: ignore
except ImportError as e:
    raise RuntimeError("faiss is not installed: pip install faiss-cpu") from e

from app.domain.models import LeafletChunk

_EMBED_DIM = int(os.getenv("EMBED_DIM", "1536"))
_VERBOSE   = os.getenv("FAISS_VERBOSE", "0") == "1"

def _dbg(msg: str):
    if _VERBOSE:
        print(f"[faiss] {msg}")

def _as_unit_rows(vectors) -> np.ndarray:
    mat = np.ascontiguousarray(np.asarray(vectors, dtype=np.float32))
    if mat.ndim == 1:
        mat = mat.reshape(1, -1)
    faiss.normalize_L2(mat)
    return mat

class LeafletVectorIndex:
    """
    In-memory index over the chunks of ONE leaflet.
      - IndexFlatIP over L2-normalized vectors → scores are cosine similarity.
      - row i of the index ↔ self.chunks[i]; immutable once built.
      - zero chunks is valid (empty leaflet); every search then returns [].
    """
    def __init__(self, chunks: Sequence[LeafletChunk], vectors=None, dim: int | None = None):
        self.chunks: Tuple[LeafletChunk, ...] = tuple(chunks)
        if self.chunks:
            self.vectors = _as_unit_rows(vectors)
            if self.vectors.shape[0] != len(self.chunks):
                raise ValueError(f"{len(self.chunks)} chunks but {self.vectors.shape[0]} vectors")
            self.dim = int(self.vectors.shape[1])
        else:
            self.dim = int(dim or _EMBED_DIM)
            self.vectors = np.empty((0, self.dim), dtype=np.float32)
        self.index = faiss.IndexFlatIP(self.dim)
        if len(self.chunks):
            self.index.add(self.vectors)
        _dbg(f"built flat IP index ntotal={self.index.ntotal} dim={self.dim}")

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    def search(self, query_vec, k: int = 6) -> List[Tuple[int, float]]:
        if self.is_empty:
            return []
        q = _as_unit_rows(query_vec)
        D, I = self.index.search(q, min(k, self.index.ntotal))
        return [(int(i), float(d)) for i, d in zip(I[0], D[0]) if int(i) != -1]

    def similarity_search(self, query_vec, k: int = 6) -> List[Tuple[LeafletChunk, float]]:
        return [(self.chunks[i], s) for i, s in self.search(query_vec, k)]

    def max_marginal_relevance_search(
        self, query_vec, k: int = 6, fetch_k: int = 20, lambda_mult: float = 0.5
    ) -> List[Tuple[LeafletChunk, float]]:
        """
        Greedy MMR over the fetch_k nearest chunks:
            score(j) = λ·sim(q, j) − (1−λ)·max_{s ∈ selected} sim(j, s)
        Returned in selection order (= retrieval rank), with sim(q, j).
        """
        pool = self.search(query_vec, max(k, fetch_k))
        if not pool:
            return []
        ids = [i for i, _ in pool]
        rel = np.array([s for _, s in pool], dtype=np.float32)
        cand = self.vectors[ids]
        pair = cand @ cand.T

        selected: List[int] = []
        remaining = list(range(len(ids)))
        while remaining and len(selected) < k:
            best_j, best_score = remaining[0], -np.inf
            for j in remaining:
                div = float(pair[j, selected].max()) if selected else 0.0
                score = lambda_mult * float(rel[j]) - (1.0 - lambda_mult) * div
                if score > best_score:
                    best_j, best_score = j, score
            selected.append(best_j)
            remaining.remove(best_j)
        _dbg(f"mmr: pool={len(ids)} selected={len(selected)}")
        return [(self.chunks[ids[j]], float(rel[j])) for j in selected]


def build_leaflet_index(*, chunks: Sequence[LeafletChunk], embedder, batch_size: int = 256) -> LeafletVectorIndex:
    texts = [c.text for c in chunks]
    if not texts:
        return LeafletVectorIndex([], None)

    mats: List[np.ndarray] = []
    for i in range(0, len(texts), batch_size):
        batch = texts[i:i+batch_size]
        embs  = embedder.embed_batch(batch)
        mats.append(np.array(embs, dtype=np.float32))
    mat = np.vstack(mats)
    return LeafletVectorIndex(chunks, mat)

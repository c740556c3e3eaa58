"""In-memory exact nearest-neighbour index over chunk embeddings."""

from __future__ import annotations

from typing import Literal

import numpy as np

from corpus_qa.errors import ConfigError, InvalidArgument
from corpus_qa.ingestion.models import Chunk
from corpus_qa.retrieval.models import ScoredChunk

Metric = Literal["cosine", "l2"]


class VectorIndex:
    """Immutable collection of ``(Chunk, vector)`` pairs.

    The embedding matrix is flagged read-only on construction; searching
    never mutates the index, so one instance can be shared by concurrent
    readers.

    Parameters
    ----------
    chunks:
        Indexed chunks, in insertion order.
    vectors:
        One embedding per chunk, all of the same dimensionality.
    metric:
        ``"cosine"`` (default) or ``"l2"``.  L2 distances are reported as
        ``1 / (1 + distance)`` so that higher always means more similar.
    """

    def __init__(
        self,
        chunks: list[Chunk],
        vectors: list[list[float]] | np.ndarray,
        *,
        metric: Metric = "cosine",
    ) -> None:
        if metric not in ("cosine", "l2"):
            raise ConfigError(f"Unsupported similarity metric: {metric!r}")
        if len(chunks) != len(vectors):
            raise ConfigError(f"{len(chunks)} chunks but {len(vectors)} vectors")
        dims = {len(v) for v in vectors}
        if len(dims) > 1:
            raise ConfigError(f"Inconsistent embedding dimensionality: {sorted(dims)}")
        if dims == {0}:
            raise ConfigError("Embeddings must have at least one dimension")

        matrix = np.asarray(vectors, dtype=np.float64).reshape(len(chunks), -1 if chunks else 0)
        matrix.setflags(write=False)
        self._chunks: tuple[Chunk, ...] = tuple(chunks)
        self._matrix = matrix
        self.metric: Metric = metric
        if metric == "cosine":
            norms = np.linalg.norm(matrix, axis=1)
            norms[norms == 0] = 1.0
            normalised = matrix / norms[:, None]
            normalised.setflags(write=False)
            self._normalised = normalised

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def dimension(self) -> int:
        return int(self._matrix.shape[1]) if len(self._chunks) else 0

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks

    def scores(self, query_vector: list[float] | np.ndarray) -> np.ndarray:
        """Similarity of *query_vector* to every indexed vector, insertion order."""
        query = np.asarray(query_vector, dtype=np.float64).ravel()
        if query.shape[0] != self.dimension:
            raise ConfigError(
                f"Query embedding has {query.shape[0]} dimensions, index has {self.dimension}"
            )
        if self.metric == "cosine":
            norm = np.linalg.norm(query)
            if norm == 0:
                return np.zeros(len(self._chunks))
            return self._normalised @ (query / norm)
        distances = np.linalg.norm(self._matrix - query, axis=1)
        return 1.0 / (1.0 + distances)

    def search(self, query_vector: list[float] | np.ndarray, k: int) -> list[ScoredChunk]:
        """Return the *k* most similar chunks, best first.

        Ties keep insertion order.  ``k`` larger than the index returns
        every entry.
        """
        if k <= 0:
            raise InvalidArgument(f"k must be positive, got {k}")
        scores = self.scores(query_vector)
        order = np.argsort(-scores, kind="stable")[:k]
        return [ScoredChunk(chunk=self._chunks[i], score=float(scores[i])) for i in order]

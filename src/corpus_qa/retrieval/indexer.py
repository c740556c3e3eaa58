"""Embedding indexer — build a :class:`VectorIndex` and query it.

Usage::

    indexer = EmbeddingIndexer(EmbeddingClient(get_embeddings(settings)))
    index = indexer.build(chunks)
    for hit in indexer.search(index, "What is the capital of France?", k=4):
        print(hit.citation().short_ref(), hit.score)
"""

from __future__ import annotations

import logging
import threading

from corpus_qa.errors import ConfigError, IndexUnavailable, InvalidArgument
from corpus_qa.ingestion.chunker import DEFAULT_BOUNDARY, split
from corpus_qa.ingestion.loader import DocumentLoader
from corpus_qa.ingestion.models import Chunk
from corpus_qa.ingestion.store import DocumentStore
from corpus_qa.retrieval.embeddings import EmbeddingClient
from corpus_qa.retrieval.index import Metric, VectorIndex
from corpus_qa.retrieval.models import ScoredChunk

logger = logging.getLogger(__name__)

DEFAULT_K = 4


class EmbeddingIndexer:
    """Embed chunks into an index and run similarity searches against it.

    Parameters
    ----------
    client:
        Embedding client used for **both** indexing and queries, so the two
        always live in the same embedding space.
    metric:
        Similarity metric of the built indices.
    default_k:
        Number of results when :meth:`search` is called without ``k``.
    """

    def __init__(
        self,
        client: EmbeddingClient,
        *,
        metric: Metric = "cosine",
        default_k: int = DEFAULT_K,
    ) -> None:
        if default_k <= 0:
            raise ConfigError(f"default_k must be positive, got {default_k}")
        self._client = client
        self.metric = metric
        self.default_k = default_k

    def build(self, chunks: list[Chunk]) -> VectorIndex:
        """Embed every chunk and return a read-only index.

        Raises
        ------
        IndexUnavailable
            If *chunks* is empty.
        EmbeddingServiceError
            If any embedding request fails; no partial index is returned.
        ConfigError
            If the provider returns vectors of differing dimensionality.
        """
        if not chunks:
            raise IndexUnavailable("No indexable content in the document store")
        vectors = self._client.embed([c.text for c in chunks])
        index = VectorIndex(chunks, vectors, metric=self.metric)
        logger.info("Built %s index: %d chunk(s), dim=%d", self.metric, len(index), index.dimension)
        return index

    def search(self, index: VectorIndex, query: str, k: int | None = None) -> list[ScoredChunk]:
        """Return the top-*k* chunks for *query*, most similar first.

        Raises
        ------
        InvalidArgument
            If ``k <= 0``.
        ConfigError
            If the query embedding's dimensionality differs from the index.
        """
        k = self.default_k if k is None else k
        if k <= 0:
            raise InvalidArgument(f"k must be positive, got {k}")
        query_vector = self._client.embed_query(query)
        results = index.search(query_vector, k)
        logger.info("Retrieved %d chunk(s) for %r", len(results), query[:80])
        return results


class IndexProvider:
    """Produce the index for the current content of a document store.

    Without caching the store is loaded, chunked and embedded on every
    call.  With ``cache=True`` the last index is reused while the store's
    fingerprint is unchanged; rebuilds are serialised by a lock and any
    store change forces a rebuild, so stale content is never served.
    """

    def __init__(
        self,
        store: DocumentStore,
        loader: DocumentLoader,
        indexer: EmbeddingIndexer,
        *,
        chunk_size: int,
        chunk_overlap: int,
        boundary: str = DEFAULT_BOUNDARY,
        cache: bool = False,
    ) -> None:
        self._store = store
        self._loader = loader
        self._indexer = indexer
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.boundary = boundary
        self.cache = cache
        self._lock = threading.Lock()
        self._cached: tuple[str, VectorIndex] | None = None

    def get(self) -> VectorIndex:
        """Return an index reflecting the store's current content.

        Raises
        ------
        IndexUnavailable
            If the store holds no indexable content.
        """
        if not self.cache:
            return self._build()

        with self._lock:
            fingerprint = self._store.fingerprint()
            if self._cached is not None and self._cached[0] == fingerprint:
                logger.debug("Reusing cached index for fingerprint %s", fingerprint[:12])
                return self._cached[1]
            index = self._build()
            # The store may have changed while we were building.
            if self._store.fingerprint() == fingerprint:
                self._cached = (fingerprint, index)
            else:
                self._cached = None
            return index

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    def _build(self) -> VectorIndex:
        if self._store.is_empty():
            raise IndexUnavailable("No content to index: the document store is empty")
        documents = self._loader.load_all(self._store)
        chunks = split(documents, self.chunk_size, self.chunk_overlap, self.boundary)
        return self._indexer.build(chunks)

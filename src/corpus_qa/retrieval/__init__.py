"""
Retrieval — embedding, indexing and similarity search.

Public surface
--------------
- :class:`EmbeddingIndexer` — build an index from chunks and search it.
- :class:`IndexProvider` — index for the document store's current content.
- :class:`VectorIndex` — immutable exact nearest-neighbour index.
- :class:`EmbeddingClient` — batched provider boundary.
- :class:`ScoredChunk`, :class:`Citation` — result models.
"""

from corpus_qa.retrieval.embeddings import EmbeddingClient, get_embeddings
from corpus_qa.retrieval.index import VectorIndex
from corpus_qa.retrieval.indexer import EmbeddingIndexer, IndexProvider
from corpus_qa.retrieval.models import Citation, ScoredChunk

__all__ = [
    "Citation",
    "EmbeddingClient",
    "EmbeddingIndexer",
    "IndexProvider",
    "ScoredChunk",
    "VectorIndex",
    "get_embeddings",
]

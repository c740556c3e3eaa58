"""Dependency wiring — build every pipeline component from :class:`Settings`."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from corpus_qa.agent.llm import GenerationClient, get_llm
from corpus_qa.agent.orchestrator import ConversationOrchestrator
from corpus_qa.config import Settings
from corpus_qa.ingestion.extractor import ContentExtractor, PageRenderer
from corpus_qa.ingestion.loader import DocumentLoader
from corpus_qa.ingestion.service import IngestionService
from corpus_qa.ingestion.store import DocumentStore, FileSystemDocumentStore
from corpus_qa.retrieval.embeddings import EmbeddingClient, get_embeddings
from corpus_qa.retrieval.indexer import EmbeddingIndexer, IndexProvider

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """The two boundaries the HTTP layer talks to."""

    ingestion: IngestionService
    orchestrator: ConversationOrchestrator


def build_services(
    settings: Settings,
    *,
    store: DocumentStore | None = None,
    renderer: PageRenderer | None = None,
    embedding_client: EmbeddingClient | None = None,
    generator: GenerationClient | None = None,
) -> ServiceContainer:
    """Wire store → extractor/loader → indexer → orchestrator.

    Provider credentials are checked here, once, unless both provider
    clients are injected.

    Raises
    ------
    ConfigError
        If the settings are incomplete.
    """
    if embedding_client is None or generator is None:
        settings.validate_provider()

    store = store or FileSystemDocumentStore(settings.document_store_dir)
    extractor = ContentExtractor(
        store,
        renderer,
        timeout=settings.scrape_timeout,
        versioned=settings.scrape_versioning,
    )
    embedding_client = embedding_client or EmbeddingClient(
        get_embeddings(settings), batch_size=settings.embedding_batch_size
    )
    generator = generator or GenerationClient(get_llm(settings))

    indexer = EmbeddingIndexer(
        embedding_client,
        metric=settings.similarity_metric,
        default_k=settings.retrieval_k,
    )
    index_provider = IndexProvider(
        store,
        DocumentLoader(),
        indexer,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        cache=settings.cache_index,
    )
    logger.info(
        "Services ready: store=%s chunk_size=%d overlap=%d k=%d cache_index=%s",
        getattr(store, "root", type(store).__name__),
        settings.chunk_size,
        settings.chunk_overlap,
        settings.retrieval_k,
        settings.cache_index,
    )
    return ServiceContainer(
        ingestion=IngestionService(store, extractor),
        orchestrator=ConversationOrchestrator(
            index_provider, indexer, generator, k=settings.retrieval_k
        ),
    )

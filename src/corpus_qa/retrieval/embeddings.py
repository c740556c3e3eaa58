"""Embedding provider — single place to swap embedding backends.

Supports two modes:

1. **OpenAI** (default) — ``OpenAIEmbeddings``; ``LLM_BASE_URL`` points it
   at any OpenAI-compatible server.
2. **Azure OpenAI** — ``AzureOpenAIEmbeddings`` with the ``AZURE_*`` settings.

Every call goes through :class:`EmbeddingClient`, which batches requests and
turns provider failures into :class:`EmbeddingServiceError`.
"""

from __future__ import annotations

import logging

import openai
from langchain_core.embeddings import Embeddings
from langchain_openai import AzureOpenAIEmbeddings, OpenAIEmbeddings

from corpus_qa.config import Settings
from corpus_qa.errors import EmbeddingServiceError, ProviderFailureKind

logger = logging.getLogger(__name__)


def get_embeddings(settings: Settings) -> Embeddings:
    """Return the configured LangChain embeddings implementation."""
    if settings.llm_provider == "azure":
        logger.info("Using Azure OpenAI embeddings: %s", settings.azure_embedding_deployment)
        return AzureOpenAIEmbeddings(
            azure_endpoint=settings.azure_endpoint,
            azure_deployment=settings.azure_embedding_deployment,
            api_version=settings.azure_api_version,
            api_key=settings.openai_api_key,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )

    kwargs: dict = {
        "model": settings.embedding_model,
        "timeout": settings.request_timeout,
        "max_retries": settings.max_retries,
    }
    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible embedding endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Local servers don't need a real key; the client requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
        kwargs["check_embedding_ctx_length"] = False
    else:
        kwargs["api_key"] = settings.openai_api_key
    return OpenAIEmbeddings(**kwargs)


def classify_provider_error(exc: Exception) -> ProviderFailureKind:
    """Separate timeouts and connection failures from provider-side errors."""
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(exc, (openai.APIConnectionError, ConnectionError)):
        return "network"
    return "provider"


class EmbeddingClient:
    """Batched ``embed(texts) -> vectors`` over a LangChain :class:`Embeddings`.

    Parameters
    ----------
    embeddings:
        The underlying embedding model (OpenAI, Azure, or a fake in tests).
    batch_size:
        Maximum number of texts per provider request.
    """

    def __init__(self, embeddings: Embeddings, *, batch_size: int = 512) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._embeddings = embeddings
        self.batch_size = batch_size

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, one vector per text, in input order.

        Raises
        ------
        EmbeddingServiceError
            If any batch fails or returns the wrong number of vectors.
        """
        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self.batch_size):
            batch = texts[offset : offset + self.batch_size]
            try:
                result = self._embeddings.embed_documents(batch)
            except Exception as exc:
                kind = classify_provider_error(exc)
                logger.exception("Embedding batch at offset %d failed (%s)", offset, kind)
                raise EmbeddingServiceError(f"embedding request failed: {exc}", kind) from exc
            if len(result) != len(batch):
                raise EmbeddingServiceError(
                    f"provider returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend(result)
        return vectors

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        try:
            return self._embeddings.embed_query(text)
        except Exception as exc:
            kind = classify_provider_error(exc)
            logger.exception("Query embedding failed (%s)", kind)
            raise EmbeddingServiceError(f"query embedding failed: {exc}", kind) from exc

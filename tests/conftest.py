"""Shared pytest configuration and fixtures.

Provider fakes live here so every test runs without network access or
API keys.
"""

from __future__ import annotations

import re
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage, BaseMessage

from corpus_qa.agent.llm import GenerationClient
from corpus_qa.ingestion.loader import DocumentLoader
from corpus_qa.ingestion.store import InMemoryDocumentStore
from corpus_qa.retrieval.embeddings import EmbeddingClient
from corpus_qa.retrieval.indexer import EmbeddingIndexer, IndexProvider


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ──────────────────────────────────────────────────────────────

VOCABULARY = ["paris", "france", "capital", "berlin", "germany", "river", "wine", "python"]


class KeywordEmbeddings(Embeddings):
    """Bag-of-words embeddings over a fixed vocabulary.

    Deterministic and cheap; texts sharing words with the query score higher.
    """

    def __init__(self, vocabulary: list[str] | None = None) -> None:
        self.vocabulary = vocabulary or VOCABULARY
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) for term in self.vocabulary]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self._vector(text)


class RecordingChatModel:
    """Chat-model stand-in that records prompts and answers from the context.

    Replies ``"Paris"`` when the final message mentions Paris, otherwise
    ``"answer <n>"`` for the n-th call.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.prompts: list[list[BaseMessage]] = []
        self.error = error

    def invoke(self, messages: list[BaseMessage], **kwargs: Any) -> AIMessage:
        self.prompts.append(list(messages))
        if self.error is not None:
            raise self.error
        if "Paris" in messages[-1].content:
            return AIMessage(content="The capital of France is Paris.")
        return AIMessage(content=f"answer {len(self.prompts)}")


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def indexer(embeddings: KeywordEmbeddings) -> EmbeddingIndexer:
    return EmbeddingIndexer(EmbeddingClient(embeddings, batch_size=2))


@pytest.fixture()
def generator(chat_model: RecordingChatModel) -> GenerationClient:
    return GenerationClient(chat_model)  # type: ignore[arg-type]


@pytest.fixture()
def index_provider(store: InMemoryDocumentStore, indexer: EmbeddingIndexer) -> IndexProvider:
    return IndexProvider(store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)

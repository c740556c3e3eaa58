"""Exception hierarchy for the ingestion-to-answer pipeline.

    CorpusQAError
    +-- InvalidArgument          malformed or missing input
    +-- FetchError               page could not be loaded in time
    +-- NetworkError             DNS / connection failure while fetching
    +-- ParseError               a stored file is malformed
    +-- ConfigError              bad settings, chunk parameters, vector dimensions
    +-- IndexUnavailable         nothing to retrieve from
    +-- ProviderError            embedding / chat provider failed
        +-- EmbeddingServiceError
        +-- GenerationServiceError
"""

from __future__ import annotations

from typing import Literal

ProviderFailureKind = Literal["timeout", "network", "provider"]


class CorpusQAError(Exception):
    """Base class for every error raised by ``corpus_qa``."""


class InvalidArgument(CorpusQAError, ValueError):
    """Raised when caller input is empty or malformed."""


class FetchError(CorpusQAError):
    """Raised when a page cannot be loaded (timeout, HTTP error status)."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class NetworkError(CorpusQAError):
    """Raised on DNS resolution or connection failures."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Network error for {url}: {reason}")


class ParseError(CorpusQAError):
    """Raised when a stored document cannot be parsed.

    ``path`` names the offending file so the caller can remove or fix it.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not parse {path}: {reason}")


class ConfigError(CorpusQAError):
    """Raised for invalid configuration or mismatched embedding spaces."""


class IndexUnavailable(CorpusQAError):
    """Raised when the document store holds nothing to index."""


class ProviderError(CorpusQAError):
    """A call to the embedding or generation provider failed.

    ``kind`` separates timeouts and network failures from errors reported
    by the provider itself.
    """

    def __init__(self, message: str, kind: ProviderFailureKind = "provider") -> None:
        self.kind = kind
        super().__init__(f"[{kind}] {message}")


class EmbeddingServiceError(ProviderError):
    """Raised when embedding a batch of texts fails."""


class GenerationServiceError(ProviderError):
    """Raised when the chat model fails to produce an answer."""

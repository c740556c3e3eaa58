"""Domain models for ingested documents and their chunks."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentFormat(str, Enum):
    """Where a document's text came from."""

    TEXT = "text"
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"
    PDF = "pdf"
    SCRAPED = "scraped"


class Document(BaseModel):
    """Normalised text of one ingested source (or one record of it).

    Attributes
    ----------
    id:
        Stable identifier, ``"<source>"`` or ``"<source>#<record>"``.
    source:
        Store file name or URL the text was read from.
    text:
        The raw text to be chunked.
    format:
        Parser that produced the document.
    metadata:
        String-valued provenance (``source``, ``format``, ``row``, ``page`` …).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    text: str
    format: DocumentFormat
    metadata: dict[str, str] = Field(default_factory=dict)


class Chunk(BaseModel):
    """A bounded slice of a :class:`Document`, the unit of retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    text: str
    ordinal: int
    overlap_with_previous: bool = False
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def source(self) -> str:
        return self.metadata.get("source", "unknown")

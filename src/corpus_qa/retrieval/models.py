"""Domain models for retrieval results and citation tracking."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from corpus_qa.ingestion.models import Chunk


class ScoredChunk(BaseModel):
    """A retrieved chunk together with its similarity to the query.

    Higher ``score`` means more similar, whatever the index metric.
    """

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation().short_ref()} {self.chunk.text[:120]}…"

    def citation(self) -> Citation:
        return Citation(
            chunk_id=self.chunk.id,
            document_id=self.chunk.document_id,
            source=self.chunk.source,
            chunk_index=self.chunk.ordinal,
            page=self.chunk.metadata.get("page"),
            score=self.score,
        )


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its source.

    Attributes
    ----------
    chunk_id:
        Identifier of the retrieved chunk.
    document_id:
        Identifier of the document the chunk was cut from.
    source:
        Store file name or URL.
    chunk_index:
        Ordinal position of the chunk within its document.
    page:
        Page number for PDF sources.
    score:
        Similarity score at retrieval time.
    """

    chunk_id: str
    document_id: str
    source: str = "unknown"
    chunk_index: int | None = None
    page: str | None = None
    score: float | None = None

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.source}§{chunk}]"

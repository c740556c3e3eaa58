"""Text chunking with exact character overlap."""

from __future__ import annotations

import logging
from typing import Any

from langchain_text_splitters import TextSplitter

from corpus_qa.errors import ConfigError
from corpus_qa.ingestion.models import Chunk, Document

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_BOUNDARY = "\n"


class OverlapTextSplitter(TextSplitter):
    """Greedy fixed-size splitter that prefers ending chunks on a boundary.

    Each chunk holds at most ``chunk_size`` characters and ends just after
    the last *boundary* character inside that window, unless doing so would
    leave no room to advance past the overlap.  The next chunk starts
    ``chunk_overlap`` characters before the previous one ended, so
    ``chunks[0] + "".join(c[chunk_overlap:] for c in chunks[1:])`` is the
    original text.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Characters shared by consecutive chunks; must be < ``chunk_size``.
    boundary:
        Preferred split character(s).  Empty string disables the preference.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        boundary: str = DEFAULT_BOUNDARY,
        **kwargs: Any,
    ) -> None:
        if chunk_size <= 0:
            raise ConfigError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ConfigError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ConfigError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        kwargs.setdefault("strip_whitespace", False)
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs)
        self.boundary = boundary

    def split_text(self, text: str) -> list[str]:
        size = self._chunk_size
        overlap = self._chunk_overlap
        chunks: list[str] = []
        start = 0
        while start < len(text):
            end = min(start + size, len(text))
            if end < len(text) and self.boundary:
                cut = text.rfind(self.boundary, start, end)
                if cut != -1 and cut + len(self.boundary) - start > overlap:
                    end = cut + len(self.boundary)
            chunks.append(text[start:end])
            if end == len(text):
                break
            start = end - overlap
        return chunks


def split(
    documents: list[Document],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    boundary: str = DEFAULT_BOUNDARY,
) -> list[Chunk]:
    """Split *documents* into :class:`Chunk` objects ready for embedding.

    Chunks keep their parent's id and metadata plus their ordinal, so every
    retrieved passage can be traced back to its source.

    Raises
    ------
    ConfigError
        If ``chunk_overlap >= chunk_size``.
    """
    splitter = OverlapTextSplitter(chunk_size, chunk_overlap, boundary)
    chunks: list[Chunk] = []
    for doc in documents:
        for ordinal, piece in enumerate(splitter.split_text(doc.text)):
            chunks.append(
                Chunk(
                    id=f"{doc.id}::{ordinal}",
                    document_id=doc.id,
                    text=piece,
                    ordinal=ordinal,
                    overlap_with_previous=ordinal > 0 and chunk_overlap > 0,
                    metadata={**doc.metadata, "chunk_index": str(ordinal)},
                )
            )
    logger.debug("Split %d document(s) into %d chunk(s)", len(documents), len(chunks))
    return chunks

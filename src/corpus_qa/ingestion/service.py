"""Ingest boundary — put scraped pages and uploaded files into the store.

Batches are processed sequentially and strictly: the first failing item
raises and the remaining items are not attempted.  Items already written
stay in the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from corpus_qa.errors import InvalidArgument
from corpus_qa.ingestion.extractor import ContentExtractor, validate_url
from corpus_qa.ingestion.store import DocumentStore, upload_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """A file received from a client: original name and raw bytes."""

    name: str
    data: bytes


class IngestionService:
    """Accept URLs and files and persist them to the document store.

    Parameters
    ----------
    store:
        Shared document store.
    extractor:
        Page-to-text extractor writing into the same store.
    upload_field:
        Prefix of stored upload names (``<field>-<ts>-<hash><ext>``).
    """

    def __init__(
        self,
        store: DocumentStore,
        extractor: ContentExtractor,
        *,
        upload_field: str = "files",
    ) -> None:
        self._store = store
        self._extractor = extractor
        self.upload_field = upload_field

    def submit_urls(self, urls: list[str]) -> list[str]:
        """Scrape every URL in order; return the extracted texts.

        Raises
        ------
        InvalidArgument
            If *urls* is empty or any entry is not an absolute http(s) URL.
        FetchError, NetworkError
            From the first URL that cannot be loaded.
        """
        if not urls:
            raise InvalidArgument("No URLs provided")
        for url in urls:
            validate_url(url)
        texts: list[str] = []
        for url in urls:
            texts.append(self._extractor.extract(url))
        logger.info("Scraped %d URL(s)", len(texts))
        return texts

    def submit_files(self, files: list[UploadedFile]) -> list[str]:
        """Store every file under a collision-resistant name; return the names.

        The loader decides later whether a file's extension is supported.
        """
        if not files:
            raise InvalidArgument("No files provided")
        stored: list[str] = []
        for upload in files:
            if not upload.name:
                raise InvalidArgument("Uploaded file has no name")
            name = upload_filename(upload.name, upload.data, field=self.upload_field)
            self._store.write(name, upload.data)
            stored.append(name)
        logger.info("Stored %d uploaded file(s)", len(stored))
        return stored

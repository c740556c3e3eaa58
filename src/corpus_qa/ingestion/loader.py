"""Document loader — parse every stored file into :class:`Document` records.

Files are dispatched by extension to a :class:`Parser`.  New formats are
added by registering another parser; existing parsers stay untouched::

    loader = DocumentLoader()
    loader.register(".md", TextParser())
    documents = loader.load_all(store)
"""

from __future__ import annotations

import csv
import io
import json
import logging
from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import Any

from langchain_community.document_loaders.parsers.pdf import PyPDFParser
from langchain_core.documents.base import Blob

from corpus_qa.errors import ParseError
from corpus_qa.ingestion.models import Document, DocumentFormat
from corpus_qa.ingestion.store import DocumentStore

logger = logging.getLogger(__name__)


class Parser(ABC):
    """Turn the bytes of one file into one or more documents."""

    format: DocumentFormat

    @abstractmethod
    def parse(self, name: str, data: bytes) -> list[Document]:
        """Parse *data* read from the file *name*.

        Raises
        ------
        ParseError
            If the content is malformed.
        """
        ...

    # -- helpers for subclasses -------------------------------------------------

    def _decode(self, name: str, data: bytes) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(name, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc

    def _document(self, name: str, text: str, record: str | None = None, **extra: str) -> Document:
        doc_id = name if record is None else f"{name}#{record}"
        metadata = {"source": name, "format": self.format.value, **extra}
        return Document(id=doc_id, source=name, text=text, format=self.format, metadata=metadata)


def _record_text(value: Any) -> str:
    """Strings verbatim, anything else as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class TextParser(Parser):
    """Whole file as a single document."""

    format = DocumentFormat.TEXT

    def parse(self, name: str, data: bytes) -> list[Document]:
        return [self._document(name, self._decode(name, data))]


class CsvParser(Parser):
    """One document per row, rendered as ``column: value`` lines."""

    format = DocumentFormat.CSV

    def parse(self, name: str, data: bytes) -> list[Document]:
        text = self._decode(name, data)
        reader = csv.DictReader(io.StringIO(text, newline=""), strict=True)
        documents: list[Document] = []
        try:
            for row_number, row in enumerate(reader, 1):
                if None in row:
                    raise ParseError(name, f"row {row_number} has more fields than the header")
                if any(value is None for value in row.values()):
                    raise ParseError(name, f"row {row_number} has fewer fields than the header")
                body = "\n".join(f"{key.strip()}: {value.strip()}" for key, value in row.items())
                documents.append(self._document(name, body, str(row_number), row=str(row_number)))
        except csv.Error as exc:
            raise ParseError(name, f"line {reader.line_num}: {exc}") from exc
        return documents


class JsonParser(Parser):
    """Top-level array → one document per element, otherwise one document."""

    format = DocumentFormat.JSON

    def parse(self, name: str, data: bytes) -> list[Document]:
        try:
            payload = json.loads(self._decode(name, data))
        except json.JSONDecodeError as exc:
            raise ParseError(name, f"invalid JSON at line {exc.lineno}: {exc.msg}") from exc

        if isinstance(payload, list):
            return [
                self._document(name, _record_text(item), str(i), index=str(i))
                for i, item in enumerate(payload)
            ]
        return [self._document(name, _record_text(payload))]


class JsonLinesParser(Parser):
    """One document per non-blank line."""

    format = DocumentFormat.JSONL

    def parse(self, name: str, data: bytes) -> list[Document]:
        documents: list[Document] = []
        # JSON strings may hold U+2028 and friends unescaped; only "\n" ends a record.
        for lineno, line in enumerate(self._decode(name, data).split("\n"), 1):
            line = line.removesuffix("\r")
            if not line.strip():
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ParseError(name, f"invalid JSON on line {lineno}: {exc.msg}") from exc
            documents.append(self._document(name, _record_text(item), str(lineno), line=str(lineno)))
        return documents


class PdfParser(Parser):
    """One document per page, text extracted with pypdf."""

    format = DocumentFormat.PDF

    def __init__(self) -> None:
        self._parser = PyPDFParser()

    def parse(self, name: str, data: bytes) -> list[Document]:
        blob = Blob.from_data(data, path=name, mime_type="application/pdf")
        try:
            pages = list(self._parser.lazy_parse(blob))
        except Exception as exc:  # pypdf has no single base error for malformed input
            raise ParseError(name, f"unreadable PDF: {exc}") from exc
        return [
            self._document(name, page.page_content, f"page{i}", page=str(i))
            for i, page in enumerate(pages, 1)
        ]


def default_registry() -> dict[str, Parser]:
    """Extension → parser mapping for the supported formats."""
    return {
        ".txt": TextParser(),
        ".csv": CsvParser(),
        ".json": JsonParser(),
        ".jsonl": JsonLinesParser(),
        ".pdf": PdfParser(),
    }


class DocumentLoader:
    """Load every supported file in a :class:`DocumentStore`.

    Parameters
    ----------
    registry:
        Extension → parser mapping.  Defaults to :func:`default_registry`.
    """

    def __init__(self, registry: dict[str, Parser] | None = None) -> None:
        self._registry: dict[str, Parser] = dict(registry) if registry is not None else default_registry()

    @property
    def extensions(self) -> list[str]:
        return sorted(self._registry)

    def register(self, extension: str, parser: Parser) -> None:
        """Route files ending in *extension* to *parser*."""
        ext = extension.lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        self._registry[ext] = parser

    def parser_for(self, name: str) -> Parser | None:
        return self._registry.get(PurePath(name).suffix.lower())

    def load_all(self, store: DocumentStore) -> list[Document]:
        """Parse every supported file, in file-name order.

        Unsupported extensions are skipped.  The first malformed file aborts
        the whole load with :class:`ParseError`.
        """
        documents: list[Document] = []
        names = sorted(store.list())
        for name in names:
            parser = self.parser_for(name)
            if parser is None:
                logger.info("Skipping %s: unsupported extension", name)
                continue
            parsed = parser.parse(name, store.read(name))
            logger.debug("Parsed %s → %d document(s)", name, len(parsed))
            documents.extend(parsed)

        logger.info("Loaded %d document(s) from %d file(s)", len(documents), len(names))
        return documents

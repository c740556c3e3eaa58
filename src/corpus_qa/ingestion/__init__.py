"""
Ingestion — scraping, document loading and chunking.

Scraped pages and uploaded files land in a :class:`DocumentStore`; the
loader parses them into :class:`Document` records and the chunker cuts
those into overlapping :class:`Chunk` objects for embedding.
"""

from corpus_qa.ingestion.chunker import OverlapTextSplitter, split
from corpus_qa.ingestion.extractor import ContentExtractor, RequestsPageRenderer, extract_text
from corpus_qa.ingestion.loader import DocumentLoader, Parser
from corpus_qa.ingestion.models import Chunk, Document, DocumentFormat
from corpus_qa.ingestion.service import IngestionService, UploadedFile
from corpus_qa.ingestion.store import DocumentStore, FileSystemDocumentStore, InMemoryDocumentStore

__all__ = [
    "Chunk",
    "ContentExtractor",
    "Document",
    "DocumentFormat",
    "DocumentLoader",
    "DocumentStore",
    "FileSystemDocumentStore",
    "InMemoryDocumentStore",
    "IngestionService",
    "OverlapTextSplitter",
    "Parser",
    "RequestsPageRenderer",
    "UploadedFile",
    "extract_text",
    "split",
]

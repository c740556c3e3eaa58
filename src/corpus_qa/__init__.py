"""corpus_qa — scrape and upload documents, then ask questions about them."""

__version__ = "0.1.0"

"""Content extractor — turn a web page into one flat text blob.

The page is obtained through a :class:`PageRenderer`.  The default
:class:`RequestsPageRenderer` downloads the HTML over HTTP; a headless
browser (or anything else that returns the final HTML of a page) can be
plugged in by implementing the same protocol.

Text is gathered tag by tag from :data:`TEXT_TAGS`, **not** in DOM order:
all ``<p>`` texts come first, then all ``<span>`` texts, and so on.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from corpus_qa.errors import FetchError, InvalidArgument, NetworkError
from corpus_qa.ingestion.models import Document, DocumentFormat
from corpus_qa.ingestion.store import DocumentStore, scrape_filename

logger = logging.getLogger(__name__)

TEXT_TAGS: tuple[str, ...] = (
    "p",
    "span",
    "a",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "li",
    "article",
    "section",
    "blockquote",
    "figcaption",
    "td",
    "caption",
    "nav",
    "label",
    "summary",
    "aside",
)
"""Semantic tags whose text is collected, in output order."""

_NON_TEXT_TAGS = ("script", "style", "noscript", "template")

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; corpus-qa/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class PageRenderer(Protocol):
    """Anything that can return the final HTML of a page."""

    def render(self, url: str, *, timeout: float) -> str:
        """Return the page HTML, raising FetchError / NetworkError on failure."""
        ...


class RequestsPageRenderer:
    """Fetch pages with ``requests``.

    Each call opens its own :class:`requests.Session` (cookies, pooled
    connections) and closes it before returning, whether or not the fetch
    succeeded.
    """

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = {**_DEFAULT_HEADERS, **(headers or {})}

    def render(self, url: str, *, timeout: float) -> str:
        with requests.Session() as session:
            session.headers.update(self.headers)
            try:
                resp = session.get(url, timeout=timeout)
                resp.raise_for_status()
            except requests.Timeout as exc:
                raise FetchError(url, f"timed out after {timeout}s") from exc
            except requests.ConnectionError as exc:
                raise NetworkError(url, str(exc)) from exc
            except requests.HTTPError as exc:
                raise FetchError(url, f"HTTP {exc.response.status_code}") from exc
            except requests.RequestException as exc:
                raise FetchError(url, str(exc)) from exc
            return resp.text


def extract_text(html: str) -> str:
    """Collect the trimmed text of every :data:`TEXT_TAGS` element.

    Elements are visited tag by tag, each tag in document order.  Empty
    strings are dropped and the rest joined with newlines.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(_NON_TEXT_TAGS)):
        tag.decompose()

    texts: list[str] = []
    for name in TEXT_TAGS:
        for element in soup.find_all(name):
            texts.append(element.get_text().strip())
    return "\n".join(t for t in texts if t)


def validate_url(url: str) -> str:
    """Return the hostname of an absolute http(s) *url*; raise InvalidArgument otherwise."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidArgument("URL must be a non-empty string")
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidArgument(f"URL must be absolute http(s), got {url!r}")
    return parsed.hostname


class ContentExtractor:
    """Extract page text and persist it to the document store.

    Parameters
    ----------
    store:
        Destination for the extracted text.
    renderer:
        Page source; defaults to :class:`RequestsPageRenderer`.
    timeout:
        Upper bound in seconds for loading one page.
    versioned:
        Keep every scrape (``<hostname>-<ts>.txt``) instead of overwriting
        ``<hostname>.txt``.
    """

    def __init__(
        self,
        store: DocumentStore,
        renderer: PageRenderer | None = None,
        *,
        timeout: float = 30.0,
        versioned: bool = False,
    ) -> None:
        self._store = store
        self._renderer = renderer or RequestsPageRenderer()
        self.timeout = timeout
        self.versioned = versioned

    def extract(self, url: str) -> str:
        """Fetch *url*, save its text to the store and return the text."""
        return self.extract_document(url).text

    def extract_document(self, url: str) -> Document:
        """Like :meth:`extract` but returns the scraped :class:`Document`."""
        hostname = validate_url(url)
        html = self._renderer.render(url, timeout=self.timeout)
        text = extract_text(html)
        if not text:
            logger.warning("No text extracted from %s", url)

        file_name = scrape_filename(hostname, versioned=self.versioned)
        self._store.write(file_name, text.encode("utf-8"))
        logger.info("Scraped %s → %s (%d chars)", url, file_name, len(text))

        return Document(
            id=file_name,
            source=url,
            text=text,
            format=DocumentFormat.SCRAPED,
            metadata={"source": url, "format": DocumentFormat.SCRAPED.value, "file": file_name},
        )

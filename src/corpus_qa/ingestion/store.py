"""Document store — the shared collection of raw ingested files.

Every ingested source (scraped page, uploaded file) lands here as one named
blob.  The loader reads it back through the same interface, so tests can
swap the filesystem for :class:`InMemoryDocumentStore`.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path, PurePath

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Backend-agnostic document store interface."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def list(self) -> list[str]:
        """Return the names of all stored files, sorted."""
        ...

    @abstractmethod
    def read(self, name: str) -> bytes:
        """Return the raw bytes stored under *name*."""
        ...

    @abstractmethod
    def write(self, name: str, data: bytes) -> None:
        """Store *data* under *name*, replacing any previous content."""
        ...

    # -- optional overrides ---------------------------------------------------

    def fingerprint(self) -> str:
        """Digest that changes whenever any stored file changes.

        The default hashes names and contents; backends with cheaper change
        detection (mtimes) should override it.
        """
        digest = hashlib.sha256()
        for name in self.list():
            digest.update(name.encode())
            digest.update(hashlib.sha256(self.read(name)).digest())
        return digest.hexdigest()

    def is_empty(self) -> bool:
        return not self.list()


class FileSystemDocumentStore(DocumentStore):
    """Flat directory of files.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so concurrent readers never observe a
    half-written file.

    Parameters
    ----------
    root:
        Directory holding the documents; created if missing.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def list(self) -> list[str]:
        return sorted(
            p.name for p in self.root.iterdir() if p.is_file() and not p.name.startswith(".")
        )

    def read(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def write(self, name: str, data: bytes) -> None:
        target = self._path(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_path, target)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        logger.info("Saved %s (%d bytes)", name, len(data))

    def fingerprint(self) -> str:
        digest = hashlib.sha256()
        for name in self.list():
            stat = self._path(name).stat()
            digest.update(f"{name}:{stat.st_mtime_ns}:{stat.st_size}\n".encode())
        return digest.hexdigest()

    def _path(self, name: str) -> Path:
        if PurePath(name).name != name or name in ("", ".", ".."):
            raise ValueError(f"Invalid document name: {name!r}")
        return self.root / name


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store used in tests and throwaway pipelines."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self._files: dict[str, bytes] = dict(files or {})
        self._lock = threading.Lock()

    def list(self) -> list[str]:
        with self._lock:
            return sorted(self._files)

    def read(self, name: str) -> bytes:
        with self._lock:
            return self._files[name]

    def write(self, name: str, data: bytes) -> None:
        with self._lock:
            self._files[name] = bytes(data)


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------


def upload_filename(original_name: str, data: bytes, *, field: str = "files") -> str:
    """Collision-resistant name for an uploaded file.

    ``<field>-<epoch-ms>-<sha256[:8]><ext>`` keeps the original extension
    (which selects the parser) and never clashes for different content.
    """
    ext = PurePath(original_name).suffix.lower()
    stamp = int(time.time() * 1000)
    content_hash = hashlib.sha256(data).hexdigest()[:8]
    return f"{field}-{stamp}-{content_hash}{ext}"


def scrape_filename(hostname: str, *, versioned: bool = False) -> str:
    """Name for a scraped page: ``<hostname>.txt``.

    With *versioned* a millisecond timestamp is appended so repeated scrapes
    of one host are all kept.
    """
    if versioned:
        return f"{hostname}-{int(time.time() * 1000)}.txt"
    return f"{hostname}.txt"

"""Cache of loaded document handles keyed by file path."""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .exceptions import PDFNotFoundError
from .loader import DocumentHandle, open_document
from .utils import PathLike, to_path

__all__ = ["CacheStats", "DocumentCache"]

LOGGER = logging.getLogger(__name__)

Fingerprint = Tuple[int, int]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    loads: int = 0
    evictions: int = 0


def _fingerprint(path: Path, original: str) -> Fingerprint:
    try:
        stat = path.stat()
    except OSError as exc:
        raise PDFNotFoundError(original) from exc
    return stat.st_mtime_ns, stat.st_size


class DocumentCache:
    """
    Least-recently-used cache of :class:`DocumentHandle` objects.

    An entry stays valid while the file's modification time and size are
    unchanged. Concurrent requests for the same path wait on a per-path lock,
    so each version of a file is loaded at most once. Load errors are raised
    to every waiting caller and never stored.
    """

    def __init__(
        self,
        max_entries: int = 16,
        loader: Callable[[PathLike], DocumentHandle] = open_document,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._loader = loader
        self._entries: "OrderedDict[Path, Tuple[Fingerprint, DocumentHandle]]" = OrderedDict()
        # path -> [lock, number of threads holding or waiting on it]
        self._path_locks: Dict[Path, List] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        key = to_path(path).resolve()
        with self._lock:
            return key in self._entries

    @contextmanager
    def _path_lock(self, key: Path) -> Iterator[None]:
        with self._lock:
            entry = self._path_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._path_locks[key]

    def _lookup(self, key: Path, fingerprint: Fingerprint) -> Optional[DocumentHandle]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry[0] != fingerprint:
                LOGGER.debug("Discarding stale cache entry for %s", key)
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return entry[1]

    def _store(self, key: Path, fingerprint: Fingerprint, handle: DocumentHandle) -> None:
        with self._lock:
            self._entries[key] = (fingerprint, handle)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.stats.evictions += 1
                LOGGER.debug("Evicted %s from the document cache", evicted)

    def open(self, path: PathLike) -> DocumentHandle:
        """Return a cached handle for ``path``, loading it when absent or stale."""

        original = str(path)
        key = to_path(path).resolve()
        fingerprint = _fingerprint(key, original)

        handle = self._lookup(key, fingerprint)
        if handle is not None:
            return handle

        with self._path_lock(key):
            handle = self._lookup(key, fingerprint)
            if handle is not None:
                return handle
            with self._lock:
                self.stats.misses += 1
            handle = self._loader(path)
            with self._lock:
                self.stats.loads += 1
            self._store(key, fingerprint, handle)
            return handle

    def invalidate(self, path: Optional[PathLike] = None) -> None:
        """Drop the entry for ``path``, or every entry when no path is given."""

        with self._lock:
            if path is None:
                self._entries.clear()
                return
            self._entries.pop(to_path(path).resolve(), None)

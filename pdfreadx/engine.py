"""Extraction operations built on the loader, page resolver and text decoder."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

from .config import Settings
from .exceptions import EncryptedPDFError, InvalidRangeError, PageDecodeError
from .loader import DocumentHandle, open_document
from .metadata import read_info
from .pages import resolve
from .text import PreparedPage, prepare_or_fail, render_page
from .types import DocumentInfo, DocumentText, PageFailure, PageRef, PageResult
from .utils import PathLike, time_block

if TYPE_CHECKING:
    from .cache import DocumentCache

__all__ = [
    "ExtractionEngine",
    "extract_page_range_text",
    "extract_page_text",
    "extract_text",
    "get_info",
    "validate_range",
]

LOGGER = logging.getLogger(__name__)


def validate_range(start: int, end: int, page_count: int) -> None:
    """Raise :class:`InvalidRangeError` unless ``1 <= start <= end <= page_count``."""

    if start < 1 or start > end or end > page_count:
        raise InvalidRangeError(start, end, page_count)


def _ensure_decodable(handle: DocumentHandle) -> None:
    if handle.is_encrypted:
        raise EncryptedPDFError(
            f"Document is encrypted and requires a password: {handle.path}"
        )


class ExtractionEngine:
    """Text and metadata extraction for PDF files.

    Each call loads the document (or takes it from ``cache``), validates its
    arguments against the page count and decodes the requested pages. Page
    failures in multi-page calls are collected into the returned
    :class:`DocumentText` instead of aborting the call.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional["DocumentCache"] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.cache = cache

    def load(self, path: PathLike) -> DocumentHandle:
        if self.cache is not None:
            return self.cache.open(path)
        return open_document(path)

    def _decode_pages(self, handle: DocumentHandle, refs: Sequence[PageRef]) -> List[PageResult]:
        prepared: List[Union[PreparedPage, PageFailure]] = [
            prepare_or_fail(handle, ref) for ref in refs
        ]
        workers = min(self.settings.workers, len(prepared))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(render_page, prepared))
        else:
            results = [render_page(item) for item in prepared]
        return sorted(results, key=lambda result: result.number)

    def _aggregate(self, handle: DocumentHandle, refs: Sequence[PageRef]) -> DocumentText:
        with time_block(LOGGER, f"Extracting {len(refs)} page(s) of {handle.path.name}"):
            results = self._decode_pages(handle, refs)
        document = DocumentText(tuple(results), separator=self.settings.page_separator)
        if document.failed_pages:
            LOGGER.info(
                "%s: %d of %d page(s) failed: %s",
                handle.path.name,
                len(document.failed_pages),
                len(results),
                document.failed_pages,
            )
        return document

    def whole_document(self, path: PathLike) -> DocumentText:
        """Decode every page; failed pages are listed in the result's note."""

        handle = self.load(path)
        _ensure_decodable(handle)
        return self._aggregate(handle, handle.pages)

    def single_page(self, path: PathLike, page: int) -> str:
        """Decode one page.

        Raises:
            PageNotFoundError: ``page`` is outside ``[1, page_count]``.
            EncryptedPDFError: The document cannot be decoded.
            PageDecodeError: The page content could not be decoded.
        """

        handle = self.load(path)
        ref = resolve(handle, page)
        _ensure_decodable(handle)
        result = render_page(prepare_or_fail(handle, ref))
        if isinstance(result, PageFailure):
            raise PageDecodeError(page, result.reason)
        return result.text

    def page_range(self, path: PathLike, start: int, end: int) -> DocumentText:
        """Decode pages ``start`` to ``end`` inclusive, with the same failure policy as :meth:`whole_document`."""

        handle = self.load(path)
        validate_range(start, end, handle.page_count)
        _ensure_decodable(handle)
        return self._aggregate(handle, handle.pages[start - 1 : end])

    def info(self, path: PathLike) -> DocumentInfo:
        """Return metadata and the encryption flag; succeeds for encrypted documents."""

        return read_info(self.load(path))


_default_engine: Optional[ExtractionEngine] = None


def _engine() -> ExtractionEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = ExtractionEngine(Settings.from_env())
    return _default_engine


def extract_text(path: PathLike) -> DocumentText:
    return _engine().whole_document(path)


def extract_page_text(path: PathLike, page: int) -> str:
    return _engine().single_page(path, page)


def extract_page_range_text(path: PathLike, start: int, end: int) -> DocumentText:
    return _engine().page_range(path, start, end)


def get_info(path: PathLike) -> DocumentInfo:
    return _engine().info(path)

"""Page resolution: flatten the page tree and look pages up by number."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional, Set, Tuple

from pypdf import PdfReader
from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject

from .exceptions import PageNotFoundError, PDFParseError
from .types import ObjectRef, PageRef

if TYPE_CHECKING:
    from .loader import DocumentHandle

__all__ = ["flatten_page_tree", "page_count", "resolve"]

LOGGER = logging.getLogger(__name__)


def _object_ref(obj: Any) -> Optional[ObjectRef]:
    if isinstance(obj, IndirectObject):
        return (obj.idnum, obj.generation)
    reference = getattr(obj, "indirect_reference", None)
    if isinstance(reference, IndirectObject):
        return (reference.idnum, reference.generation)
    return None


def _resolve(obj: Any) -> Any:
    if isinstance(obj, IndirectObject):
        return obj.get_object()
    return obj


def _page_tree_root(reader: PdfReader) -> Any:
    catalog = _resolve(reader.trailer.get("/Root"))
    if not isinstance(catalog, DictionaryObject):
        raise PDFParseError("PDF parsing failed: document catalog is missing")
    pages = catalog.get("/Pages")
    if not isinstance(_resolve(pages), DictionaryObject):
        raise PDFParseError("PDF parsing failed: catalog has no page tree")
    return pages


def flatten_page_tree(reader: PdfReader) -> Tuple[PageRef, ...]:
    """Walk ``/Root /Pages`` depth-first and return the leaves in document order.

    ``/Resources`` are inherited from the nearest ancestor that defines them.
    Intermediate nodes are recognised by ``/Kids`` (or ``/Type /Pages``).

    Raises:
        PDFParseError: On a reference cycle, a non-dictionary node or an
            intermediate node without a ``/Kids`` array.
    """

    root = _page_tree_root(reader)
    pages: List[PageRef] = []
    visited: Set[Any] = set()
    stack: List[Tuple[Any, Optional[DictionaryObject]]] = [(root, None)]

    while stack:
        entry, inherited = stack.pop()
        ref = _object_ref(entry)
        node = _resolve(entry)
        if not isinstance(node, DictionaryObject):
            raise PDFParseError(f"PDF parsing failed: page tree node {ref} is not a dictionary")
        key = ref if ref is not None else id(node)
        if key in visited:
            raise PDFParseError(f"PDF parsing failed: page tree cycle at object {ref}")
        visited.add(key)

        resources = _resolve(node.get("/Resources"))
        if not isinstance(resources, DictionaryObject):
            resources = inherited

        if "/Kids" in node or node.get("/Type") == "/Pages":
            kids = _resolve(node.get("/Kids"))
            if not isinstance(kids, ArrayObject):
                raise PDFParseError(f"PDF parsing failed: page tree node {ref} has no /Kids array")
            for kid in reversed(kids):
                stack.append((kid, resources))
            continue

        pages.append(
            PageRef(
                number=len(pages) + 1,
                object_ref=ref,
                page=node,
                resources=resources,
            )
        )

    declared = _resolve(_resolve(root).get("/Count"))
    if isinstance(declared, int) and declared != len(pages):
        LOGGER.debug("Page tree declares /Count %s but holds %d page(s)", declared, len(pages))
    return tuple(pages)


def page_count(handle: "DocumentHandle") -> int:
    """Number of logical pages in ``handle``."""

    return len(handle.pages)


def resolve(handle: "DocumentHandle", page_number: int) -> PageRef:
    """Return the :class:`PageRef` for the 1-indexed ``page_number``.

    Raises:
        PageNotFoundError: If ``page_number`` is outside ``[1, page_count]``.
    """

    if page_number < 1 or page_number > len(handle.pages):
        raise PageNotFoundError(page_number, len(handle.pages))
    return handle.pages[page_number - 1]

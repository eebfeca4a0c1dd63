"""
Type definitions and dataclasses for pdfreadx.

This module defines the values that flow between the loader, the page
resolver, the text decoder and the extraction engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pypdf.generic import DictionaryObject

ObjectRef = Tuple[int, int]


class EncryptionState(str, Enum):
    """Whether page content can be decoded without credentials."""

    OPEN = "open"
    ENCRYPTED = "encrypted"


@dataclass(frozen=True)
class PageRef:
    """
    One logical page of a loaded document.

    Attributes:
        number: 1-indexed position in document order
        object_ref: ``(idnum, generation)`` of the page object, if indirect
        page: The page dictionary
        resources: Resource dictionary after inheritance from ancestors
    """
    number: int
    object_ref: Optional[ObjectRef]
    page: DictionaryObject = field(repr=False, compare=False)
    resources: Optional[DictionaryObject] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class PageText:
    """Successfully decoded text of one page."""

    number: int
    text: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class PageFailure:
    """Page-level decoding failure that leaves other pages unaffected."""

    number: int
    reason: str

    @property
    def ok(self) -> bool:
        return False


PageResult = Union[PageText, PageFailure]


def _describe_failures(numbers: Sequence[int]) -> str:
    if len(numbers) == 1:
        return f"page {numbers[0]} failed"
    return "pages {} failed".format(", ".join(str(number) for number in numbers))


@dataclass(frozen=True)
class DocumentText:
    """
    Ordered per-page results of a multi-page extraction.

    Attributes:
        pages: One result per requested page, in ascending page order
        separator: Page-boundary marker placed between page texts
    """
    pages: Tuple[PageResult, ...]
    separator: str = "\f"

    @property
    def failed_pages(self) -> List[int]:
        return [result.number for result in self.pages if isinstance(result, PageFailure)]

    @property
    def failures(self) -> List[PageFailure]:
        return [result for result in self.pages if isinstance(result, PageFailure)]

    @property
    def note(self) -> Optional[str]:
        failed = self.failed_pages
        if not failed:
            return None
        return f"[Note: {len(failed)} page(s) could not be extracted: {_describe_failures(failed)}]"

    @property
    def text(self) -> str:
        """Aggregate text: page texts joined by the separator plus a failure note."""
        parts = [result.text for result in self.pages if isinstance(result, PageText) and result.text]
        body = self.separator.join(parts)
        note = self.note
        if note is None:
            return body
        return f"{body}\n\n{note}" if body else note

    def __str__(self) -> str:
        return (
            f"DocumentText(pages={len(self.pages)}, failed={self.failed_pages})"
        )


@dataclass(frozen=True)
class DocumentMetadata:
    """
    Document-level metadata from the Info dictionary.

    Fields absent in the source document stay ``None``; a field that is
    present but empty is the empty string.

    Attributes:
        page_count: Number of logical pages
        title: Document title
        author: Document author
        subject: Document subject
        creator: Application that created the original content
        producer: Application that produced the PDF
        keywords: Keywords string
        creation_date: Parsed /CreationDate
        modification_date: Parsed /ModDate
        pdf_version: Version from the file header
        file_size: File size in bytes
    """
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    keywords: Optional[str] = None
    creation_date: Optional[datetime] = None
    modification_date: Optional[datetime] = None
    pdf_version: Optional[str] = None
    file_size: Optional[int] = None


@dataclass(frozen=True)
class DocumentInfo:
    """Result of the info operation: metadata plus the encryption flag."""

    metadata: DocumentMetadata
    encrypted: bool

    @property
    def page_count(self) -> int:
        return self.metadata.page_count

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view that omits absent fields."""
        data: Dict[str, Any] = {
            "page_count": self.metadata.page_count,
            "encrypted": self.encrypted,
        }
        for name in (
            "title",
            "author",
            "subject",
            "creator",
            "producer",
            "keywords",
            "pdf_version",
            "file_size",
        ):
            value = getattr(self.metadata, name)
            if value is not None:
                data[name] = value
        for name in ("creation_date", "modification_date"):
            value = getattr(self.metadata, name)
            if value is not None:
                data[name] = value.isoformat()
        return data

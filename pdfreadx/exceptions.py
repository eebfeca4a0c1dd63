"""
Custom exceptions for pdfreadx.

Every error carries a ``kind`` naming its place in the error taxonomy so
that dispatch layers can map failures without inspecting messages.
"""

from __future__ import annotations


class PDFReadXError(Exception):
    """Base exception for all pdfreadx errors."""

    kind = "Error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF extraction error occurred."


class PDFNotFoundError(PDFReadXError):
    """Raised when the path does not resolve to a readable file."""

    kind = "NotFound"

    def __init__(self, path: str = "", message: str = "") -> None:
        self.path = path
        super().__init__(message or (f"File not found: {path}" if path else ""))

    @property
    def default_message(self) -> str:
        return "File not found."


class InvalidPDFError(PDFReadXError):
    """Raised when the file lacks the PDF structural signature."""

    kind = "InvalidFormat"

    @property
    def default_message(self) -> str:
        return "Invalid PDF format."


class PDFParseError(PDFReadXError):
    """Raised when the document structure is corrupt beyond recovery."""

    kind = "ParseFailed"

    @property
    def default_message(self) -> str:
        return "PDF parsing failed."


class EncryptedPDFError(PDFReadXError):
    """Raised when content decoding is blocked by the security handler."""

    kind = "DocumentEncrypted"

    @property
    def default_message(self) -> str:
        return "Document is encrypted and requires a password."


class PageNotFoundError(PDFReadXError):
    """Raised when a requested page lies outside ``[1, page_count]``."""

    kind = "PageNotFound"

    def __init__(self, page: int, page_count: int) -> None:
        self.page = page
        self.page_count = page_count
        super().__init__(f"Page {page} does not exist (document has {page_count} pages)")


class InvalidRangeError(PDFReadXError):
    """Raised when a page range is reversed or exceeds the document."""

    kind = "InvalidRange"

    def __init__(self, start: int, end: int, page_count: int) -> None:
        self.start = start
        self.end = end
        self.page_count = page_count
        super().__init__(
            f"Invalid page range {start}-{end}: expected 1 <= start <= end <= {page_count}"
        )


class PageDecodeError(PDFReadXError):
    """Raised when a directly requested page cannot be decoded."""

    kind = "PageDecodeFailed"

    def __init__(self, page: int, reason: str) -> None:
        self.page = page
        self.reason = reason
        super().__init__(f"Failed to extract text from page {page}: {reason}")


class FontEncodingError(PDFReadXError):
    """Raised while building a font decoder from an unusable encoding."""

    kind = "FontEncoding"

    @property
    def default_message(self) -> str:
        return "font encoding unsupported"


class ConfigurationError(PDFReadXError):
    """Raised when settings cannot be parsed."""

    kind = "Configuration"

    @property
    def default_message(self) -> str:
        return "Invalid configuration."

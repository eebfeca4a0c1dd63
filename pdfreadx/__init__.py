"""
pdfreadx - Text and metadata extraction for PDF files.

This library opens PDF documents, flattens their page trees and decodes the
text drawn on each page. Pages whose content cannot be decoded are isolated:
whole-document and page-range extraction skip them and report them in a
note, while single-page extraction raises.

Quick Start:
    >>> from pdfreadx import extract_text, get_info
    >>> print(get_info('/data/report.pdf').page_count)
    >>> print(extract_text('/data/report.pdf').text)

Main Classes:
    - ExtractionEngine: Whole document, single page, page range and info operations
    - ExtractionService: Named tool calls returning response envelopes
    - DocumentCache: Reuse of parsed documents across calls

Data Classes:
    - DocumentText: Ordered per-page results with failure note
    - DocumentInfo: Metadata plus encryption flag
    - PageText / PageFailure: Outcome of one page

Exceptions:
    - PDFReadXError: Base exception
    - PDFNotFoundError, InvalidPDFError, PDFParseError, EncryptedPDFError
    - PageNotFoundError, InvalidRangeError, PageDecodeError

For CLI usage, use the 'pdfreadx' command after installation.
"""

__version__ = "1.0.0"

# Core classes
from pdfreadx.cache import DocumentCache
from pdfreadx.config import Settings
from pdfreadx.engine import (
    ExtractionEngine,
    extract_page_range_text,
    extract_page_text,
    extract_text,
    get_info,
)
from pdfreadx.loader import DocumentHandle, open_document
from pdfreadx.service import TOOLS, ExtractionService, ToolResponse

# Data types
from pdfreadx.types import (
    DocumentInfo,
    DocumentMetadata,
    DocumentText,
    EncryptionState,
    PageFailure,
    PageRef,
    PageText,
)

# Exceptions
from pdfreadx.exceptions import (
    ConfigurationError,
    EncryptedPDFError,
    FontEncodingError,
    InvalidPDFError,
    InvalidRangeError,
    PageDecodeError,
    PageNotFoundError,
    PDFNotFoundError,
    PDFParseError,
    PDFReadXError,
)

__all__ = [
    # Main classes
    "DocumentCache",
    "DocumentHandle",
    "ExtractionEngine",
    "ExtractionService",
    "Settings",
    "TOOLS",
    "ToolResponse",
    # Functions
    "extract_page_range_text",
    "extract_page_text",
    "extract_text",
    "get_info",
    "open_document",
    # Data types
    "DocumentInfo",
    "DocumentMetadata",
    "DocumentText",
    "EncryptionState",
    "PageFailure",
    "PageRef",
    "PageText",
    # Exceptions
    "ConfigurationError",
    "EncryptedPDFError",
    "FontEncodingError",
    "InvalidPDFError",
    "InvalidRangeError",
    "PageDecodeError",
    "PageNotFoundError",
    "PDFNotFoundError",
    "PDFParseError",
    "PDFReadXError",
    # Version info
    "__version__",
]

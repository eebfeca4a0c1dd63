"""Document loading: validate a PDF file and build an immutable handle."""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from pypdf import PasswordType, PdfReader
from pypdf.errors import DependencyError, PdfReadError

from .exceptions import EncryptedPDFError, InvalidPDFError, PDFNotFoundError, PDFParseError, PDFReadXError
from .pages import flatten_page_tree
from .types import EncryptionState, PageRef
from .utils import PathLike, to_path

__all__ = ["DocumentHandle", "open_document", "detect_version"]

LOGGER = logging.getLogger(__name__)

HEADER_MARKER = b"%PDF-"
HEADER_WINDOW = 1024
STARTXREF_MARKER = b"startxref"


@dataclass(frozen=True)
class DocumentHandle:
    """
    Parsed representation of one PDF file.

    The handle is never mutated after :func:`open_document` returns it. The
    wrapped :class:`~pypdf.PdfReader` caches resolved objects internally, so
    every access to it goes through ``lock``.

    Attributes:
        path: Path the document was loaded from
        reader: Underlying pypdf reader
        version: Version string from the file header
        encryption: Whether content can be decoded
        pages: Flattened page tree in document order
        file_size: Size of the file in bytes
    """
    path: Path
    reader: PdfReader = field(repr=False)
    version: str
    encryption: EncryptionState
    pages: Tuple[PageRef, ...] = field(repr=False)
    file_size: int
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def is_encrypted(self) -> bool:
        return self.encryption is EncryptionState.ENCRYPTED


def detect_version(data: bytes) -> str:
    """Return the header version, raising :class:`InvalidPDFError` without one."""

    index = data.find(HEADER_MARKER, 0, HEADER_WINDOW)
    if index == -1:
        raise InvalidPDFError("Invalid PDF format: missing %PDF- header")
    line = data[index + len(HEADER_MARKER) : index + len(HEADER_MARKER) + 16].splitlines()
    version = line[0].decode("latin-1", "ignore").strip() if line else ""
    return version or "1.0"


def _read_bytes(path: Path, original: str) -> bytes:
    if not path.is_file():
        raise PDFNotFoundError(original)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise PDFNotFoundError(original, f"File not readable: {original} ({exc})") from exc


def _open_reader(raw_bytes: bytes, original: str) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(raw_bytes), strict=False)
    except (DependencyError, NotImplementedError) as exc:
        if b"/Encrypt" in raw_bytes:
            raise EncryptedPDFError(f"Unsupported security handler in {original}: {exc}") from exc
        raise PDFParseError(f"PDF parsing failed: {original}: {exc}") from exc
    except PdfReadError as exc:
        raise PDFParseError(f"Corrupted cross-reference data in {original}: {exc}") from exc
    except Exception as exc:  # pypdf raises a variety of types on damaged input
        raise PDFParseError(f"Unexpected error reading {original}: {exc}") from exc


def _encryption_state(reader: PdfReader, original: str) -> EncryptionState:
    if not reader.is_encrypted:
        return EncryptionState.OPEN
    try:
        unlocked = reader.decrypt("") != PasswordType.NOT_DECRYPTED
    except DependencyError as exc:
        raise EncryptedPDFError(f"Unsupported security handler in {original}: {exc}") from exc
    if unlocked:
        LOGGER.debug("Decrypted %s with the empty user password", original)
        return EncryptionState.OPEN
    # Structure dictionaries hold no encrypted strings, so the page tree can
    # be walked without the key. Strings read this way are ciphertext.
    reader._override_encryption = True  # type: ignore[attr-defined]
    return EncryptionState.ENCRYPTED


def open_document(path: PathLike) -> DocumentHandle:
    """Open ``path`` and return a fully validated :class:`DocumentHandle`.

    Raises:
        PDFNotFoundError: The path is not a readable file.
        InvalidPDFError: The PDF header or cross-reference marker is absent.
        PDFParseError: The cross-reference data, catalog or page tree is corrupt.
        EncryptedPDFError: The security handler cannot be processed at all.
    """

    original = str(path)
    pdf_path = to_path(path)
    LOGGER.debug("Opening %s", pdf_path)

    raw_bytes = _read_bytes(pdf_path, original)
    version = detect_version(raw_bytes)
    if STARTXREF_MARKER not in raw_bytes:
        raise InvalidPDFError("Invalid PDF format: missing cross-reference (startxref) marker")

    reader = _open_reader(raw_bytes, original)
    try:
        encryption = _encryption_state(reader, original)
    except PDFReadXError:
        raise
    except Exception as exc:
        raise PDFParseError(f"Unreadable security handler in {original}: {exc}") from exc

    try:
        pages = flatten_page_tree(reader)
    except PDFReadXError:
        raise
    except Exception as exc:
        if encryption is EncryptionState.ENCRYPTED:
            raise EncryptedPDFError(
                f"Page tree of {original} cannot be read without the password: {exc}"
            ) from exc
        raise PDFParseError(f"PDF parsing failed: {original}: {exc}") from exc

    handle = DocumentHandle(
        path=pdf_path,
        reader=reader,
        version=version,
        encryption=encryption,
        pages=pages,
        file_size=len(raw_bytes),
    )
    LOGGER.info(
        "Loaded %s: %d page(s), PDF %s, %s",
        pdf_path.name,
        handle.page_count,
        version,
        encryption.value,
    )
    return handle

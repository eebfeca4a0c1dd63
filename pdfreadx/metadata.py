"""Document metadata from pypdf's view of the Info dictionary."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pypdf import DocumentInformation

from .loader import DocumentHandle
from .types import DocumentInfo, DocumentMetadata
from .utils import parse_pdf_date

__all__ = ["read_info", "read_metadata"]

LOGGER = logging.getLogger(__name__)

STRING_FIELDS: Dict[str, str] = {
    "title": "/Title",
    "author": "/Author",
    "subject": "/Subject",
    "creator": "/Creator",
    "producer": "/Producer",
    "keywords": "/Keywords",
}
DATE_FIELDS: Dict[str, str] = {
    "creation_date": "creation_date_raw",
    "modification_date": "modification_date_raw",
}


def _document_information(handle: DocumentHandle) -> Optional[DocumentInformation]:
    try:
        return handle.reader.metadata
    except Exception as exc:  # a broken /Info reference only loses metadata
        LOGGER.warning("Info dictionary of %s could not be read: %s", handle.path.name, exc)
        return None


def _read_field(handle: DocumentHandle, info: DocumentInformation, name: str, key: str) -> Optional[str]:
    try:
        value = getattr(info, name, None)
        if value is None:
            # pypdf reports an empty entry as missing
            raw = info.get(key)
            value = raw if isinstance(raw, str) else None
    except Exception as exc:  # same as above, scoped to one entry
        LOGGER.warning("Metadata entry %s of %s could not be read: %s", key, handle.path.name, exc)
        return None
    return None if value is None else str(value)


def _read_date(handle: DocumentHandle, info: DocumentInformation, attribute: str) -> Optional[str]:
    try:
        raw = getattr(info, attribute)
    except Exception as exc:
        LOGGER.warning("Metadata entry %s of %s could not be read: %s", attribute, handle.path.name, exc)
        return None
    return str(raw) if isinstance(raw, str) else None


def read_metadata(handle: DocumentHandle) -> DocumentMetadata:
    """Collect :class:`DocumentMetadata` for ``handle``.

    String entries of an encrypted document are ciphertext without the key,
    so only the structural fields are reported for it.
    """

    values: Dict[str, Any] = {}
    if not handle.is_encrypted:
        with handle.lock:
            info = _document_information(handle)
            if info is not None:
                for name, key in STRING_FIELDS.items():
                    values[name] = _read_field(handle, info, name, key)
                for name, attribute in DATE_FIELDS.items():
                    values[name] = parse_pdf_date(_read_date(handle, info, attribute))

    return DocumentMetadata(
        page_count=handle.page_count,
        pdf_version=handle.version,
        file_size=handle.file_size,
        **values,
    )


def read_info(handle: DocumentHandle) -> DocumentInfo:
    return DocumentInfo(metadata=read_metadata(handle), encrypted=handle.is_encrypted)

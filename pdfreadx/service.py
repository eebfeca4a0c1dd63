"""Tool dispatch layer: argument checking, engine calls and response envelopes.

The service exposes four tools (``read_pdf``, ``read_pdf_page``,
``read_pdf_pages`` and ``get_pdf_info``) that any transport can call by name
with a mapping of arguments. Every call returns a :class:`ToolResponse`;
exceptions never escape :meth:`ExtractionService.call`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .cache import DocumentCache
from .config import Settings
from .engine import ExtractionEngine
from .exceptions import PDFReadXError

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "METHOD_NOT_FOUND",
    "TOOLS",
    "ExtractionService",
    "ToolError",
    "ToolResponse",
    "ToolSpec",
]

LOGGER = logging.getLogger(__name__)

INVALID_PARAMS = "invalid_params"
INTERNAL_ERROR = "internal_error"
METHOD_NOT_FOUND = "method_not_found"

CALLER_ERROR_KINDS = frozenset(
    {"NotFound", "InvalidFormat", "PageNotFound", "InvalidRange", "DocumentEncrypted"}
)

SERVER_INSTRUCTIONS = (
    "Tools for extracting text and metadata from PDF files. Use 'read_pdf' to "
    "extract all text, 'read_pdf_page' for a single page, 'read_pdf_pages' for a "
    "range of pages (ideal for distributed parsing), or 'get_pdf_info' for "
    "document metadata and page count."
)

_FILE_PATH = {
    "type": "string",
    "description": "Absolute path to the PDF file (relative paths are not supported)",
}


def _schema(title: str, tool: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "title": title,
        "description": f"Parameters for the {tool} tool",
        "properties": properties,
        "required": list(properties),
    }


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


TOOLS: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            "read_pdf",
            "Extract all text content from a PDF file",
            _schema("ReadPdfParams", "read_pdf", {"file_path": _FILE_PATH}),
        ),
        ToolSpec(
            "read_pdf_page",
            "Extract text content from a specific page of a PDF file",
            _schema(
                "ReadPdfPageParams",
                "read_pdf_page",
                {
                    "file_path": _FILE_PATH,
                    "page": {"type": "integer", "description": "Page number (1-indexed)", "minimum": 1},
                },
            ),
        ),
        ToolSpec(
            "read_pdf_pages",
            "Extract text content from a range of pages in a PDF file (inclusive). "
            "Ideal for distributed parsing workflows.",
            _schema(
                "ReadPdfPagesParams",
                "read_pdf_pages",
                {
                    "file_path": _FILE_PATH,
                    "start_page": {
                        "type": "integer",
                        "description": "Start page number (1-indexed, inclusive)",
                        "minimum": 1,
                    },
                    "end_page": {
                        "type": "integer",
                        "description": "End page number (1-indexed, inclusive)",
                        "minimum": 1,
                    },
                },
            ),
        ),
        ToolSpec(
            "get_pdf_info",
            "Get PDF document metadata and page count",
            _schema("GetPdfInfoParams", "get_pdf_info", {"file_path": _FILE_PATH}),
        ),
    )
}


@dataclass(frozen=True)
class ToolError:
    """
    Error part of a :class:`ToolResponse`.

    Attributes:
        kind: Error taxonomy entry (``NotFound``, ``InvalidRange``...)
        code: ``invalid_params``, ``internal_error`` or ``method_not_found``
        message: Human readable description
    """
    kind: str
    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: PDFReadXError) -> "ToolError":
        code = INVALID_PARAMS if exc.kind in CALLER_ERROR_KINDS else INTERNAL_ERROR
        return cls(kind=exc.kind, code=code, message=exc.message)


@dataclass(frozen=True)
class ToolResponse:
    ok: bool
    content: Optional[str] = None
    error: Optional[ToolError] = None

    @classmethod
    def success(cls, content: str) -> "ToolResponse":
        return cls(ok=True, content=content)

    @classmethod
    def failure(cls, kind: str, code: str, message: str) -> "ToolResponse":
        return cls(ok=False, error=ToolError(kind, code, message))

    def to_dict(self) -> Dict[str, Any]:
        error = None
        if self.error is not None:
            error = {"kind": self.error.kind, "code": self.error.code, "message": self.error.message}
        return {"ok": self.ok, "content": self.content, "error": error}


class InvalidArguments(Exception):
    """Raised while checking tool arguments; converted to ``invalid_params``."""


def _require_path(arguments: Mapping[str, Any]) -> str:
    value = arguments.get("file_path")
    if not isinstance(value, str) or not value:
        raise InvalidArguments("file_path must be a non-empty string")
    if not os.path.isabs(value):
        raise InvalidArguments(f"file_path must be an absolute path, got {value!r}")
    return value


def _require_int(arguments: Mapping[str, Any], name: str) -> int:
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArguments(f"{name} must be an integer")
    return value


@dataclass
class ExtractionService:
    """Runs tool calls against an :class:`ExtractionEngine`.

    When ``settings.cache_size`` is positive the engine shares a
    :class:`DocumentCache`, so repeated calls for one file parse it once.
    """

    settings: Settings = field(default_factory=Settings)
    engine: Optional[ExtractionEngine] = None

    def __post_init__(self) -> None:
        if self.engine is None:
            cache = DocumentCache(self.settings.cache_size) if self.settings.cache_size > 0 else None
            self.engine = ExtractionEngine(self.settings, cache=cache)
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], str]] = {
            "read_pdf": self._read_pdf,
            "read_pdf_page": self._read_pdf_page,
            "read_pdf_pages": self._read_pdf_pages,
            "get_pdf_info": self._get_pdf_info,
        }

    @staticmethod
    def list_tools() -> List[Dict[str, Any]]:
        return [spec.to_dict() for spec in TOOLS.values()]

    def _read_pdf(self, arguments: Mapping[str, Any]) -> str:
        return self.engine.whole_document(_require_path(arguments)).text

    def _read_pdf_page(self, arguments: Mapping[str, Any]) -> str:
        path = _require_path(arguments)
        return self.engine.single_page(path, _require_int(arguments, "page"))

    def _read_pdf_pages(self, arguments: Mapping[str, Any]) -> str:
        path = _require_path(arguments)
        start = _require_int(arguments, "start_page")
        end = _require_int(arguments, "end_page")
        return self.engine.page_range(path, start, end).text

    def _get_pdf_info(self, arguments: Mapping[str, Any]) -> str:
        info = self.engine.info(_require_path(arguments))
        return json.dumps(info.to_dict(), indent=2, ensure_ascii=False)

    def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResponse:
        """Run tool ``name`` and wrap its result or error in a :class:`ToolResponse`."""

        handler = self._handlers.get(name)
        if handler is None:
            return ToolResponse.failure("UnknownTool", METHOD_NOT_FOUND, f"Unknown tool: {name}")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            return ToolResponse.failure("InvalidArguments", INVALID_PARAMS, "arguments must be an object")

        LOGGER.debug("Calling %s with %s", name, dict(arguments))
        try:
            return ToolResponse.success(handler(arguments))
        except InvalidArguments as exc:
            return ToolResponse.failure("InvalidArguments", INVALID_PARAMS, str(exc))
        except PDFReadXError as exc:
            LOGGER.info("%s failed with %s: %s", name, exc.kind, exc.message)
            return ToolResponse(ok=False, error=ToolError.from_exception(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected failure in %s", name)
            return ToolResponse.failure("Internal", INTERNAL_ERROR, f"Unexpected error: {exc}")

    def handle_request(self, request: Any) -> Dict[str, Any]:
        """Answer one decoded ``{"id", "tool", "arguments"}`` request with a response dictionary."""

        if not isinstance(request, Mapping):
            response = ToolResponse.failure("InvalidRequest", INVALID_PARAMS, "request must be an object")
            return {"id": None, **response.to_dict()}
        tool = request.get("tool")
        if not isinstance(tool, str):
            response = ToolResponse.failure("InvalidRequest", INVALID_PARAMS, "request has no tool name")
        else:
            response = self.call(tool, request.get("arguments"))
        return {"id": request.get("id"), **response.to_dict()}

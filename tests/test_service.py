from __future__ import annotations

import json

import pytest

from pdfreadx.config import Settings
from pdfreadx.service import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    TOOLS,
    ExtractionService,
    ToolResponse,
)


@pytest.fixture()
def service() -> ExtractionService:
    return ExtractionService(Settings(cache_size=4))


def test_tools_table():
    assert set(TOOLS) == {"read_pdf", "read_pdf_page", "read_pdf_pages", "get_pdf_info"}
    assert TOOLS["read_pdf_pages"].input_schema["required"] == ["file_path", "start_page", "end_page"]
    listed = ExtractionService.list_tools()
    assert [tool["name"] for tool in listed] == list(TOOLS)
    assert all("inputSchema" in tool for tool in listed)


def test_read_pdf(service, ten_page_pdf):
    response = service.call("read_pdf", {"file_path": str(ten_page_pdf)})

    assert response.ok
    assert response.error is None
    assert response.content.count("\f") == 9
    assert response.content.startswith("Page 1 heading")


def test_read_pdf_notes_failed_pages(service, broken_page_pdf):
    response = service.call("read_pdf", {"file_path": str(broken_page_pdf)})

    assert response.ok
    assert response.content.endswith("[Note: 1 page(s) could not be extracted: page 7 failed]")


def test_read_pdf_page(service, ten_page_pdf):
    response = service.call("read_pdf_page", {"file_path": str(ten_page_pdf), "page": 4})

    assert response == ToolResponse.success("Page 4 heading\nBody of page 4")


def test_read_pdf_pages(service, ten_page_pdf):
    response = service.call("read_pdf_pages", {"file_path": str(ten_page_pdf), "start_page": 2, "end_page": 3})

    assert response.content == "Page 2 heading\nBody of page 2\fPage 3 heading\nBody of page 3"


def test_get_pdf_info(service, encrypted_pdf):
    response = service.call("get_pdf_info", {"file_path": str(encrypted_pdf)})

    assert response.ok
    info = json.loads(response.content)
    assert info["page_count"] == 10
    assert info["encrypted"] is True
    assert "title" not in info


@pytest.mark.parametrize(
    "tool, arguments, kind, code",
    [
        ("read_pdf_page", {"page": 11}, "PageNotFound", INVALID_PARAMS),
        ("read_pdf_pages", {"start_page": 3, "end_page": 2}, "InvalidRange", INVALID_PARAMS),
        ("read_pdf_page", {"page": 7}, "PageDecodeFailed", INTERNAL_ERROR),
    ],
)
def test_page_errors_are_mapped(service, broken_page_pdf, tool, arguments, kind, code):
    response = service.call(tool, {"file_path": str(broken_page_pdf), **arguments})

    assert not response.ok
    assert response.content is None
    assert response.error.kind == kind
    assert response.error.code == code


def test_document_errors_are_mapped(service, missing_pdf, not_a_pdf, corrupt_pdf, encrypted_pdf):
    cases = [
        (missing_pdf, "read_pdf", "NotFound", INVALID_PARAMS),
        (not_a_pdf, "get_pdf_info", "InvalidFormat", INVALID_PARAMS),
        (corrupt_pdf, "read_pdf", "ParseFailed", INTERNAL_ERROR),
        (encrypted_pdf, "read_pdf", "DocumentEncrypted", INVALID_PARAMS),
    ]
    for path, tool, kind, code in cases:
        response = service.call(tool, {"file_path": str(path)})
        assert (response.error.kind, response.error.code) == (kind, code)


@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"file_path": 42},
        {"file_path": "relative/report.pdf"},
    ],
)
def test_invalid_file_path_is_rejected(service, arguments):
    response = service.call("read_pdf", arguments)

    assert response.error.kind == "InvalidArguments"
    assert response.error.code == INVALID_PARAMS


@pytest.mark.parametrize("page", ["3", 2.5, True, None])
def test_non_integer_page_is_rejected(service, ten_page_pdf, page):
    response = service.call("read_pdf_page", {"file_path": str(ten_page_pdf), "page": page})

    assert response.error.code == INVALID_PARAMS


def test_unknown_tool(service):
    response = service.call("write_pdf", {})

    assert response.error.code == METHOD_NOT_FOUND


def test_handle_request_echoes_id(service, ten_page_pdf):
    response = service.handle_request(
        {"id": 7, "tool": "get_pdf_info", "arguments": {"file_path": str(ten_page_pdf)}}
    )

    assert response["id"] == 7
    assert response["ok"] is True
    assert response["error"] is None
    assert json.loads(response["content"])["title"] == "Quarterly Report"


@pytest.mark.parametrize("request_body", [[], {"id": 1}, {"id": 1, "tool": 5}])
def test_handle_request_rejects_malformed_requests(service, request_body):
    response = service.handle_request(request_body)

    assert response["ok"] is False
    assert response["error"]["code"] == INVALID_PARAMS


def test_service_shares_cache_across_calls(service, ten_page_pdf):
    service.call("get_pdf_info", {"file_path": str(ten_page_pdf)})
    service.call("read_pdf_page", {"file_path": str(ten_page_pdf), "page": 1})

    assert service.engine.cache.stats.loads == 1


def test_cache_disabled_when_size_is_zero():
    assert ExtractionService(Settings(cache_size=0)).engine.cache is None

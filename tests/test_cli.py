from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from pdfreadx.cli import cli


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def test_text_command(runner, ten_page_pdf):
    result = runner.invoke(cli, ["text", str(ten_page_pdf)])

    assert result.exit_code == 0
    assert result.output.startswith("Page 1 heading\nBody of page 1\f")


def test_text_command_reports_failed_pages(runner, broken_page_pdf):
    result = runner.invoke(cli, ["text", str(broken_page_pdf)])

    assert result.exit_code == 0
    assert "page 7 failed" in result.output


def test_page_command(runner, ten_page_pdf):
    result = runner.invoke(cli, ["page", str(ten_page_pdf), "5"])

    assert result.exit_code == 0
    assert result.output == "Page 5 heading\nBody of page 5\n"


def test_pages_command_with_separator(runner, ten_page_pdf):
    result = runner.invoke(cli, ["--separator", "\\n=====\\n", "pages", str(ten_page_pdf), "1", "2"])

    assert result.exit_code == 0
    assert "Body of page 1\n=====\nPage 2 heading" in result.output


def test_relative_path_is_made_absolute(runner, ten_page_pdf, monkeypatch):
    monkeypatch.chdir(ten_page_pdf.parent)

    result = runner.invoke(cli, ["page", ten_page_pdf.name, "1"])

    assert result.exit_code == 0
    assert "Page 1 heading" in result.output


def test_page_out_of_range_fails(runner, ten_page_pdf):
    result = runner.invoke(cli, ["page", str(ten_page_pdf), "11"])

    assert result.exit_code == 1
    assert "Page 11 does not exist" in result.output


def test_reversed_range_fails(runner, ten_page_pdf):
    result = runner.invoke(cli, ["pages", str(ten_page_pdf), "3", "2"])

    assert result.exit_code == 1
    assert "Invalid page range" in result.output


def test_missing_file_fails(runner, missing_pdf):
    result = runner.invoke(cli, ["text", str(missing_pdf)])

    assert result.exit_code == 1
    assert "File not found" in result.output


def test_info_table(runner, ten_page_pdf):
    result = runner.invoke(cli, ["info", str(ten_page_pdf)])

    assert result.exit_code == 0
    assert "Number of Pages" in result.output
    assert "Quarterly Report" in result.output


def test_info_json(runner, encrypted_pdf):
    result = runner.invoke(cli, ["info", str(encrypted_pdf), "--json"])

    assert result.exit_code == 0
    info = json.loads(result.output)
    assert info["page_count"] == 10
    assert info["encrypted"] is True


def test_tools_command(runner):
    result = runner.invoke(cli, ["tools"])

    assert result.exit_code == 0
    assert [tool["name"] for tool in json.loads(result.output)] == [
        "read_pdf",
        "read_pdf_page",
        "read_pdf_pages",
        "get_pdf_info",
    ]


def test_serve_answers_each_line(runner, ten_page_pdf):
    requests = "\n".join(
        [
            json.dumps({"id": 1, "tool": "read_pdf_page", "arguments": {"file_path": str(ten_page_pdf), "page": 2}}),
            "",
            "not json",
            json.dumps({"id": 3, "tool": "read_pdf_pages", "arguments": {"file_path": str(ten_page_pdf), "start_page": 4, "end_page": 1}}),
        ]
    )

    result = runner.invoke(cli, ["serve"], input=requests + "\n")

    assert result.exit_code == 0
    responses = [json.loads(line) for line in result.output.splitlines()]
    assert len(responses) == 3
    assert responses[0] == {"id": 1, "ok": True, "content": "Page 2 heading\nBody of page 2", "error": None}
    assert responses[1]["error"]["code"] == "parse_error"
    assert responses[2]["id"] == 3
    assert responses[2]["error"]["kind"] == "InvalidRange"


def test_invalid_environment_fails(runner, ten_page_pdf, monkeypatch):
    monkeypatch.setenv("PDFREADX_WORKERS", "zero")

    result = runner.invoke(cli, ["text", str(ten_page_pdf)])

    assert result.exit_code == 1
    assert "PDFREADX_WORKERS" in result.output


def test_workers_option(runner, broken_page_pdf):
    serial = runner.invoke(cli, ["text", str(broken_page_pdf)])
    parallel = runner.invoke(cli, ["--workers", "3", "text", str(broken_page_pdf)])

    assert parallel.exit_code == 0
    assert parallel.output == serial.output


def test_serve_reads_stdin_without_deprecation_warnings(runner, recwarn):
    result = runner.invoke(cli, ["serve"], input="\n")

    assert result.exit_code == 0
    assert result.output == ""
    assert not [w for w in recwarn if issubclass(w.category, DeprecationWarning) and "click" in str(w.message).lower()]

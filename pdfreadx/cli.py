"""
Command-line interface for pdfreadx.
"""

import json
import os
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pdfreadx import __version__
from pdfreadx.config import Settings
from pdfreadx.exceptions import ConfigurationError
from pdfreadx.service import ExtractionService
from pdfreadx.utils import configure_logging, format_file_size

console = Console()
err_console = Console(stderr=True)


def _fail(message):
    err_console.print(f"[bold red]✗ Error:[/bold red] {escape(str(message))}")
    sys.exit(1)


def _absolute(path):
    return os.path.abspath(os.path.expanduser(path))


def _service(ctx):
    return ctx.obj["service"]


@click.group()
@click.version_option(version=__version__)
@click.option('--workers', '-w', type=int, default=None, help='Threads used to decode pages of one document')
@click.option('--separator', default=None, help='Page separator for multi-page output (\\n and \\f escapes allowed)')
@click.option(
    '--log-level',
    type=click.Choice(['CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG'], case_sensitive=False),
    default=None,
    help='Logging level (defaults to PDFREADX_LOG_LEVEL or WARNING)'
)
@click.pass_context
def cli(ctx, workers, separator, log_level):
    """
    pdfreadx - Extract text and metadata from PDF files.
    """
    try:
        settings = Settings.from_env().with_overrides(
            workers=workers,
            page_separator=separator,
            log_level=log_level,
        )
    except ConfigurationError as e:
        _fail(e)
    configure_logging(settings.log_level)
    ctx.obj = {"settings": settings, "service": ExtractionService(settings)}


def _run(ctx, tool, arguments):
    response = _service(ctx).call(tool, arguments)
    if not response.ok:
        _fail(response.error.message)
    return response.content


@cli.command(name="text")
@click.argument('input_pdf', type=click.Path())
@click.pass_context
def text(ctx, input_pdf):
    """
    Extract the text of every page.

    Pages that cannot be decoded are skipped and listed in a note at the end.

    Example:

        pdfreadx text report.pdf
    """
    click.echo(_run(ctx, "read_pdf", {"file_path": _absolute(input_pdf)}))


@cli.command(name="page")
@click.argument('input_pdf', type=click.Path())
@click.argument('page', type=int)
@click.pass_context
def page(ctx, input_pdf, page):
    """
    Extract the text of one page (1-indexed).

    Example:

        pdfreadx page report.pdf 3
    """
    click.echo(_run(ctx, "read_pdf_page", {"file_path": _absolute(input_pdf), "page": page}))


@cli.command(name="pages")
@click.argument('input_pdf', type=click.Path())
@click.argument('start', type=int)
@click.argument('end', type=int)
@click.pass_context
def pages(ctx, input_pdf, start, end):
    """
    Extract the text of pages START to END inclusive.

    Example:

        pdfreadx pages report.pdf 10 19
    """
    arguments = {"file_path": _absolute(input_pdf), "start_page": start, "end_page": end}
    click.echo(_run(ctx, "read_pdf_pages", arguments))


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path())
@click.option('--json', 'as_json', is_flag=True, help='Print the metadata as JSON')
@click.pass_context
def show_info(ctx, input_pdf, as_json):
    """
    Display metadata and page count of a PDF file.

    Example:

        pdfreadx info report.pdf --json
    """
    path = _absolute(input_pdf)
    content = _run(ctx, "get_pdf_info", {"file_path": path})
    if as_json:
        click.echo(content)
        return

    info = json.loads(content)
    table = Table(title=f"PDF Information: {escape(os.path.basename(path))}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Path", escape(path))
    if "file_size" in info:
        table.add_row("File Size", format_file_size(info["file_size"]))
    if "pdf_version" in info:
        table.add_row("PDF Version", info["pdf_version"])
    table.add_row("Number of Pages", str(info["page_count"]))
    table.add_row("Encrypted", "Yes" if info["encrypted"] else "No")
    for key, label in (
        ("title", "Title"),
        ("author", "Author"),
        ("subject", "Subject"),
        ("creator", "Creator"),
        ("producer", "Producer"),
        ("keywords", "Keywords"),
        ("creation_date", "Created"),
        ("modification_date", "Modified"),
    ):
        if key in info:
            table.add_row(label, escape(str(info[key])))

    console.print()
    console.print(table)
    console.print()


@cli.command(name="tools")
@click.pass_context
def tools(ctx):
    """
    List the tools served by 'pdfreadx serve' with their input schemas.
    """
    click.echo(json.dumps(_service(ctx).list_tools(), indent=2))


@cli.command(name="serve")
@click.pass_context
def serve(ctx):
    """
    Answer JSON-lines tool requests read from stdin.

    Each input line is an object {"id", "tool", "arguments"}; one response
    object {"id", "ok", "content", "error"} is written per line.

    Example:

        echo '{"id": 1, "tool": "get_pdf_info", "arguments": {"file_path": "/tmp/a.pdf"}}' | pdfreadx serve
    """
    service = _service(ctx)
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            response = {
                "id": None,
                "ok": False,
                "content": None,
                "error": {"kind": "InvalidRequest", "code": "parse_error", "message": f"Invalid JSON: {e}"},
            }
        else:
            response = service.handle_request(request)
        click.echo(json.dumps(response, ensure_ascii=False))


if __name__ == "__main__":
    cli()

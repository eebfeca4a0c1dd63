from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence
import sys

import pytest
from pypdf import PdfReader, PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

HELVETICA = "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"
BROKEN_FONT = "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /NoSuchEncoding >>"
DEFAULT_FONTS = {"F1": HELVETICA, "F2": BROKEN_FONT}


class RawPDF:
    """Writes a PDF object by object with a classic cross-reference table."""

    def __init__(self, version: str = "1.7") -> None:
        self.version = version
        self.objects: List[Optional[bytes]] = []

    def reserve(self) -> int:
        self.objects.append(None)
        return len(self.objects)

    def set(self, number: int, body) -> None:
        self.objects[number - 1] = body.encode("latin-1") if isinstance(body, str) else body

    def add(self, body) -> int:
        number = self.reserve()
        self.set(number, body)
        return number

    def stream(self, data: bytes, extra: str = "") -> int:
        header = f"<< /Length {len(data)} {extra}>>\nstream\n".encode("latin-1")
        return self.add(header + data + b"\nendstream")

    def build(self, root: int, info: Optional[int] = None) -> bytes:
        out = bytearray(f"%PDF-{self.version}\n%\xe2\xe3\xcf\xd3\n".encode("latin-1"))
        offsets = []
        for number, body in enumerate(self.objects, start=1):
            assert body is not None, f"object {number} was reserved but never set"
            offsets.append(len(out))
            out += f"{number} 0 obj\n".encode("latin-1") + body + b"\nendobj\n"
        xref_offset = len(out)
        out += f"xref\n0 {len(self.objects) + 1}\n".encode("latin-1")
        out += b"0000000000 65535 f \n"
        for offset in offsets:
            out += f"{offset:010d} 00000 n \n".encode("latin-1")
        trailer = f"/Size {len(self.objects) + 1} /Root {root} 0 R"
        if info is not None:
            trailer += f" /Info {info} 0 R"
        out += f"trailer\n<< {trailer} >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("latin-1")
        return bytes(out)


def refs(numbers: Sequence[int]) -> str:
    return " ".join(f"{number} 0 R" for number in numbers)


def pdf_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return f"({escaped})"


def text_content(lines: Sequence[str], font: str = "F1", size: int = 12, leading: int = 14) -> bytes:
    """Content stream drawing ``lines`` one below the other."""

    ops = [f"BT /{font} {size} Tf 72 720 Td"]
    for index, line in enumerate(lines):
        if index:
            ops.append(f"0 -{leading} Td")
        ops.append(f"{pdf_string(line)} Tj")
    ops.append("ET")
    return "\n".join(ops).encode("latin-1")


def info_dictionary(info: Mapping[str, str]) -> str:
    return "<< " + " ".join(f"/{key} {pdf_string(value)}" for key, value in info.items()) + " >>"


def build_text_pdf(
    contents: Sequence[bytes],
    *,
    fonts: Optional[Mapping[str, str]] = None,
    nested: bool = False,
    info: Optional[Mapping[str, str]] = None,
    version: str = "1.7",
) -> bytes:
    """Build a document with one page per content stream.

    Fonts live in ``/Resources`` on the page tree root and are inherited by
    every page. With ``nested`` the pages are grouped three per intermediate
    node.
    """

    pdf = RawPDF(version)
    fonts = DEFAULT_FONTS if fonts is None else fonts
    font_entries = " ".join(f"/{name} {pdf.add(body)} 0 R" for name, body in fonts.items())
    resources = f"<< /Font << {font_entries} >> >>"
    catalog = pdf.reserve()
    root = pdf.reserve()

    size = 3 if nested else max(len(contents), 1)
    root_kids: List[int] = []
    for first in range(0, len(contents), size):
        parent = pdf.reserve() if nested else root
        kids = []
        for data in contents[first : first + size]:
            stream = pdf.stream(data)
            kids.append(
                pdf.add(
                    f"<< /Type /Page /Parent {parent} 0 R /MediaBox [0 0 612 792] /Contents {stream} 0 R >>"
                )
            )
        if nested:
            pdf.set(parent, f"<< /Type /Pages /Parent {root} 0 R /Kids [{refs(kids)}] /Count {len(kids)} >>")
            root_kids.append(parent)
        else:
            root_kids.extend(kids)

    pdf.set(root, f"<< /Type /Pages /Kids [{refs(root_kids)}] /Count {len(contents)} /Resources {resources} >>")
    pdf.set(catalog, f"<< /Type /Catalog /Pages {root} 0 R >>")
    info_number = pdf.add(info_dictionary(info)) if info else None
    return pdf.build(catalog, info_number)


REPORT_INFO = {
    "Title": "Quarterly Report",
    "Author": "Jane Analyst",
    "Subject": "Finance",
    "Creator": "Writer",
    "Producer": "pdfreadx-tests",
    "CreationDate": "D:20240315120000+01'00'",
}


def page_lines(number: int) -> List[str]:
    return [f"Page {number} heading", f"Body of page {number}"]


@pytest.fixture()
def write_pdf(tmp_path: Path) -> Callable[[str, bytes], Path]:
    def _write(filename: str, data: bytes) -> Path:
        path = tmp_path / filename
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture()
def ten_page_pdf(write_pdf) -> Path:
    contents = [text_content(page_lines(number)) for number in range(1, 11)]
    return write_pdf("report.pdf", build_text_pdf(contents, info=REPORT_INFO))


@pytest.fixture()
def broken_page_pdf(write_pdf) -> Path:
    contents = [
        text_content(page_lines(number), font="F2" if number == 7 else "F1")
        for number in range(1, 11)
    ]
    return write_pdf("broken.pdf", build_text_pdf(contents))


def _encrypt(source: Path, destination: Path, user_password: str) -> Path:
    writer = PdfWriter()
    writer.append(PdfReader(source))
    writer.add_metadata({"/Title": "Secret Report"})
    writer.encrypt(user_password=user_password, owner_password="owner", algorithm="RC4-128")
    with destination.open("wb") as stream:
        writer.write(stream)
    return destination


@pytest.fixture()
def encrypted_pdf(ten_page_pdf: Path, tmp_path: Path) -> Path:
    return _encrypt(ten_page_pdf, tmp_path / "locked.pdf", "secret")


@pytest.fixture()
def empty_password_pdf(ten_page_pdf: Path, tmp_path: Path) -> Path:
    return _encrypt(ten_page_pdf, tmp_path / "open-encrypted.pdf", "")


@pytest.fixture()
def not_a_pdf(write_pdf) -> Path:
    return write_pdf("notes.pdf", b"These are plain text notes, not a PDF.\n" * 10)


@pytest.fixture()
def corrupt_pdf(write_pdf) -> Path:
    return write_pdf("corrupt.pdf", b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog\nstartxref\n99999\n%%EOF\n")


@pytest.fixture()
def missing_pdf(tmp_path: Path) -> Path:
    return tmp_path / "does-not-exist.pdf"


@pytest.fixture()
def blank_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=200, height=200)
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


def single_page_pdf(write_pdf, content: bytes, fonts: Optional[Dict[str, str]] = None, name: str = "page.pdf") -> Path:
    return write_pdf(name, build_text_pdf([content], fonts=fonts))

"""Text decoding of page content streams.

Decoding runs in two phases. :func:`prepare_page` gathers everything a page
needs from the document (content bytes, font decoders, Form XObjects) while
holding the handle lock. :func:`interpret_page` then tokenizes the content
and walks the text operators without touching the document again, so
prepared pages can be interpreted concurrently.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Union

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    ContentStream,
    DecodedStreamObject,
    DictionaryObject,
    IndirectObject,
    StreamObject,
    TextStringObject,
)

from .exceptions import FontEncodingError, PDFReadXError
from .fonts import FontDecoder, build_font_decoder
from .types import PageFailure, PageRef, PageResult, PageText

if TYPE_CHECKING:
    from .loader import DocumentHandle

__all__ = [
    "PreparedContent",
    "PreparedPage",
    "decode",
    "interpret_page",
    "normalise_text",
    "prepare_or_fail",
    "prepare_page",
    "render_page",
]

LOGGER = logging.getLogger(__name__)

Matrix = Tuple[float, float, float, float, float, float]
IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

MAX_FORM_DEPTH = 8
LINE_BREAK_RATIO = 0.5
WORD_GAP_RATIO = 0.2
LIGATURES = str.maketrans({"ﬀ": "ff", "ﬁ": "fi", "ﬂ": "fl", "ﬃ": "ffi", "ﬄ": "ffl"})
_CONTROL = {code: None for code in range(32) if code not in (9, 10)}


def _multiply(m1: Matrix, m2: Matrix) -> Matrix:
    a1, b1, c1, d1, e1, f1 = m1
    a2, b2, c2, d2, e2, f2 = m2
    return (
        a1 * a2 + b1 * c2,
        a1 * b2 + b1 * d2,
        c1 * a2 + d1 * c2,
        c1 * b2 + d1 * d2,
        e1 * a2 + f1 * c2 + e2,
        e1 * b2 + f1 * d2 + f2,
    )


def _translate(tx: float, ty: float) -> Matrix:
    return (1.0, 0.0, 0.0, 1.0, tx, ty)


def _resolve(obj: Any) -> Any:
    if isinstance(obj, IndirectObject):
        return obj.get_object()
    return obj


def _matrix(value: Any) -> Matrix:
    value = _resolve(value)
    if isinstance(value, ArrayObject) and len(value) == 6:
        return tuple(float(_resolve(item)) for item in value)  # type: ignore[return-value]
    return IDENTITY


# -- Phase 1: preparation ----------------------------------------------------


@dataclass(frozen=True)
class PreparedContent:
    """Content stream bytes with the resources it refers to, detached from the reader."""

    data: bytes
    fonts: Mapping[str, FontDecoder] = field(default_factory=dict)
    font_errors: Mapping[str, str] = field(default_factory=dict)
    forms: Mapping[str, "PreparedContent"] = field(default_factory=dict)
    matrix: Matrix = IDENTITY


@dataclass(frozen=True)
class PreparedPage:
    number: int
    content: PreparedContent


def _content_bytes(page: DictionaryObject) -> bytes:
    contents = _resolve(page.get("/Contents"))
    if contents is None:
        return b""
    if isinstance(contents, StreamObject):
        return contents.get_data()
    if isinstance(contents, ArrayObject):
        chunks = []
        for item in contents:
            stream = _resolve(item)
            if not isinstance(stream, StreamObject):
                raise ValueError(f"page /Contents entry {item!r} is not a stream")
            chunks.append(stream.get_data())
        return b"\n".join(chunks)
    raise ValueError(f"page /Contents is a {type(contents).__name__}, not a stream")


def _prepare_fonts(resources: Optional[DictionaryObject]) -> Tuple[Dict[str, FontDecoder], Dict[str, str]]:
    fonts: Dict[str, FontDecoder] = {}
    errors: Dict[str, str] = {}
    font_dict = _resolve(resources.get("/Font")) if resources is not None else None
    if not isinstance(font_dict, DictionaryObject):
        return fonts, errors
    for name, font in font_dict.items():
        try:
            fonts[str(name)] = build_font_decoder(str(name), font)
        except FontEncodingError as exc:
            errors[str(name)] = exc.message
    return fonts, errors


def _prepare_content(
    data: bytes,
    resources: Optional[DictionaryObject],
    *,
    depth: int = 0,
    matrix: Matrix = IDENTITY,
) -> PreparedContent:
    fonts, font_errors = _prepare_fonts(resources)
    forms: Dict[str, PreparedContent] = {}
    xobjects = _resolve(resources.get("/XObject")) if resources is not None else None
    if depth < MAX_FORM_DEPTH and isinstance(xobjects, DictionaryObject):
        for name, entry in xobjects.items():
            if str(name).encode("latin-1", "ignore") not in data:
                continue
            stream = _resolve(entry)
            if not isinstance(stream, StreamObject) or stream.get("/Subtype") != "/Form":
                continue
            form_resources = _resolve(stream.get("/Resources"))
            if not isinstance(form_resources, DictionaryObject):
                form_resources = resources
            forms[str(name)] = _prepare_content(
                stream.get_data(),
                form_resources,
                depth=depth + 1,
                matrix=_matrix(stream.get("/Matrix")),
            )
    return PreparedContent(data=data, fonts=fonts, font_errors=font_errors, forms=forms, matrix=matrix)


def prepare_page(handle: "DocumentHandle", ref: PageRef) -> PreparedPage:
    """Collect the content and resources of ``ref`` while holding the handle lock."""

    with handle.lock:
        data = _content_bytes(ref.page)
        content = _prepare_content(data, ref.resources)
    return PreparedPage(number=ref.number, content=content)


# -- Phase 2: interpretation -------------------------------------------------


class _TextSink:
    """Collects decoded runs into lines."""

    def __init__(self) -> None:
        self.lines: List[List[str]] = [[]]

    def newline(self) -> None:
        self.lines.append([])

    def ends_with_space(self) -> bool:
        current = self.lines[-1]
        return not current or current[-1].endswith((" ", "\t"))

    def write(self, text: str) -> None:
        if text:
            self.lines[-1].append(text)

    def render(self) -> str:
        return "\n".join("".join(parts) for parts in self.lines)


def normalise_text(text: str) -> str:
    """Remove soft hyphens and control characters, expand ligatures and trim lines."""

    cleaned = text.replace("\u00ad", "").translate(LIGATURES).translate(_CONTROL)
    lines = [line.rstrip() for line in cleaned.split("\n")]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


def _string_bytes(operand: Any) -> bytes:
    if isinstance(operand, TextStringObject):
        return operand.get_original_bytes()
    if isinstance(operand, (ByteStringObject, bytes)):
        return bytes(operand)
    if isinstance(operand, str):
        return operand.encode("latin-1", "replace")
    raise ValueError(f"text operand {operand!r} is not a string")


class _Interpreter:
    """Walks the text operators of one content stream."""

    def __init__(self, content: PreparedContent, sink: _TextSink, ctm: Matrix, depth: int = 0) -> None:
        self.content = content
        self.sink = sink
        self.depth = depth
        self.ctm_stack: List[Matrix] = [ctm]
        self.tm: Matrix = IDENTITY
        self.tlm: Matrix = IDENTITY
        self.font: Optional[FontDecoder] = None
        self.font_name: Optional[str] = None
        self.font_size = 0.0
        self.char_spacing = 0.0
        self.word_spacing = 0.0
        self.scaling = 1.0
        self.leading = 0.0
        self.pending_break = False
        self.last_y: Optional[float] = None
        self.last_end_x: Optional[float] = None

    @property
    def ctm(self) -> Matrix:
        return self.ctm_stack[-1]

    def run(self) -> None:
        stream = DecodedStreamObject()
        stream.set_data(self.content.data)
        for operands, operator in ContentStream(stream, None).operations:
            handler = _OPERATORS.get(operator)
            if handler is not None:
                handler(self, operands)

    # -- position tracking ---------------------------------------------------

    def _device_state(self) -> Tuple[float, float, float]:
        matrix = _multiply(self.tm, self.ctm)
        scale = math.hypot(matrix[2], matrix[3]) or 1.0
        return matrix[4], matrix[5], max(self.font_size * scale, 1.0)

    def _place(self, text: str) -> None:
        x, y, size = self._device_state()
        if self.pending_break or (self.last_y is not None and abs(y - self.last_y) > size * LINE_BREAK_RATIO):
            if self.last_y is not None or self.pending_break:
                self.sink.newline()
            self.pending_break = False
        elif self.last_end_x is not None and not self.sink.ends_with_space() and not text[:1].isspace():
            gap = x - self.last_end_x
            if gap > size * WORD_GAP_RATIO or gap < -size:
                self.sink.write(" ")
        self.last_y = y

    def _show(self, data: bytes) -> None:
        if self.font is None:
            if self.font_name is not None and self.font_name in self.content.font_errors:
                raise FontEncodingError(self.content.font_errors[self.font_name])
            if self.font_name is not None:
                raise ValueError(f"font resource {self.font_name} not found")
            raise ValueError("text shown before a font was selected")
        text_parts: List[str] = []
        advance = 0.0
        for raw, code in self.font.iter_codes(data):
            text_parts.append(self.font.to_unicode(raw, code) or "")
            spacing = self.char_spacing
            if self.font.is_word_space(raw):
                spacing += self.word_spacing
            advance += (self.font.width(code) * self.font_size + spacing) * self.scaling
        text = "".join(text_parts)
        if text:
            self._place(text)
            self.sink.write(text)
        self.tm = _multiply(_translate(advance, 0.0), self.tm)
        if text:
            self.last_end_x = self._device_state()[0]

    def _adjust(self, amount: float) -> None:
        shift = -amount / 1000.0 * self.font_size * self.scaling
        self.tm = _multiply(_translate(shift, 0.0), self.tm)

    def _next_line(self) -> None:
        self.tlm = _multiply(_translate(0.0, -self.leading), self.tlm)
        self.tm = self.tlm
        self.pending_break = True

    # -- operators -----------------------------------------------------------

    def op_bt(self, operands: list) -> None:
        self.tm = IDENTITY
        self.tlm = IDENTITY

    def op_tf(self, operands: list) -> None:
        name = str(operands[0])
        self.font_name = name
        self.font = self.content.fonts.get(name)
        self.font_size = float(operands[1])

    def op_td(self, operands: list) -> None:
        self.tlm = _multiply(_translate(float(operands[0]), float(operands[1])), self.tlm)
        self.tm = self.tlm

    def op_td_leading(self, operands: list) -> None:
        self.leading = -float(operands[1])
        self.op_td(operands)

    def op_tm(self, operands: list) -> None:
        self.tlm = tuple(float(value) for value in operands[:6])  # type: ignore[assignment]
        self.tm = self.tlm

    def op_tstar(self, operands: list) -> None:
        self._next_line()

    def op_tl(self, operands: list) -> None:
        self.leading = float(operands[0])

    def op_tc(self, operands: list) -> None:
        self.char_spacing = float(operands[0])

    def op_tw(self, operands: list) -> None:
        self.word_spacing = float(operands[0])

    def op_tz(self, operands: list) -> None:
        self.scaling = float(operands[0]) / 100.0

    def op_tj(self, operands: list) -> None:
        self._show(_string_bytes(operands[0]))

    def op_quote(self, operands: list) -> None:
        self._next_line()
        self._show(_string_bytes(operands[0]))

    def op_double_quote(self, operands: list) -> None:
        self.word_spacing = float(operands[0])
        self.char_spacing = float(operands[1])
        self._next_line()
        self._show(_string_bytes(operands[2]))

    def op_tj_array(self, operands: list) -> None:
        for item in operands[0]:
            if isinstance(item, (int, float)):
                self._adjust(float(item))
            else:
                self._show(_string_bytes(item))

    def op_save(self, operands: list) -> None:
        self.ctm_stack.append(self.ctm)

    def op_restore(self, operands: list) -> None:
        if len(self.ctm_stack) > 1:
            self.ctm_stack.pop()

    def op_cm(self, operands: list) -> None:
        matrix = tuple(float(value) for value in operands[:6])
        self.ctm_stack[-1] = _multiply(matrix, self.ctm)  # type: ignore[arg-type]

    def op_do(self, operands: list) -> None:
        form = self.content.forms.get(str(operands[0]))
        if form is None:
            return
        nested = _Interpreter(form, self.sink, _multiply(form.matrix, self.ctm), self.depth + 1)
        nested.last_y = self.last_y
        nested.last_end_x = self.last_end_x
        nested.run()
        self.last_y = nested.last_y
        self.last_end_x = nested.last_end_x


_OPERATORS = {
    b"BT": _Interpreter.op_bt,
    b"Tf": _Interpreter.op_tf,
    b"Td": _Interpreter.op_td,
    b"TD": _Interpreter.op_td_leading,
    b"Tm": _Interpreter.op_tm,
    b"T*": _Interpreter.op_tstar,
    b"TL": _Interpreter.op_tl,
    b"Tc": _Interpreter.op_tc,
    b"Tw": _Interpreter.op_tw,
    b"Tz": _Interpreter.op_tz,
    b"Tj": _Interpreter.op_tj,
    b"'": _Interpreter.op_quote,
    b'"': _Interpreter.op_double_quote,
    b"TJ": _Interpreter.op_tj_array,
    b"q": _Interpreter.op_save,
    b"Q": _Interpreter.op_restore,
    b"cm": _Interpreter.op_cm,
    b"Do": _Interpreter.op_do,
}


def interpret_page(prepared: Union[PreparedPage, PreparedContent]) -> str:
    """Decode the text drawn by prepared page content.

    Raises:
        FontEncodingError: When text is shown with a font whose encoding is
            unusable.
        ValueError: On malformed operators or operands.
    """

    content = prepared.content if isinstance(prepared, PreparedPage) else prepared
    sink = _TextSink()
    _Interpreter(content, sink, IDENTITY).run()
    return normalise_text(sink.render())


# -- Per-page fault isolation ------------------------------------------------


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, PDFReadXError):
        return exc.message
    return f"malformed page content: {exc}"


def render_page(prepared: Union[PreparedPage, PageFailure]) -> PageResult:
    """Interpret a prepared page, turning any error into a :class:`PageFailure`."""

    if isinstance(prepared, PageFailure):
        return prepared
    try:
        return PageText(prepared.number, interpret_page(prepared))
    except Exception as exc:  # isolate malformed content to this page
        reason = _failure_reason(exc)
        LOGGER.warning("Page %d could not be decoded: %s", prepared.number, reason)
        return PageFailure(prepared.number, reason)


def prepare_or_fail(handle: "DocumentHandle", ref: PageRef) -> Union[PreparedPage, PageFailure]:
    try:
        return prepare_page(handle, ref)
    except Exception as exc:  # isolate unreadable page resources to this page
        reason = _failure_reason(exc)
        LOGGER.warning("Page %d could not be prepared: %s", ref.number, reason)
        return PageFailure(ref.number, reason)


def decode(handle: "DocumentHandle", ref: PageRef) -> PageResult:
    """Decode one page into :class:`PageText` or :class:`PageFailure`."""

    return render_page(prepare_or_fail(handle, ref))

"""Font decoding tables used by the text decoder.

A :class:`FontDecoder` turns the raw string operands of text-showing
operators into Unicode text and reports glyph advances so the decoder can
track the text position. Decoders are built from a font resource
dictionary while the document is locked; once built they hold plain Python
data only and can be used from any thread.

The code → text tables come from pypdf's ``_cmap.get_encoding``: the
``/ToUnicode`` CMap where present, otherwise the ``/Encoding`` table (named
base encoding plus ``/Differences``). pypdf silently falls back to
StandardEncoding for encodings it does not know, so unknown names are
rejected here before it is consulted. Composite (Type0) fonts need a
``/ToUnicode`` CMap; the predefined CJK CMaps are not bundled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from pypdf import _cmap
from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject, NameObject, StreamObject

from .exceptions import FontEncodingError

__all__ = [
    "CompositeFontDecoder",
    "FontDecoder",
    "SimpleFontDecoder",
    "build_font_decoder",
    "glyph_name_to_unicode",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_WIDTH = 0.5
MAX_RANGE_ENTRIES = 0x10000
SUPPORTED_BASE_ENCODINGS = (
    "/StandardEncoding",
    "/WinAnsiEncoding",
    "/MacRomanEncoding",
    "/PDFDocEncoding",
)
SIMPLE_SUBTYPES = ("/Type1", "/MMType1", "/TrueType", "/Type3")


def _resolve(obj: Any) -> Any:
    if isinstance(obj, IndirectObject):
        return obj.get_object()
    return obj


def _unsupported(font_label: str, detail: str) -> FontEncodingError:
    return FontEncodingError(f"font encoding unsupported ({font_label}: {detail})")


def glyph_name_to_unicode(name: str) -> Optional[str]:
    """Map a glyph name to text via the Adobe Glyph List and ``uniXXXX`` forms."""

    if not name:
        return None
    if not name.startswith("/"):
        name = f"/{name}"
    mapped = _cmap.adobe_glyphs.get(name)
    if mapped:
        return mapped
    bare = name[1:].split(".", 1)[0]
    if bare != name[1:]:
        return glyph_name_to_unicode(bare)
    if bare.startswith("uni") and len(bare) >= 7 and (len(bare) - 3) % 4 == 0:
        try:
            units = [int(bare[i : i + 4], 16) for i in range(3, len(bare), 4)]
        except ValueError:
            return None
        return "".join(chr(unit) for unit in units if not 0xD800 <= unit <= 0xDFFF) or None
    if bare.startswith("u") and 5 <= len(bare) <= 7:
        try:
            return chr(int(bare[1:], 16))
        except ValueError:
            return None
    return None


# -- Decoders ----------------------------------------------------------------


class FontDecoder:
    """Common interface of simple and composite font decoders."""

    resource_name: str
    base_font: str

    def iter_codes(self, data: bytes) -> Iterator[Tuple[bytes, int]]:
        """Yield ``(code_bytes, code)`` pairs in string order."""
        raise NotImplementedError

    def to_unicode(self, code_bytes: bytes, code: int) -> Optional[str]:
        raise NotImplementedError

    def width(self, code: int) -> float:
        """Glyph advance in text space units per unit of font size."""
        raise NotImplementedError

    def is_word_space(self, code_bytes: bytes) -> bool:
        return code_bytes == b" "

    def decode(self, data: bytes) -> str:
        return "".join(self.to_unicode(raw, code) or "" for raw, code in self.iter_codes(data))


@dataclass
class SimpleFontDecoder(FontDecoder):
    resource_name: str
    base_font: str
    table: Tuple[Optional[str], ...]
    widths: Mapping[int, float] = field(default_factory=dict)
    default_width: float = DEFAULT_WIDTH

    def iter_codes(self, data: bytes) -> Iterator[Tuple[bytes, int]]:
        for index in range(len(data)):
            yield data[index : index + 1], data[index]

    def to_unicode(self, code_bytes: bytes, code: int) -> Optional[str]:
        return self.table[code]

    def width(self, code: int) -> float:
        return self.widths.get(code, self.default_width)


@dataclass
class CompositeFontDecoder(FontDecoder):
    resource_name: str
    base_font: str
    code_length: int
    mapping: Mapping[int, str]
    widths: Mapping[int, float] = field(default_factory=dict)
    default_width: float = 1.0

    def iter_codes(self, data: bytes) -> Iterator[Tuple[bytes, int]]:
        for index in range(0, len(data), self.code_length):
            chunk = data[index : index + self.code_length]
            yield chunk, int.from_bytes(chunk, "big")

    def to_unicode(self, code_bytes: bytes, code: int) -> Optional[str]:
        return self.mapping.get(code)

    def width(self, code: int) -> float:
        return self.widths.get(code, self.default_width)

    def is_word_space(self, code_bytes: bytes) -> bool:
        return False


# -- Building decoders -------------------------------------------------------


def _check_encoding(font: DictionaryObject, font_label: str) -> None:
    encoding = _resolve(font.get("/Encoding"))
    if encoding is None:
        return
    if isinstance(encoding, NameObject):
        if encoding not in SUPPORTED_BASE_ENCODINGS:
            raise _unsupported(font_label, f"unknown encoding {encoding}")
        return
    if not isinstance(encoding, DictionaryObject):
        raise _unsupported(font_label, f"malformed /Encoding {encoding!r}")
    base = _resolve(encoding.get("/BaseEncoding"))
    if base is not None and base not in SUPPORTED_BASE_ENCODINGS:
        raise _unsupported(font_label, f"unknown base encoding {base}")
    if "/Differences" in encoding:
        _check_differences(_resolve(encoding["/Differences"]), font_label)


def _check_differences(differences: Any, font_label: str) -> None:
    if not isinstance(differences, ArrayObject):
        raise _unsupported(font_label, "malformed /Differences array")
    code: Optional[int] = None
    for entry in differences:
        entry = _resolve(entry)
        if isinstance(entry, NameObject):
            if code is None or not 0 <= code <= 255:
                raise _unsupported(font_label, "glyph name outside a code run in /Differences")
            code += 1
        elif isinstance(entry, int):
            code = int(entry)
        else:
            raise _unsupported(font_label, f"unexpected {entry!r} in /Differences")


def _has_to_unicode(font: DictionaryObject) -> bool:
    return isinstance(_resolve(font.get("/ToUnicode")), StreamObject)


def _read_encoding(font: DictionaryObject, font_label: str) -> Tuple[Any, Dict[int, str], int]:
    """Return pypdf's encoding, the ToUnicode map keyed by code and its code length."""

    try:
        encoding, cmap = _cmap.get_encoding(font)
    except Exception as exc:
        raise _unsupported(font_label, f"unreadable encoding tables: {exc}") from exc
    # older pypdf releases leave the code length under the -1 key
    code_length = cmap.pop(-1, None)
    mapping: Dict[int, str] = {}
    for key, value in cmap.items():
        if not isinstance(key, str) or not key:
            continue
        if len(key) == 1:
            code = ord(key)
        else:
            code = int.from_bytes(key.encode("utf-16-be", "surrogatepass"), "big")
        mapping[code] = value if isinstance(value, str) else str(value)
        if len(key) > 1:
            code_length = max(code_length or 0, 2 * len(key))
    return encoding, mapping, code_length or 0


def _table_entry(value: Any) -> Optional[str]:
    if not isinstance(value, str) or value == "\u0000":
        return None
    if len(value) > 1 and value.startswith("/"):
        # a glyph name pypdf could not resolve
        return glyph_name_to_unicode(value)
    return value


def _simple_widths(font: DictionaryObject) -> Tuple[Dict[int, float], float]:
    scale = 0.001
    if font.get("/Subtype") == "/Type3":
        matrix = _resolve(font.get("/FontMatrix"))
        if isinstance(matrix, ArrayObject) and matrix:
            scale = float(_resolve(matrix[0]))
    default = DEFAULT_WIDTH
    descriptor = _resolve(font.get("/FontDescriptor"))
    if isinstance(descriptor, DictionaryObject) and "/MissingWidth" in descriptor:
        missing = float(_resolve(descriptor["/MissingWidth"]))
        if missing > 0:
            default = missing * scale
    widths: Dict[int, float] = {}
    raw_widths = _resolve(font.get("/Widths"))
    first_char = _resolve(font.get("/FirstChar"))
    if isinstance(raw_widths, ArrayObject) and first_char is not None:
        for offset, value in enumerate(raw_widths):
            widths[int(first_char) + offset] = float(_resolve(value)) * scale
    return widths, default


def _composite_widths(descendant: Optional[DictionaryObject]) -> Tuple[Dict[int, float], float]:
    if descendant is None:
        return {}, 1.0
    default = float(_resolve(descendant.get("/DW", 1000))) / 1000.0
    widths: Dict[int, float] = {}
    raw = _resolve(descendant.get("/W"))
    if not isinstance(raw, ArrayObject):
        return widths, default
    items = [_resolve(item) for item in raw]
    index = 0
    while index + 1 < len(items):
        first = int(items[index])
        following = items[index + 1]
        if isinstance(following, ArrayObject):
            for offset, value in enumerate(following):
                widths[first + offset] = float(_resolve(value)) / 1000.0
            index += 2
        elif index + 2 < len(items):
            last = int(following)
            value = float(items[index + 2]) / 1000.0
            for cid in range(first, min(last, first + MAX_RANGE_ENTRIES) + 1):
                widths[cid] = value
            index += 3
        else:
            break
    return widths, default


def _build_composite(
    resource_name: str,
    font: DictionaryObject,
    base_font: str,
    font_label: str,
) -> CompositeFontDecoder:
    mapping: Dict[int, str] = {}
    code_length = 0
    if _has_to_unicode(font):
        _, mapping, code_length = _read_encoding(font, font_label)
    if not mapping:
        encoding = _resolve(font.get("/Encoding"))
        raise _unsupported(font_label, f"composite font with {encoding} and no ToUnicode map")
    descendants = _resolve(font.get("/DescendantFonts"))
    descendant = None
    if isinstance(descendants, ArrayObject) and descendants:
        candidate = _resolve(descendants[0])
        if isinstance(candidate, DictionaryObject):
            descendant = candidate
    widths, default = _composite_widths(descendant)
    return CompositeFontDecoder(
        resource_name=resource_name,
        base_font=base_font,
        code_length=code_length or 2,
        mapping=mapping,
        widths=widths,
        default_width=default,
    )


def _build_simple(
    resource_name: str,
    font: DictionaryObject,
    base_font: str,
    font_label: str,
) -> SimpleFontDecoder:
    try:
        _check_encoding(font, font_label)
    except FontEncodingError:
        if not _has_to_unicode(font):
            raise
        LOGGER.debug("Ignoring unusable /Encoding of %s in favour of ToUnicode", font_label)
        font = DictionaryObject({key: value for key, value in font.items() if key != "/Encoding"})
    encoding, mapping, _ = _read_encoding(font, font_label)
    if not isinstance(encoding, dict):
        raise _unsupported(font_label, f"no single-byte encoding table ({encoding})")
    table = [_table_entry(encoding.get(code)) for code in range(256)]
    if "/ToUnicode" not in font or _has_to_unicode(font):
        for code, text in mapping.items():
            if code < 256:
                table[code] = text
    widths, default = _simple_widths(font)
    return SimpleFontDecoder(
        resource_name=resource_name,
        base_font=base_font,
        table=tuple(table),
        widths=widths,
        default_width=default,
    )


def build_font_decoder(resource_name: str, font: Any) -> FontDecoder:
    """Build a decoder for the font resource ``resource_name``.

    Raises:
        FontEncodingError: If the font's encoding is missing, unsupported or
            malformed.
    """

    font = _resolve(font)
    if not isinstance(font, DictionaryObject):
        raise _unsupported(resource_name, "font resource is not a dictionary")
    base_font = str(font.get("/BaseFont", "")).lstrip("/")
    font_label = f"{resource_name} {base_font}".strip()
    subtype = _resolve(font.get("/Subtype"))

    if subtype == "/Type0":
        return _build_composite(resource_name, font, base_font, font_label)
    if subtype is not None and subtype not in SIMPLE_SUBTYPES:
        raise _unsupported(font_label, f"unknown font subtype {subtype}")
    return _build_simple(resource_name, font, base_font, font_label)

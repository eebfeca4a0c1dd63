"""Utility helpers for pdfreadx."""
from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Union

PathLike = Union[str, os.PathLike]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Configure package-wide logging on stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("pdfreadx").setLevel(level)


def to_path(path: PathLike) -> Path:
    """Normalize an input path to :class:`Path` without touching the filesystem."""
    return Path(path).expanduser()


@contextmanager
def time_block(logger: logging.Logger, message: str) -> Iterator[None]:
    """Context manager that logs the execution time of a code block."""
    start = time.perf_counter()
    logger.debug("Starting %s", message)
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.info("%s completed in %.2fs", message, elapsed)


def parse_pdf_date(raw: str | None) -> datetime | None:
    """Parse a PDF date string (``D:YYYYMMDDHHmmSSOHH'mm'``) into a :class:`datetime`.

    Missing trailing components default to their lowest value, as allowed by
    the date format. Unparseable values return ``None``.
    """
    if not raw:
        return None
    text = raw.strip()
    if text.startswith("D:"):
        text = text[2:]
    digits = ""
    for char in text[:14]:
        if not char.isdigit():
            break
        digits += char
    if len(digits) < 4:
        return None
    padded = digits + "0101000000"[len(digits) - 4:]
    try:
        base = datetime.strptime(padded[:14], "%Y%m%d%H%M%S")
    except ValueError:
        return None
    remainder = text[len(digits):]
    tz_sign = remainder[:1]
    if tz_sign in {"+", "-"}:
        offset = remainder[1:].replace("'", "")
        try:
            hours = int(offset[:2])
            minutes = int(offset[2:4]) if len(offset) >= 4 else 0
        except ValueError:
            hours = minutes = 0
        delta = timedelta(hours=hours, minutes=minutes)
        if tz_sign == "-":
            delta = -delta
        tz = timezone(delta)
    else:
        tz = timezone.utc
    return base.replace(tzinfo=tz)


def format_file_size(size_bytes: float) -> str:
    """Format a byte count for display, e.g. ``"1.5 MB"``."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"

"""Spill oversized cell values to side files.

XLSX cells hold at most 32,767 characters; anything longer corrupts the
workbook, so long values are written to a file and the cell gets its path.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

from .logging_config import get_logger

logger = get_logger("overflow")

UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
# UTF-8 bytes; filesystems cap names at 255
MAX_FILENAME_BYTES = 200
MAX_SUFFIX_BYTES = 16


def _truncate_utf8(text: str, max_bytes: int) -> str:
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def sanitize_filename(name: str, *, replacement: str = "_") -> str:
    """Replace characters that are not valid in file names.

    Names longer than ``MAX_FILENAME_BYTES`` in UTF-8 are shortened from the
    end of the stem so the extension survives.
    """
    cleaned = UNSAFE_FILENAME_CHARS.sub(replacement, name or "").strip()
    cleaned = cleaned.strip(". ")
    if len(cleaned.encode("utf-8")) <= MAX_FILENAME_BYTES:
        return cleaned or "untitled"

    stem, suffix = os.path.splitext(cleaned)
    if len(suffix.encode("utf-8")) > MAX_SUFFIX_BYTES:
        stem, suffix = cleaned, ""
    stem = _truncate_utf8(stem, MAX_FILENAME_BYTES - len(suffix.encode("utf-8")))
    stem = stem.rstrip(". ")
    return f"{stem or 'untitled'}{suffix}"


def guard(
    text: str,
    limit: int,
    fallback_dir: Union[str, Path],
    fallback_name: str,
) -> str:
    """Return ``text`` if it fits in ``limit`` characters, else a file path.

    The full text is written to ``fallback_dir/<sanitized fallback_name>`` and
    the path of that file is returned in its place.
    """
    if text is None:
        return ""
    if len(text) <= limit:
        return text

    directory = Path(fallback_dir)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / sanitize_filename(fallback_name)
    # newline="" keeps the file byte-for-byte equal to the original text
    with open(target, "w", encoding="utf-8", newline="") as handle:
        handle.write(text)

    logger.info(f"Spilled {len(text)} characters (limit {limit}) to {target}")
    return str(target)

# src/seeker/core/validators.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import re

from .exceptions import InvalidRequest

# Characters that are illegal in names on at least one supported filesystem.
_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 255


def sanitize_filename(name: str) -> str:
    """Strips separators, control and reserved characters from a single path component."""
    if not name:
        return ""
    cleaned = _ILLEGAL_CHARS.sub("", name).strip()
    # Trailing dots and spaces are silently dropped by some filesystems.
    cleaned = cleaned.rstrip(". ")
    if cleaned in ("", ".", ".."):
        return ""
    return cleaned[:MAX_FILENAME_LENGTH]


def validate_filename(name: str) -> str:
    """Returns the sanitized name, raising InvalidRequest when nothing usable is left."""
    safe = sanitize_filename(name)
    if not safe:
        raise InvalidRequest(f"Invalid file name: {name!r}")
    return safe

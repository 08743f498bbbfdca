# src/seeker/core/collation.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

"""
Natural, case- and accent-insensitive ordering for file names.

"file2" sorts before "file10", "Ä" compares like "a", and digit runs sort
before letters. Two names that differ only in case or accents produce the
same key, so callers that need a total order tie-break on the raw name.
"""

import re
import unicodedata
from functools import lru_cache
from typing import Tuple

_DIGIT_RUNS = re.compile(r"(\d+)")

NameKey = Tuple[Tuple[int, int, str], ...]


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold()


@lru_cache(maxsize=65536)
def natural_key(name: str) -> NameKey:
    parts = []
    for chunk in _DIGIT_RUNS.split(_fold(name)):
        if not chunk:
            continue
        if chunk.isdecimal():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def sort_key(name: str) -> Tuple[NameKey, str]:
    """Total-order key: natural collation first, raw name as tie-break."""
    return natural_key(name), name


def compare_names(a: str, b: str) -> int:
    ka, kb = natural_key(a), natural_key(b)
    return (ka > kb) - (ka < kb)

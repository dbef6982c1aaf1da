"""Phonetic keys and edit-distance helpers for beneficiary names.

Identity search is two layers: a Soundex key on the family name is indexed and
used as a cheap pre-filter, then candidates are ranked by Levenshtein distance
over the normalized full name.
"""

import re
import unicodedata
from typing import Optional

from rapidfuzz.distance import Levenshtein

_SOUNDEX_CODES = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}


def to_ascii(value: Optional[str]) -> str:
    """Strip accents so "Peña" and "Pena" encode identically."""
    if not value:
        return ""
    return unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")


def soundex(name: Optional[str]) -> Optional[str]:
    """American Soundex code of ``name``.

    Non-letters are ignored, so "Dela Cruz" and "De La Cruz" share ``D426``.
    H and W do not separate letters with the same code; vowels do.

    Returns:
        Four-character code, or None when the name has no letters
    """
    letters = re.sub(r"[^A-Z]", "", to_ascii(name).upper())
    if not letters:
        return None

    first = letters[0]
    digits = []
    prev = _SOUNDEX_CODES.get(first, "")
    for ch in letters[1:]:
        code = _SOUNDEX_CODES.get(ch, "")
        if code:
            if code != prev:
                digits.append(code)
            prev = code
        elif ch not in "HW":
            prev = ""

    return (first + "".join(digits) + "000")[:4]


def normalize_full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    """Lowercased, trimmed ``"first last"`` with inner whitespace collapsed."""
    full = f"{(first_name or '').strip()} {(last_name or '').strip()}"
    return re.sub(r"\s+", " ", full).strip().lower()


def name_distance(
    first_name: str,
    last_name: str,
    other_first_name: str,
    other_last_name: str,
) -> int:
    """Levenshtein distance between two normalized full names."""
    return Levenshtein.distance(
        normalize_full_name(first_name, last_name),
        normalize_full_name(other_first_name, other_last_name),
    )


def similarity_score(distance: int) -> int:
    """Percentage score used in duplicate reports: 100 minus 10 per edit."""
    return max(0, 100 - distance * 10)

"""Text normalization for PDF text layers.

PDF extraction leaves behind non-breaking spaces, zero-width marks and
mixed line endings that break label matching. Everything downstream
works on the output of ``normalize_text``.
"""

import re
import unicodedata

# NBSP, en/em spaces and friends, narrow NBSP, math space, ideographic space,
# Mongolian vowel separator, Arabic letter mark.
_UNICODE_SPACES_RE = re.compile(r"[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000\u180e\u061c]")
# Zero-width chars, direction marks, BOM, soft hyphen and C0 controls other than \t and \n.
_INVISIBLE_RE = re.compile(r"[\u200b-\u200f\u2060\ufeff\u00ad\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_WS_RE = re.compile(r"[ \t]+")
_BLANK_LINES_RE = re.compile(r"\n{2,}")
_WS_RE = re.compile(r"\s+")


def normalize_text(text: str, *, collapse_blank_lines: bool = False) -> str:
    """Normalize raw PDF text.

    Unicode space variants become plain spaces, invisible marks are
    dropped, line endings are unified to ``\\n`` and runs of horizontal
    whitespace collapse to a single space. Line breaks are preserved
    since same-line matching depends on them.

    Args:
        text: Raw text from the PDF text layer.
        collapse_blank_lines: Fold consecutive empty lines into one break.

    Returns:
        The normalized text. Never raises for ``str`` input.
    """
    if not text:
        return ""

    result = text.replace("\r\n", "\n").replace("\r", "\n")
    result = _UNICODE_SPACES_RE.sub(" ", result)
    result = _INVISIBLE_RE.sub("", result)
    result = _HORIZONTAL_WS_RE.sub(" ", result)
    result = "\n".join(line.strip() for line in result.split("\n"))
    if collapse_blank_lines:
        result = _BLANK_LINES_RE.sub("\n", result)
    return result.strip()


def clean_string(value: str) -> str:
    """Trim and collapse all whitespace in an extracted value."""
    if not value:
        return ""
    return _WS_RE.sub(" ", value).strip()


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


def fold(value: str) -> str:
    """Lowercase and strip accents, keeping everything else."""
    return strip_accents(value).lower()


def normalize_name(value: str) -> str:
    """Reduce a name to lowercase ASCII letters and digits.

    Used to compare scheme and client names regardless of accents,
    punctuation and spacing.

    Example:
        >>> normalize_name("11 | IR 1,5% + CSLL")
        '11ir15csll'
    """
    return re.sub(r"[^a-z0-9]", "", fold(value or ""))


__all__ = [
    "clean_string",
    "fold",
    "normalize_name",
    "normalize_text",
    "strip_accents",
]

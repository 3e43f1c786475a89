"""Text and number cleaning shared by every extractor."""

from __future__ import annotations

import html
import re

_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")


def clean_text(text: str) -> str:
    """Decode entities, collapse whitespace runs (incl. NBSP) and trim.

    >>> clean_text("  Röd &amp;  Bil\\u00a0 ")
    'Röd & Bil'
    """
    text = html.unescape(text or "")
    text = _WHITESPACE_RE.sub(" ", text.replace("\u00a0", " "))
    return text.strip()


def clean_number(number: str) -> str:
    """Decode entities and keep only ASCII digits.

    Signs and decimal separators are dropped as well, so ``"-1,5"`` becomes
    ``"15"``; published prices and mileages are whole numbers.

    >>> clean_number("125 000 kr")
    '125000'
    """
    return _NON_DIGIT_RE.sub("", html.unescape(number or ""))

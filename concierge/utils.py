"""Shared text utilities used across the claim concierge."""

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_DEVANAGARI = re.compile(r"[\u0900-\u097f]")
_HINGLISH_MARKERS = {
    "haan", "nahi", "nahin", "kya", "hai", "hain", "mujhe", "meri", "mera",
    "kal", "parso", "theek", "thik", "accha", "acha", "chahiye", "karna",
    "karo", "bhai", "ji", "aap", "hum",
}


def normalize_text(value: str) -> str:
    """Lowercase, replace anything that is not a letter or digit with a space
    and collapse runs of whitespace.

    Examples:
        >>> normalize_text("Seven-Star  Hospital!")
        'seven star hospital'
    """
    value = re.sub(r"[^a-z0-9]+", " ", value.lower())
    return re.sub(r"\s+", " ", value).strip()


def fill_placeholders(text: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{{name}}`` tokens whose name is a key of ``values``.

    Unknown names are left in place so callers can detect them with
    :func:`find_unresolved_placeholders`.
    """

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        value = values.get(key)
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, text)


def find_unresolved_placeholders(text: str) -> list[str]:
    """Return the names of all ``{{name}}`` tokens still present in text."""
    return _PLACEHOLDER.findall(text)


def unescape_newlines(text: str) -> str:
    r"""Turn literal ``\n`` sequences (as stored in templates) into newlines."""
    return text.replace("\\n", "\n")


def first_name(full_name: str) -> str:
    parts = full_name.strip().split()
    return parts[0] if parts else ""


def detect_language(text: str) -> str:
    """Best-effort language tag for tone selection: ``hi`` or ``en``."""
    if _DEVANAGARI.search(text):
        return "hi"
    words = normalize_text(text).split()
    if not words:
        return "en"
    hits = sum(1 for word in words if word in _HINGLISH_MARKERS)
    return "hi" if hits * 3 >= len(words) else "en"

"""Keyword detectors for yes/no style replies (English and Roman Hindi)."""

import re

POSITIVE_KEYWORDS: tuple[str, ...] = (
    # English
    "yes", "yep", "yeah", "ok", "okay", "sure", "absolutely", "definitely",
    "of course", "fine", "alright", "sounds good", "go ahead", "please do",
    "confirmed", "accepted", "done", "great", "perfect",
    # Hinglish
    "haan", "ha", "hanji", "haaji", "bilkul", "thik hai", "theek hai",
    "sahi hai", "ho jaega", "ho jayega", "ho gya", "ho gaya", "kar do",
    "karo", "hoga", "chalo", "theek", "accha hai", "acha hai", "karlo",
    "kar lena", "kar dijiye", "kr dijiye", "krdo",
)

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    # English
    "no", "not interested", "don't want", "do not want", "decline",
    "cancel", "stop", "later", "not now", "maybe later", "skip", "reject",
    "nah", "never", "don't call", "not required", "no thanks", "no thank you",
    # Hinglish
    "nahi", "nahi chahiye", "mat karo", "mat karna", "nahi karna",
    "baad mein", "abhi nahi", "nahi chahta", "mana hai", "rehne do",
    "chod do", "chhodo", "cancel karo", "ruko", "ruk jao", "baad me",
    "nahi lena", "nahi karwana", "mat bhejna", "mat bhejo",
)

# Phrases that contain a negative keyword but read as agreement
_NEUTRALIZED = re.compile(r"\bno\s+(problem|worries|issues?)\b", re.IGNORECASE)


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern:
    # Longest first so multi-word phrases win over their prefixes
    ordered = sorted(keywords, key=len, reverse=True)
    return re.compile(r"\b(" + "|".join(re.escape(k) for k in ordered) + r")\b", re.IGNORECASE)


_POSITIVE = _keyword_pattern(POSITIVE_KEYWORDS)
_NEGATIVE = _keyword_pattern(NEGATIVE_KEYWORDS)


def is_positive(text: str) -> bool:
    """Whole-word match against the positive keyword list."""
    if not text or not text.strip():
        return False
    return bool(_POSITIVE.search(text))


def is_negative(text: str) -> bool:
    """Whole-word match against the negative keyword list."""
    if not text or not text.strip():
        return False
    return bool(_NEGATIVE.search(_NEUTRALIZED.sub(" ", text)))


def yes_no(text: str):
    """Classify a reply as ``True``, ``False`` or ``None`` (undecided).

    A negative cue wins over a positive one: "ok, but not now" declines.
    """
    if is_negative(text):
        return False
    if is_positive(text):
        return True
    return None

"""
Calendar pattern matching for admission and consultation dates.

Dates found in free text are normalized to a display form such as
``20 Oct 2026`` so that later stages, prompts and the claim payload all
see one shape. Relative words ("tomorrow", "parso", "next week") and
weekday names are resolved against the ``today`` passed in, which keeps
every function here deterministic under test.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTHS: dict[str, int] = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12, "sept": 9,
}
MONTHS.update({abbr.lower(): index for index, abbr in enumerate(MONTH_ABBR, start=1)})
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_ORDINAL = r"(?:st|nd|rd|th)?"

_DAY_MONTH = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}\s+({_MONTH_ALT})\.?(?:,?\s+(\d{{4}}))?\b", re.IGNORECASE
)
_MONTH_DAY = re.compile(
    rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}}){_ORDINAL}(?:,?\s+(\d{{4}}))?\b", re.IGNORECASE
)
_NUMERIC = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4})\b")
_WEEKDAY = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE)

# Checked in order: longer phrases before the words they contain
_RELATIVE: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"\bday after tomorrow\b", re.IGNORECASE), 2),
    (re.compile(r"\bparso\b", re.IGNORECASE), 2),
    (re.compile(r"\b(tomorrow|kal)\b", re.IGNORECASE), 1),
    (re.compile(r"\bnext week\b", re.IGNORECASE), 7),
    (re.compile(r"\b(today|aaj)\b", re.IGNORECASE), 0),
)

_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)", re.IGNORECASE)
_HINDI_HOURS = {
    "ek": 1, "do": 2, "teen": 3, "char": 4, "paanch": 5, "chhah": 6, "chhe": 6,
    "saat": 7, "aath": 8, "nau": 9, "dus": 10, "gyarah": 11, "barah": 12,
}
_BAJE = re.compile(
    r"\b(\d{1,2}|" + "|".join(_HINDI_HOURS) + r")\s*baje(?:\s+(subah|dopahar|shaam|raat))?\b",
    re.IGNORECASE,
)

NUMERIC_DATE_SPANS = (_NUMERIC, _DAY_MONTH, _MONTH_DAY)


def format_display_date(value: date) -> str:
    """Format as ``20 Oct 2026`` independent of the process locale."""
    return f"{value.day} {MONTH_ABBR[value.month - 1]} {value.year}"


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _upcoming(month: int, day: int, today: date) -> Optional[date]:
    """The next occurrence of a month/day on or after today."""
    candidate = _safe_date(today.year, month, day)
    if candidate is not None and candidate < today:
        candidate = _safe_date(today.year + 1, month, day)
    return candidate


def next_weekday(name: str, today: date) -> date:
    """Next future occurrence of a weekday (never today itself)."""
    target = WEEKDAYS.index(name.lower())
    days_ahead = (target - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def parse_date_phrase(text: str, today: Optional[date] = None) -> Optional[date]:
    """Find the first recognizable date in free text and resolve it.

    Relative words win over explicit dates, matching how people write
    "tomorrow, 20th" where the relative word carries the intent.
    """
    if not text:
        return None
    today = today or date.today()

    for pattern, offset in _RELATIVE:
        if pattern.search(text):
            return today + timedelta(days=offset)

    match = _NUMERIC.search(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _DAY_MONTH.search(text)
    if match:
        day, month = int(match.group(1)), MONTHS[match.group(2).lower()]
        if match.group(3):
            return _safe_date(int(match.group(3)), month, day)
        return _upcoming(month, day, today)

    match = _MONTH_DAY.search(text)
    if match:
        month, day = MONTHS[match.group(1).lower()], int(match.group(2))
        if match.group(3):
            return _safe_date(int(match.group(3)), month, day)
        return _upcoming(month, day, today)

    match = _WEEKDAY.search(text)
    if match:
        return next_weekday(match.group(1), today)

    return None


def extract_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """Return the first date in text in display form, or None."""
    resolved = parse_date_phrase(text, today)
    return format_display_date(resolved) if resolved else None


def extract_time(text: str) -> Optional[str]:
    """Return a time phrase such as ``10am`` or ``4:30 p.m.``, or None.

    Roman Hindi hours ("dus baje shaam") are normalized to digits.
    """
    if not text:
        return None
    match = _TIME.search(text)
    if match:
        return match.group(0).strip()
    match = _BAJE.search(text)
    if match:
        hour = match.group(1).lower()
        hour = str(_HINDI_HOURS.get(hour, hour))
        period = f" {match.group(2).lower()}" if match.group(2) else ""
        return f"{hour} baje{period}"
    return None


def strip_date_spans(text: str) -> str:
    """Remove explicit date spans so their digits are not read as amounts."""
    for pattern in NUMERIC_DATE_SPANS:
        text = pattern.sub(" ", text)
    return _TIME.sub(" ", text)


def to_claim_date(value: str, today: Optional[date] = None) -> Optional[str]:
    """Convert a collected date into the claim API's ``DD-MM-YYYY`` form."""
    resolved = parse_date_phrase(value, today)
    return resolved.strftime("%d-%m-%Y") if resolved else None


def discharge_date(admission: str, days: int = 2) -> str:
    """Expected discharge, ``days`` after a ``DD-MM-YYYY`` admission date."""
    start = datetime.strptime(admission, "%d-%m-%Y")
    return (start + timedelta(days=days)).strftime("%d-%m-%Y")


def format_date_of_birth(value: str) -> str:
    """``15 Jun 1988`` → ``1988-06-15 00:00:00`` as the claim API expects."""
    for fmt in ("%d %b %Y", "%d %B %Y", "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(value.strip(), fmt).strftime("%Y-%m-%d 00:00:00")
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date of birth: {value!r}")

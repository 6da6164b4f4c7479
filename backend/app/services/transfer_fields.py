"""
Field extraction helpers for ticket-transfer confirmation emails.

Pure, stateless text -> value functions shared by every platform parser.
None of them raise: garbage, empty or None input simply yields None / [] / "".
"""

import re
from datetime import date
from typing import Optional


# Two uppercase letters, hyphen, 5-10 uppercase alphanumerics, e.g. TM-ABC123.
# Case-sensitive on purpose: listings are matched on exact code equality.
TRANSFER_CODE_RE = re.compile(r"\b([A-Z]{2}-[A-Z0-9]{5,10})\b")

# Same code shape, but only when it follows a "Transfer Code:" style label
_LABELED_TRANSFER_CODE_RE = re.compile(
    r"(?i:transfer\s*(?:code|id|#))\s*[:#]?\s*\b([A-Z]{2}-[A-Z0-9]{5,10})\b"
)

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# "Saturday, August 5, 2024" / "August 5, 2024" / "Aug. 5 2024"
_PROSE_DATE_RE = re.compile(
    r"\b(?:(?:Mon|Tues|Wednes|Thurs|Fri|Satur|Sun)day,?\s+)?"
    r"(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sept?(?:ember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
    r"\.?\s+(\d{1,2}),?\s+(\d{4})\b",
    re.IGNORECASE,
)
_US_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def extract_transfer_code(text: Optional[str]) -> Optional[str]:
    """
    Return the first transfer-code-shaped token in document order, or None.

    If the email carries more than one code-shaped token (e.g. a promo code),
    the first one wins. See extract_labeled_transfer_code for the stricter
    variant the parsers use.
    """
    if not text or not isinstance(text, str):
        return None
    match = TRANSFER_CODE_RE.search(text)
    return match.group(1) if match else None


def extract_labeled_transfer_code(text: Optional[str]) -> Optional[str]:
    """
    Prefer a code that sits right after a "Transfer Code:" label.

    Falls back to the first bare code-shaped token when no labeled
    occurrence exists.
    """
    if not text or not isinstance(text, str):
        return None
    match = _LABELED_TRANSFER_CODE_RE.search(text)
    if match:
        return match.group(1)
    return extract_transfer_code(text)


def extract_emails(text: Optional[str]) -> list[str]:
    """All email-shaped tokens in document order, duplicates included."""
    if not text or not isinstance(text, str):
        return []
    return _EMAIL_RE.findall(text)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_date(text: Optional[str]) -> Optional[date]:
    """
    Find a calendar date in free text.

    Patterns are tried in order: prose ("Saturday, August 5, 2024"),
    M/D/YYYY, then YYYY-MM-DD. The first pattern with a match that is also a
    real calendar date wins. No timezone handling.
    """
    if not text or not isinstance(text, str):
        return None

    for m in _PROSE_DATE_RE.finditer(text):
        month = _MONTHS[m.group(1).lower()[:3]]
        parsed = _safe_date(int(m.group(3)), month, int(m.group(2)))
        if parsed:
            return parsed

    for m in _US_DATE_RE.finditer(text):
        parsed = _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        if parsed:
            return parsed

    for m in _ISO_DATE_RE.finditer(text):
        parsed = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if parsed:
            return parsed

    return None


def clean_text(text: Optional[str]) -> str:
    """
    Normalize an extracted field for storage.

    Drops characters outside printable ASCII, collapses whitespace runs
    (newlines included) to one space, and trims. Idempotent.
    """
    if not text or not isinstance(text, str):
        return ""
    without_control = _NON_PRINTABLE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", without_control).strip()

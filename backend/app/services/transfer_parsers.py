"""
Per-platform parsers for ticket-transfer confirmation emails.

Each ticket platform words its transfer emails differently, so every platform
gets its own small regex vocabulary. The extraction steps themselves are the
same for all of them and live in _parse_with_vocabulary().

Supported platforms:
  - TICKETMASTER
  - AXS
  - STUBHUB
  - OTHER  (generic fallback: transfer code, event name, confirmation only)

Adding a new platform:
  1. Define a PlatformVocabulary for it.
  2. Write a parse_<platform>(body, subject) -> ParseResult function.
  3. Register it in PLATFORM_PARSERS.

Every parser returns a ParseResult and never raises.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from re import Pattern

from app.models.transfer import ParsedTransfer, ParseResult, Platform
from app.services.transfer_fields import (
    clean_text,
    extract_emails,
    extract_labeled_transfer_code,
)

logger = logging.getLogger(__name__)

ParserFn = Callable[[str, str], ParseResult]

_NOREPLY_TOKENS = ("noreply", "no-reply", "donotreply", "do-not-reply")
_ESCROW_TOKEN = "escrow"


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE | re.MULTILINE)


# ---------------------------------------------------------------------------
# Shared label patterns
# ---------------------------------------------------------------------------

_EVENT_LABEL = _rx(r"\bevent:[ \t]*([^\n]+)")
_SHOW_LABEL = _rx(r"\bshow:[ \t]*([^\n]+)")
_VENUE_LABEL = _rx(r"\bvenue:[ \t]*([^\n]+)")
_LOCATION_LABEL = _rx(r"\blocation:[ \t]*([^\n]+)")
# Case-sensitive on the venue name so "at the door" does not count
_AT_VENUE = re.compile(
    r"\b[Aa]t[ \t]+([A-Z][A-Za-z0-9&.' ]*?"
    r"(?:Arena|Stadium|Center|Centre|Theatre|Theater|Hall|Pavilion))\b"
)
_DATE_LABEL = _rx(r"\bdate:[ \t]*([^\n]+)")
_ON_PROSE_DATE = _rx(
    r"\b(?:on|when:)[ \t]*((?:[A-Za-z]+,?[ \t]+)?[A-Za-z]+\.?[ \t]+\d{1,2},?[ \t]+\d{4})"
)
_SECTION_LABEL = _rx(r"\bsection:[ \t]*([^\n,]+)")
_SEC_LABEL = _rx(r"\bsec:[ \t]*([^\n,]+)")
_ROW_LABEL = _rx(r"\brow:[ \t]*([^\n,]+)")
_SEAT_LABEL = _rx(r"\bseats?:[ \t]*([^\n]+)")
# One or two digits, so years such as "Tour 2024 Tickets" are not read as a count
_TICKET_COUNT = _rx(r"\b(\d{1,2})[ \t]+tickets?\b")
_QTY_LABEL = _rx(r"\bqty:?[ \t]*(\d+)")

# Label is case-insensitive; the value keeps its original case
_CONFIRMATION_LABEL = re.compile(
    r"(?i:\bconfirmation)[ \t]*(?i:#|number|no\.?)?[ \t]*[:#][ \t]*([A-Za-z0-9][A-Za-z0-9/-]*)"
)
_ORDER_LABEL = re.compile(
    r"(?i:\border)[ \t]*(?i:#|number|no\.?)?[ \t]*[:#][ \t]*([A-Za-z0-9][A-Za-z0-9/-]*)"
)
_REFERENCE_LABEL = re.compile(
    r"(?i:\breference)[ \t]*(?i:#|number|no\.?)?[ \t]*[:#][ \t]*([A-Za-z0-9][A-Za-z0-9/-]*)"
)


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlatformVocabulary:
    """Regex vocabulary for one ticket platform. Patterns are tried in order."""

    platform: str
    subject_event: tuple[Pattern, ...]
    body_event: tuple[Pattern, ...]
    venue: tuple[Pattern, ...]
    event_date: tuple[Pattern, ...]
    section: tuple[Pattern, ...]
    row: tuple[Pattern, ...]
    seat: tuple[Pattern, ...]
    quantity: tuple[Pattern, ...]
    confirmation: tuple[Pattern, ...]
    own_domains: tuple[str, ...]


TICKETMASTER_VOCABULARY = PlatformVocabulary(
    platform=Platform.TICKETMASTER.value,
    # "Your Tickets for Taylor Swift - The Eras Tour have been transferred"
    subject_event=(
        _rx(r"tickets?[ \t]+(?:for|to)[ \t]+(.+?)[ \t]+ha(?:ve|s)[ \t]+been[ \t]+transferred"),
        _rx(r"tickets?[ \t]+(?:for|to)[ \t]+([^-\n]+)"),
    ),
    body_event=(_EVENT_LABEL,),
    venue=(_VENUE_LABEL, _LOCATION_LABEL, _AT_VENUE),
    event_date=(_DATE_LABEL, _ON_PROSE_DATE),
    section=(_SECTION_LABEL,),
    row=(_ROW_LABEL,),
    seat=(_SEAT_LABEL,),
    quantity=(_TICKET_COUNT, _QTY_LABEL),
    confirmation=(_CONFIRMATION_LABEL, _ORDER_LABEL, _REFERENCE_LABEL),
    own_domains=("ticketmaster.com", "livenation.com"),
)

AXS_VOCABULARY = PlatformVocabulary(
    platform=Platform.AXS.value,
    # "Tickets transferred: Bad Bunny - Most Wanted Tour"
    subject_event=(
        _rx(r"transferred:[ \t]*([^\n]+)"),
        _rx(r"\bfor[ \t]+([^-\n]+)"),
    ),
    body_event=(_EVENT_LABEL, _SHOW_LABEL),
    venue=(_VENUE_LABEL, _AT_VENUE),
    event_date=(_DATE_LABEL, _ON_PROSE_DATE),
    section=(_SECTION_LABEL, _SEC_LABEL),
    row=(_ROW_LABEL,),
    seat=(_SEAT_LABEL,),
    quantity=(_QTY_LABEL, _TICKET_COUNT),
    confirmation=(_CONFIRMATION_LABEL, _ORDER_LABEL, _REFERENCE_LABEL),
    own_domains=("axs.com", "aegpresents.com"),
)

STUBHUB_VOCABULARY = PlatformVocabulary(
    platform=Platform.STUBHUB.value,
    # "Your tickets for The Weeknd - After Hours Tour"
    subject_event=(_rx(r"tickets?[ \t]+(?:for|to)[ \t]+([^\n]+)"),),
    body_event=(_EVENT_LABEL,),
    venue=(_VENUE_LABEL, _AT_VENUE),
    event_date=(_DATE_LABEL, _ON_PROSE_DATE),
    section=(_SECTION_LABEL, _SEC_LABEL),
    row=(_ROW_LABEL,),
    seat=(_SEAT_LABEL,),
    quantity=(_TICKET_COUNT, _QTY_LABEL),
    confirmation=(_CONFIRMATION_LABEL, _ORDER_LABEL, _REFERENCE_LABEL),
    own_domains=("stubhub.com",),
)


# ---------------------------------------------------------------------------
# Shared extraction
# ---------------------------------------------------------------------------

def _first_match(patterns: tuple[Pattern, ...], text: str) -> Optional[str]:
    """Return the cleaned first group of the first pattern that matches."""
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            value = clean_text(m.group(1))
            if value:
                return value
    return None


def _domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower()


def _local_part(email: str) -> str:
    return email.split("@", 1)[0].lower()


def _split_sender_receiver(
    emails: list[str], own_domains: tuple[str, ...]
) -> tuple[Optional[str], Optional[str]]:
    """
    Pick (sender, receiver) out of every address found in the body.

    receiver: first address with the escrow token in its local part.
    sender:   first remaining address that is neither on the platform's own
              domains nor a noreply-style address (local part or domain).
              Never guessed otherwise.
    """
    receiver = next((e for e in emails if _ESCROW_TOKEN in _local_part(e)), None)

    sender = None
    for email in emails:
        local = _local_part(email)
        domain = _domain(email)
        if _ESCROW_TOKEN in local:
            continue
        if any(token in email.lower() for token in _NOREPLY_TOKENS):
            continue
        if any(domain == d or domain.endswith("." + d) for d in own_domains):
            continue
        sender = email
        break

    return sender, receiver


def _parse_quantity(patterns: tuple[Pattern, ...], text: str) -> Optional[int]:
    raw = _first_match(patterns, text)
    if raw is None:
        return None
    quantity = int(raw)
    return quantity if quantity > 0 else None


def _parse_with_vocabulary(
    vocab: PlatformVocabulary, body: str, subject: str
) -> ParseResult:
    """Run the common extraction steps using one platform's vocabulary."""
    try:
        data = ParsedTransfer(platform=vocab.platform)
        data.transfer_code = extract_labeled_transfer_code(body)

        data.event_name = _first_match(vocab.subject_event, subject or "") or _first_match(
            vocab.body_event, body
        )
        data.venue = _first_match(vocab.venue, body)
        data.event_date = _first_match(vocab.event_date, body)
        data.section = _first_match(vocab.section, body)
        data.row = _first_match(vocab.row, body)
        data.seat = _first_match(vocab.seat, body)
        data.quantity = _parse_quantity(vocab.quantity, body)
        data.confirmation_number = _first_match(vocab.confirmation, body)

        data.sender_email, data.receiver_email = _split_sender_receiver(
            extract_emails(body), vocab.own_domains
        )
        return ParseResult.ok(data)
    except Exception as exc:
        logger.warning(f"{vocab.platform} parser failed: {exc}")
        return ParseResult.failed(str(exc) or f"Failed to parse {vocab.platform} email")


# ---------------------------------------------------------------------------
# Platform parsers
# ---------------------------------------------------------------------------

def parse_ticketmaster(body: str, subject: str) -> ParseResult:
    """Ticketmaster transfer confirmations."""
    return _parse_with_vocabulary(TICKETMASTER_VOCABULARY, body, subject)


def parse_axs(body: str, subject: str) -> ParseResult:
    """AXS transfer confirmations ("Show:", "Sec:", "Qty:" labels)."""
    return _parse_with_vocabulary(AXS_VOCABULARY, body, subject)


def parse_stubhub(body: str, subject: str) -> ParseResult:
    """StubHub transfer confirmations."""
    return _parse_with_vocabulary(STUBHUB_VOCABULARY, body, subject)


_GENERIC_EVENT_BODY = _rx(r"\bevent[: \t]+([^\n]+)")
_GENERIC_EVENT_SUBJECT = _rx(r"\b(?:for|to)[ \t]+([^-\n]+)")
_GENERIC_CONFIRMATION = re.compile(
    r"(?i:\b(?:confirmation|order|reference))[ \t]*#?[ \t]*:?[ \t]*([A-Z0-9][A-Z0-9-]{3,})"
)


def parse_generic(body: str, subject: str) -> ParseResult:
    """
    Fallback for platforms without a dedicated parser.

    Only the transfer code, a loose event name and a loose confirmation
    number are attempted.
    """
    try:
        data = ParsedTransfer(platform=Platform.OTHER.value)
        data.transfer_code = extract_labeled_transfer_code(body)
        data.event_name = _first_match((_GENERIC_EVENT_BODY,), body) or _first_match(
            (_GENERIC_EVENT_SUBJECT,), subject or ""
        )
        data.confirmation_number = _first_match((_GENERIC_CONFIRMATION,), body)
        return ParseResult.ok(data)
    except Exception as exc:
        logger.warning(f"Generic parser failed: {exc}")
        return ParseResult.failed(str(exc) or "Failed to parse email")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PLATFORM_PARSERS: dict[str, ParserFn] = {
    Platform.TICKETMASTER.value: parse_ticketmaster,
    Platform.AXS.value: parse_axs,
    Platform.STUBHUB.value: parse_stubhub,
    Platform.OTHER.value: parse_generic,
}

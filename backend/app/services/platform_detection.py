"""
Heuristic ticket-platform detection for inbound transfer emails.

Case-insensitive substring search over the sender address and body, in a
fixed priority order. A body that merely mentions another platform (e.g. a
price comparison line) can win detection, so callers that already know the
platform should pass it as a hint to the parser instead.
"""

from app.models.transfer import Platform

# (platform, tokens checked in the From address, tokens checked in the body).
# Order matters: the first platform with any hit wins.
_DETECTION_RULES: tuple[tuple[Platform, tuple[str, ...], tuple[str, ...]], ...] = (
    (Platform.TICKETMASTER, ("ticketmaster",), ("ticketmaster",)),
    (Platform.AXS, ("axs.com", "aegpresents"), ("axs.com",)),
    (Platform.STUBHUB, ("stubhub",), ("stubhub",)),
    (Platform.SEATGEEK, ("seatgeek",), ("seatgeek",)),
    (Platform.VIVID_SEATS, ("vividseats",), ("vivid seats", "vividseats")),
    (Platform.GAMETIME, ("gametime",), ("gametime",)),
)


def detect_platform(body: str, from_address: str) -> str:
    """
    Return the platform id for an email, or "OTHER" when nothing matches.

    Examples:
        detect_platform("...", "noreply@ticketmaster.com") -> "TICKETMASTER"
        detect_platform("Visit stubhub.com/help", "a@b.com")  -> "STUBHUB"
        detect_platform("", "")                              -> "OTHER"
    """
    body_lower = (body or "").lower()
    from_lower = (from_address or "").lower()

    for platform, from_tokens, body_tokens in _DETECTION_RULES:
        if any(token in from_lower for token in from_tokens):
            return platform.value
        if any(token in body_lower for token in body_tokens):
            return platform.value

    return Platform.OTHER.value

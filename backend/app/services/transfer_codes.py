"""
Transfer code and escrow address conventions.

A transfer-based listing gets a short code (e.g. "TM-4K7Q2ZB") that the seller
includes when transferring tickets to the platform escrow mailbox
escrow+<platform>@<ESCROW_EMAIL_DOMAIN>. The webhook later reads both back:
the code from the confirmation body, the platform from the recipient.

Generated codes must stay matchable by transfer_fields.TRANSFER_CODE_RE
(2 letters, hyphen, 5-10 uppercase alphanumerics).
"""

import os
import re
import secrets
import string
from typing import Optional

ESCROW_EMAIL_DOMAIN = os.getenv("ESCROW_EMAIL_DOMAIN", "crowtickets.com")

_CODE_SUFFIX_LENGTH = 7
_CODE_ALPHABET = string.ascii_uppercase + string.digits

_PLATFORM_HINT_RE = re.compile(r"\bescrow\+(\w+)@", re.IGNORECASE)


def generate_transfer_code(platform: str) -> str:
    """
    Build a transfer code from the platform's first two letters plus a random
    7-character uppercase alphanumeric suffix.

    Raises ValueError if the platform id has fewer than two leading letters.
    """
    prefix = (platform or "").strip()[:2].upper()
    if len(prefix) != 2 or not prefix.isalpha() or not prefix.isascii():
        raise ValueError(f"Cannot derive a transfer code prefix from platform {platform!r}")

    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_SUFFIX_LENGTH))
    return f"{prefix}-{suffix}"


def escrow_email_for_platform(platform: str, domain: Optional[str] = None) -> str:
    """escrow+<platform lowercased>@<domain>, e.g. escrow+axs@crowtickets.com."""
    return f"escrow+{platform.strip().lower()}@{domain or ESCROW_EMAIL_DOMAIN}"


def extract_platform_hint(recipient: Optional[str]) -> Optional[str]:
    """
    Read the platform back out of an escrow recipient address.

    Works on bare addresses, "Name <addr>" wrappers and comma-separated
    recipient lists. Returns the platform uppercased, or None when the
    address does not follow the escrow+<platform>@ convention.
    """
    if not recipient:
        return None
    m = _PLATFORM_HINT_RE.search(recipient)
    return m.group(1).upper() if m else None

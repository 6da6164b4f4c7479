"""
Provider-agnostic inbound email model.

Email relays (SendGrid Inbound Parse, Mailgun routes, custom forwarders) all
post slightly different shapes. The adapter layer maps them onto this model
before the webhook router or the reconciler ever see the data.
"""

from typing import Optional
from pydantic import BaseModel


class InboundEmail(BaseModel):
    """
    Normalized inbound email, relay-agnostic.

    text is the plain-text body the transfer parsers run against; html is
    carried along but never parsed.
    """

    sender_email: str
    recipient_email: str
    subject: str
    text: str
    html: Optional[str] = None
    received_at: Optional[str] = None  # ISO timestamp reported by the relay, if any

"""
Pydantic models for ticket-transfer verification.

Models:
  Platform               — ticket platform identifiers
  VerificationStatus     — listing / transfer record verification states
  ParsedTransfer         — structured fields pulled out of a confirmation email
  ParseResult            — tagged success/failure wrapper returned by parsers
  TransferRecord         — DB row from the ticket_transfers audit table
  ReconcileOutcome       — what the reconciler decided for one inbound email
  ParserTestRequest      — body of the operator parser test endpoint
  ResolveTransferRequest — admin body for manually linking a record to a listing
  DismissTransferRequest — admin body for closing a record without a listing
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    TICKETMASTER = "TICKETMASTER"
    AXS = "AXS"
    STUBHUB = "STUBHUB"
    SEATGEEK = "SEATGEEK"
    VIVID_SEATS = "VIVID_SEATS"
    GAMETIME = "GAMETIME"
    OTHER = "OTHER"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    # Only used on transfer records: the parser itself blew up
    PARSE_ERROR = "PARSE_ERROR"


# Sentinel stored in ticket_transfers.transfer_code when no code was found
UNKNOWN_TRANSFER_CODE = "UNKNOWN"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ParsedTransfer(BaseModel):
    """
    Best-effort transfer metadata from a forwarded confirmation email.

    Only platform and parsed_at are guaranteed. Every other field may be None
    and downstream code must tolerate that.
    """

    platform: str
    parsed_at: datetime = Field(default_factory=_utcnow)
    transfer_code: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[str] = None  # cleaned display text, not a calendar date
    venue: Optional[str] = None
    section: Optional[str] = None
    row: Optional[str] = None
    seat: Optional[str] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    confirmation_number: Optional[str] = None
    sender_email: Optional[str] = None
    receiver_email: Optional[str] = None


class ParseResult(BaseModel):
    """Outcome of a single parser call. Parsers return this instead of raising."""

    success: bool
    data: Optional[ParsedTransfer] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: ParsedTransfer) -> "ParseResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: str) -> "ParseResult":
        return cls(success=False, error=error)


class TransferRecord(BaseModel):
    """Full ticket_transfers record from the database."""
    model_config = {"from_attributes": True}

    id: str
    listing_id: Optional[str] = None
    transfer_code: str
    sender_email: Optional[str] = None
    receiver_email: Optional[str] = None
    received_at: str
    transfer_email_data: Optional[dict[str, Any]] = None
    parsed_data: Optional[dict[str, Any]] = None
    verification_status: VerificationStatus
    verification_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    created_at: Optional[str] = None


class ReconcileOutcome(BaseModel):
    """
    Terminal state of one inbound email after reconciliation.

    status is one of:
      verified      — listing found and flipped to VERIFIED
      duplicate     — listing was already VERIFIED; record kept, listing untouched
      no_code       — no transfer code in the email
      no_listing    — code found but no listing carries it
      parse_failed  — the parser raised; record kept with PARSE_ERROR
    """

    status: str
    message: str
    transfer_id: Optional[str] = None
    listing_id: Optional[str] = None
    transfer_code: Optional[str] = None
    verification_status: Optional[VerificationStatus] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "verified"


class ParserTestRequest(BaseModel):
    """
    Request body for POST /api/email/test.

    Either use_sample (TICKETMASTER, AXS, STUBHUB) or all of from/to/subject/
    text must be given. platform skips detection, like a webhook hint.
    """
    model_config = {"populate_by_name": True}

    from_address: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    platform: Optional[str] = None
    use_sample: Optional[str] = Field(default=None, alias="useSample")


class ResolveTransferRequest(BaseModel):
    """
    Request body for POST /api/admin/transfers/{transfer_id}/resolve.

    listing_id is the listing the reviewer has identified as the owner of
    this transfer email.
    """
    listing_id: str
    notes: Optional[str] = None


class DismissTransferRequest(BaseModel):
    """
    Request body for POST /api/admin/transfers/{transfer_id}/dismiss.

    reason is stored as the record's verification note.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(min_length=1)

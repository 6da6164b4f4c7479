"""
Reconciles an inbound transfer confirmation email against pending listings.

One call to TransferReconciler.reconcile() handles one inbound email start to
finish. Outcomes (see ReconcileOutcome.status):

  parse_failed  parser raised          -> PARSE_ERROR record
  no_code       no transfer code       -> FAILED record, code "UNKNOWN"
  no_listing    code matches nothing   -> FAILED record, listing_id NULL
  duplicate     listing already VERIFIED -> FAILED record, listing untouched
  verified      listing matched        -> VERIFIED record + listing VERIFIED

Every path writes exactly one ticket_transfers row so no inbound email is
silently dropped. Only TransferStoreError escapes this class.

The seller notification is handed to `schedule` when one is given (the
webhook passes BackgroundTasks.add_task) so the Resend call runs after the
response is sent.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.models.inbound_email import InboundEmail
from app.models.transfer import (
    UNKNOWN_TRANSFER_CODE,
    ParsedTransfer,
    ReconcileOutcome,
    VerificationStatus,
)
from app.services.notifier import SellerNotifier
from app.services.transfer_codes import extract_platform_hint
from app.services.transfer_email_parser import TransferEmailParser
from app.services.transfer_store import TransferStore

logger = logging.getLogger(__name__)

# Body characters kept in the audit snapshot
_BODY_SNAPSHOT_CHARS = 1000

# ticket_details keys copied from the parse; absent values fall back to the listing
_DETAIL_FIELDS = (
    "event_name",
    "venue",
    "event_date",
    "section",
    "row",
    "seat",
    "quantity",
    "confirmation_number",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_email_snapshot(email: InboundEmail, received_at: str) -> dict:
    """Serializable copy of the raw email kept on the transfer record."""
    return {
        "subject": email.subject,
        "from": email.sender_email,
        "to": email.recipient_email,
        "body": (email.text or "")[:_BODY_SNAPSHOT_CHARS],
        "received_at": email.received_at or received_at,
    }


def merge_ticket_details(
    parsed: ParsedTransfer, listing: dict, verified_via: str = "email"
) -> dict:
    """
    Build listings.ticket_details from a parse.

    Parsed values win; when a field was not found in the email the existing
    listing column (or previous ticket_details entry) is kept.
    """
    existing = listing.get("ticket_details") or {}
    if not isinstance(existing, dict):
        existing = {}

    details: dict = {}
    for field in _DETAIL_FIELDS:
        value = getattr(parsed, field)
        if value is None:
            value = listing.get(field)
        if value is None:
            value = existing.get(field)
        details[field] = value

    details["verified_at"] = _now_iso()
    details["verified_via"] = verified_via
    return details


class TransferReconciler:
    def __init__(
        self,
        parser: TransferEmailParser,
        store: TransferStore,
        notifier: Optional[SellerNotifier] = None,
    ):
        self.parser = parser
        self.store = store
        self.notifier = notifier

    def reconcile(
        self,
        email: InboundEmail,
        schedule: Optional[Callable[..., Any]] = None,
    ) -> ReconcileOutcome:
        received_at = _now_iso()
        snapshot = build_email_snapshot(email, received_at)

        platform_hint = extract_platform_hint(email.recipient_email)
        logger.info(f"Transfer email from {email.sender_email!r}, platform hint: {platform_hint}")

        result = self.parser.parse_email(
            email.text, email.subject, email.sender_email, platform_hint
        )

        # --- Parser blew up: keep the email for forensics --------------------
        if not result.success or result.data is None:
            logger.error(f"Failed to parse transfer email: {result.error}")
            record = self.store.insert_transfer_record({
                "listing_id": None,
                "transfer_code": UNKNOWN_TRANSFER_CODE,
                "sender_email": None,
                "receiver_email": None,
                "received_at": received_at,
                "transfer_email_data": snapshot,
                "parsed_data": None,
                "verification_status": VerificationStatus.PARSE_ERROR.value,
                "verification_notes": f"Parser error: {result.error}",
            })
            return ReconcileOutcome(
                status="parse_failed",
                message="Failed to parse email",
                error=result.error,
                transfer_id=record.get("id"),
                verification_status=VerificationStatus.PARSE_ERROR,
            )

        parsed = result.data
        base_record = {
            "sender_email": parsed.sender_email,
            "receiver_email": parsed.receiver_email,
            "received_at": received_at,
            "transfer_email_data": snapshot,
            "parsed_data": parsed.model_dump(mode="json"),
        }

        # --- No code --------------------------------------------------------
        if not parsed.transfer_code:
            logger.warning("No transfer code found in email")
            record = self.store.insert_transfer_record({
                **base_record,
                "listing_id": None,
                "transfer_code": UNKNOWN_TRANSFER_CODE,
                "verification_status": VerificationStatus.FAILED.value,
                "verification_notes": "No transfer code found in email",
            })
            return ReconcileOutcome(
                status="no_code",
                message="No transfer code found - saved for manual review",
                transfer_id=record.get("id"),
                transfer_code=UNKNOWN_TRANSFER_CODE,
                verification_status=VerificationStatus.FAILED,
            )

        code = parsed.transfer_code
        listing = self.store.find_listing_by_transfer_code(code)

        # --- Code, but no listing carries it ----------------------------------
        if not listing:
            logger.warning(f"No listing found for transfer code: {code}")
            record = self.store.insert_transfer_record({
                **base_record,
                "listing_id": None,
                "transfer_code": code,
                "verification_status": VerificationStatus.FAILED.value,
                "verification_notes": f"No listing found with transfer code: {code}",
            })
            return ReconcileOutcome(
                status="no_listing",
                message="No matching listing found - saved for manual review",
                transfer_id=record.get("id"),
                transfer_code=code,
                verification_status=VerificationStatus.FAILED,
            )

        # --- Match: record + verify in one transaction ------------------------
        logger.info(f"Found matching listing {listing['id']} for transfer code {code}")
        row = self.store.record_verified_transfer(
            listing_id=listing["id"],
            record={
                **base_record,
                "transfer_code": code,
                "verification_notes": "Automatically verified via email webhook",
            },
            ticket_details=merge_ticket_details(parsed, listing),
        )

        if row.get("duplicate"):
            logger.warning(f"Listing {listing['id']} already verified; duplicate transfer email recorded")
            return ReconcileOutcome(
                status="duplicate",
                message="Listing already verified - duplicate transfer email saved",
                transfer_id=row.get("transfer_id"),
                listing_id=listing["id"],
                transfer_code=code,
                verification_status=VerificationStatus.FAILED,
            )

        logger.info(f"Listing {listing['id']} verified (transfer {row.get('transfer_id')})")
        self._notify_seller(listing, code, schedule)

        return ReconcileOutcome(
            status="verified",
            message="Transfer verified successfully",
            transfer_id=row.get("transfer_id"),
            listing_id=listing["id"],
            transfer_code=code,
            verification_status=VerificationStatus.VERIFIED,
        )

    def _notify_seller(
        self,
        listing: dict,
        transfer_code: str,
        schedule: Optional[Callable[..., Any]] = None,
    ) -> None:
        """Best-effort; a notification problem never changes the outcome."""
        if self.notifier is None or not listing.get("seller_id"):
            return
        if schedule is not None:
            schedule(self._send_seller_notification, listing, transfer_code)
        else:
            self._send_seller_notification(listing, transfer_code)

    def _send_seller_notification(self, listing: dict, transfer_code: str) -> None:
        seller = self.store.get_user_contact(listing["seller_id"])
        if not seller or not seller.get("email"):
            logger.warning(f"No contact email for seller of listing {listing['id']}")
            return
        self.notifier.notify_transfer_verified(
            seller_email=seller["email"],
            seller_name=seller.get("name"),
            listing_id=listing["id"],
            listing_title=listing.get("title") or listing.get("event_name") or "your listing",
            transfer_code=transfer_code,
        )

"""
Tests for TransferReconciler.

The store and notifier are mocked; the parser is the real default table so
these double as end-to-end parsing checks.

Coverage:
  - Scenario A: code matches a pending listing -> VERIFIED, seller notified
  - Scenario B: no code -> FAILED record with code UNKNOWN
  - Scenario C: code matches nothing -> FAILED record, listing_id None
  - Scenario D: listing already verified -> duplicate, listing untouched
  - Recipient platform hint beats a passing mention of another platform
  - Seller notification can be deferred to a scheduler
  - Parser failure -> PARSE_ERROR record
  - Every path writes exactly one audit record
  - Store errors propagate
"""

from unittest.mock import MagicMock

import pytest

from app.models.inbound_email import InboundEmail
from app.models.transfer import ParsedTransfer, ParseResult
from app.services.platform_detection import detect_platform
from app.services.sample_emails import SAMPLE_EMAILS
from app.services.transfer_email_parser import TransferEmailParser, build_default_parser
from app.services.transfer_reconciler import (
    TransferReconciler,
    build_email_snapshot,
    merge_ticket_details,
)
from app.services.transfer_store import TransferStoreError

_LISTING = {
    "id": "listing-1",
    "title": "2x Eras Tour floor seats",
    "event_name": "Taylor Swift - The Eras Tour",
    "venue": "SoFi Stadium",
    "transfer_code": "TM-ABC123",
    "escrow_email": "escrow+ticketmaster@crowtickets.com",
    "verification_status": "PENDING",
    "ticket_details": None,
    "seller_id": "seller-1",
}


def _sample_email(platform: str = "TICKETMASTER", **overrides) -> InboundEmail:
    sample = SAMPLE_EMAILS[platform]
    fields = {
        "sender_email": sample["from"],
        "recipient_email": sample["to"],
        "subject": sample["subject"],
        "text": sample["text"],
    }
    fields.update(overrides)
    return InboundEmail(**fields)


def _mock_store(listing=None, rpc_row=None) -> MagicMock:
    store = MagicMock()
    store.find_listing_by_transfer_code.return_value = listing
    store.insert_transfer_record.side_effect = lambda record: {"id": "transfer-new", **record}
    store.record_verified_transfer.return_value = rpc_row or {
        "transfer_id": "transfer-1",
        "listing_id": "listing-1",
        "verification_status": "VERIFIED",
        "duplicate": False,
    }
    store.get_user_contact.return_value = {
        "id": "seller-1", "email": "seller@example.com", "name": "Sam",
    }
    return store


def _audit_writes(store: MagicMock) -> int:
    return store.insert_transfer_record.call_count + store.record_verified_transfer.call_count


@pytest.fixture
def notifier():
    return MagicMock()


# ---------------------------------------------------------------------------
# Scenario A: match
# ---------------------------------------------------------------------------

class TestVerifiedTransfer:

    def test_listing_verified(self, notifier):
        store = _mock_store(listing=_LISTING)
        reconciler = TransferReconciler(build_default_parser(), store, notifier)

        outcome = reconciler.reconcile(_sample_email())

        assert outcome.success is True
        assert outcome.status == "verified"
        assert outcome.listing_id == "listing-1"
        assert outcome.transfer_id == "transfer-1"
        assert outcome.transfer_code == "TM-ABC123"
        assert outcome.verification_status.value == "VERIFIED"
        store.find_listing_by_transfer_code.assert_called_once_with("TM-ABC123")
        store.insert_transfer_record.assert_not_called()

    def test_verified_record_and_ticket_details(self, notifier):
        store = _mock_store(listing=_LISTING)
        TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())

        kwargs = store.record_verified_transfer.call_args.kwargs
        assert kwargs["listing_id"] == "listing-1"

        record = kwargs["record"]
        assert record["transfer_code"] == "TM-ABC123"
        assert record["receiver_email"] == "escrow+ticketmaster@crowtickets.com"
        assert record["verification_notes"] == "Automatically verified via email webhook"
        assert record["parsed_data"]["platform"] == "TICKETMASTER"
        assert record["transfer_email_data"]["from"] == "noreply@ticketmaster.com"

        details = kwargs["ticket_details"]
        assert details["section"] == "101"
        assert details["row"] == "15"
        assert details["confirmation_number"] == "45-67890/LOS"
        assert details["verified_via"] == "email"
        assert details["verified_at"]

    def test_seller_notified(self, notifier):
        store = _mock_store(listing=_LISTING)
        TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())

        store.get_user_contact.assert_called_once_with("seller-1")
        notifier.notify_transfer_verified.assert_called_once()
        kwargs = notifier.notify_transfer_verified.call_args.kwargs
        assert kwargs["seller_email"] == "seller@example.com"
        assert kwargs["listing_id"] == "listing-1"
        assert kwargs["transfer_code"] == "TM-ABC123"

    def test_missing_seller_contact_still_verifies(self, notifier):
        store = _mock_store(listing=_LISTING)
        store.get_user_contact.return_value = None

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())

        assert outcome.status == "verified"
        notifier.notify_transfer_verified.assert_not_called()

    def test_no_notifier(self):
        store = _mock_store(listing=_LISTING)
        outcome = TransferReconciler(build_default_parser(), store).reconcile(_sample_email())
        assert outcome.status == "verified"
        store.get_user_contact.assert_not_called()

    def test_platform_hint_from_recipient(self, notifier):
        # Body mentions Ticketmaster, but the escrow+axs@ recipient picks the AXS parser
        email = _sample_email(
            "AXS",
            text=SAMPLE_EMAILS["AXS"]["text"] + "\nAlso on sale at Ticketmaster.",
        )
        store = _mock_store(listing={**_LISTING, "transfer_code": "AX-XYZ789"})

        TransferReconciler(build_default_parser(), store, notifier).reconcile(email)

        record = store.record_verified_transfer.call_args.kwargs["record"]
        assert record["parsed_data"]["platform"] == "AXS"
        assert record["parsed_data"]["quantity"] == 2

    def test_axs_recipient_wins_over_passing_stubhub_mention(self, notifier):
        body = SAMPLE_EMAILS["AXS"]["text"] + "\nSame seats were listed for more on StubHub.\n"
        email = _sample_email("AXS", sender_email="seller@example.com", text=body)
        assert detect_platform(email.text, email.sender_email) == "STUBHUB"
        store = _mock_store(listing={**_LISTING, "transfer_code": "AX-XYZ789"})

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(email)

        assert outcome.status == "verified"
        store.find_listing_by_transfer_code.assert_called_once_with("AX-XYZ789")
        record = store.record_verified_transfer.call_args.kwargs["record"]
        assert record["parsed_data"]["platform"] == "AXS"
        assert record["sender_email"] == "seller@example.com"

    def test_notification_deferred_to_scheduler(self, notifier):
        store = _mock_store(listing=_LISTING)
        scheduled = []

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(
            _sample_email(), schedule=lambda fn, *args: scheduled.append((fn, args))
        )

        assert outcome.status == "verified"
        assert len(scheduled) == 1
        store.get_user_contact.assert_not_called()
        notifier.notify_transfer_verified.assert_not_called()

        fn, args = scheduled[0]
        fn(*args)
        notifier.notify_transfer_verified.assert_called_once()
        assert notifier.notify_transfer_verified.call_args.kwargs["transfer_code"] == "TM-ABC123"

    def test_nothing_scheduled_without_seller(self, notifier):
        store = _mock_store(listing={**_LISTING, "seller_id": None})
        scheduled = []

        TransferReconciler(build_default_parser(), store, notifier).reconcile(
            _sample_email(), schedule=lambda fn, *args: scheduled.append(fn)
        )

        assert scheduled == []


# ---------------------------------------------------------------------------
# Scenarios B, C, D
# ---------------------------------------------------------------------------

class TestUnmatchedTransfer:

    def test_no_code(self, notifier):
        store = _mock_store()
        email = _sample_email(text="Your tickets have been transferred. Thanks!")

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(email)

        assert outcome.success is False
        assert outcome.status == "no_code"
        assert outcome.message == "No transfer code found - saved for manual review"
        store.find_listing_by_transfer_code.assert_not_called()

        record = store.insert_transfer_record.call_args.args[0]
        assert record["transfer_code"] == "UNKNOWN"
        assert record["listing_id"] is None
        assert record["verification_status"] == "FAILED"
        assert record["verification_notes"] == "No transfer code found in email"
        notifier.notify_transfer_verified.assert_not_called()

    def test_no_listing(self, notifier):
        store = _mock_store(listing=None)

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())

        assert outcome.status == "no_listing"
        assert outcome.message == "No matching listing found - saved for manual review"
        assert outcome.transfer_code == "TM-ABC123"

        record = store.insert_transfer_record.call_args.args[0]
        assert record["transfer_code"] == "TM-ABC123"
        assert record["listing_id"] is None
        assert record["verification_status"] == "FAILED"
        assert record["verification_notes"] == "No listing found with transfer code: TM-ABC123"
        store.record_verified_transfer.assert_not_called()

    def test_duplicate_delivery(self, notifier):
        store = _mock_store(
            listing={**_LISTING, "verification_status": "VERIFIED"},
            rpc_row={
                "transfer_id": "transfer-2",
                "listing_id": "listing-1",
                "verification_status": "FAILED",
                "duplicate": True,
            },
        )

        outcome = TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())

        assert outcome.success is False
        assert outcome.status == "duplicate"
        assert outcome.transfer_id == "transfer-2"
        assert outcome.verification_status.value == "FAILED"
        notifier.notify_transfer_verified.assert_not_called()


# ---------------------------------------------------------------------------
# Parser failure
# ---------------------------------------------------------------------------

def _failing_parser() -> TransferEmailParser:
    return TransferEmailParser({"OTHER": lambda body, subject: ParseResult.failed("boom")})


class TestParseFailure:

    def test_parse_error_record(self, notifier):
        store = _mock_store()

        outcome = TransferReconciler(_failing_parser(), store, notifier).reconcile(_sample_email())

        assert outcome.status == "parse_failed"
        assert outcome.error == "boom"
        assert outcome.transfer_id == "transfer-new"

        record = store.insert_transfer_record.call_args.args[0]
        assert record["verification_status"] == "PARSE_ERROR"
        assert record["transfer_code"] == "UNKNOWN"
        assert record["parsed_data"] is None
        assert record["verification_notes"] == "Parser error: boom"
        assert record["transfer_email_data"]["subject"] == SAMPLE_EMAILS["TICKETMASTER"]["subject"]


# ---------------------------------------------------------------------------
# Audit completeness and errors
# ---------------------------------------------------------------------------

class TestAuditCompleteness:

    @pytest.mark.parametrize("parser_factory,listing,text", [
        (build_default_parser, _LISTING, None),
        (build_default_parser, None, None),
        (build_default_parser, None, "No code in here"),
        (_failing_parser, None, None),
    ])
    def test_exactly_one_record_per_email(self, parser_factory, listing, text, notifier):
        store = _mock_store(listing=listing)
        email = _sample_email(text=text) if text else _sample_email()

        TransferReconciler(parser_factory(), store, notifier).reconcile(email)

        assert _audit_writes(store) == 1

    def test_store_error_propagates(self, notifier):
        store = _mock_store()
        store.find_listing_by_transfer_code.side_effect = TransferStoreError("db down")

        with pytest.raises(TransferStoreError):
            TransferReconciler(build_default_parser(), store, notifier).reconcile(_sample_email())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:

    def test_snapshot_truncates_body(self):
        email = _sample_email(text="x" * 5000)
        snapshot = build_email_snapshot(email, "2024-08-01T00:00:00+00:00")
        assert len(snapshot["body"]) == 1000
        assert snapshot["received_at"] == "2024-08-01T00:00:00+00:00"

    def test_snapshot_prefers_relay_timestamp(self):
        email = _sample_email(received_at="2024-07-31T23:59:00Z")
        snapshot = build_email_snapshot(email, "2024-08-01T00:00:00+00:00")
        assert snapshot["received_at"] == "2024-07-31T23:59:00Z"

    def test_merge_prefers_parsed_values(self):
        parsed = ParsedTransfer(platform="AXS", venue="Crypto.com Arena", section="215")
        details = merge_ticket_details(parsed, {"venue": "Staples Center", "event_name": "Bad Bunny"})

        assert details["venue"] == "Crypto.com Arena"
        assert details["section"] == "215"
        assert details["event_name"] == "Bad Bunny"
        assert details["row"] is None

    def test_merge_falls_back_to_existing_ticket_details(self):
        parsed = ParsedTransfer(platform="OTHER")
        details = merge_ticket_details(
            parsed, {"ticket_details": {"row": "J", "quantity": 2}}, verified_via="manual_review"
        )
        assert details["row"] == "J"
        assert details["quantity"] == 2
        assert details["verified_via"] == "manual_review"

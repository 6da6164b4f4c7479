"""
Supabase persistence for the transfer verification pipeline.

Tables:
  listings          — read (match by transfer_code), updated on verification
  ticket_transfers  — append-only audit trail, one row per inbound email
  users             — seller contact lookup for notifications

The "insert VERIFIED transfer + flip listing" pair runs inside the
record_verified_transfer() Postgres function (see
supabase/migrations/20261018090000_ticket_transfers.sql) so both writes commit
or roll back together and concurrent deliveries of the same code serialize on
the listing row.

Every failure talking to Supabase is re-raised as TransferStoreError.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client

logger = logging.getLogger(__name__)

_LISTING_COLUMNS = (
    "id, title, event_name, venue, transfer_code, escrow_email, "
    "verification_status, ticket_details, seller_id"
)

# Statuses an admin still needs to look at
_REVIEW_STATUSES = ["FAILED", "PARSE_ERROR"]


class TransferStoreError(Exception):
    """Raised when the listings / ticket_transfers store is unreachable or rejects a write."""


def _rpc_row(data: Any) -> Optional[dict]:
    """Supabase returns a function's jsonb result either bare or wrapped in a list."""
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


class TransferStore:
    def __init__(self, client: Optional[Client]):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            raise TransferStoreError(
                "SUPABASE_SERVICE_KEY is required for transfer verification"
            )
        return self._client

    def find_listing_by_transfer_code(self, transfer_code: str) -> Optional[dict]:
        """
        Exact, case-sensitive match on listings.transfer_code.

        Returns the first matching listing row, or None.
        """
        try:
            result = (
                self.client.table("listings")
                .select(_LISTING_COLUMNS)
                .eq("transfer_code", transfer_code)
                .limit(1)
                .execute()
            )
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to look up listing by transfer code: {e}") from e
        return result.data[0] if result.data else None

    def get_listing(self, listing_id: str) -> Optional[dict]:
        try:
            result = (
                self.client.table("listings")
                .select(_LISTING_COLUMNS)
                .eq("id", listing_id)
                .execute()
            )
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to fetch listing {listing_id}: {e}") from e
        return result.data[0] if result.data else None

    def insert_transfer_record(self, record: dict) -> dict:
        """Append one row to ticket_transfers and return it."""
        try:
            result = self.client.table("ticket_transfers").insert(record).execute()
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to insert transfer record: {e}") from e
        if not result.data:
            raise TransferStoreError("ticket_transfers insert returned no data")
        return result.data[0]

    def record_verified_transfer(
        self, listing_id: str, record: dict, ticket_details: dict
    ) -> dict:
        """
        Atomically insert the transfer record and verify the listing.

        Returns {"transfer_id", "listing_id", "verification_status",
        "duplicate"}. duplicate is True when the listing was already VERIFIED;
        in that case the record is stored as FAILED and the listing untouched.
        """
        try:
            result = self.client.rpc(
                "record_verified_transfer",
                {
                    "p_listing_id": listing_id,
                    "p_transfer": record,
                    "p_ticket_details": ticket_details,
                },
            ).execute()
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to record verified transfer: {e}") from e

        row = _rpc_row(result.data)
        if not row:
            raise TransferStoreError("record_verified_transfer returned no data")
        return row

    def get_transfer(self, transfer_id: str) -> Optional[dict]:
        try:
            result = (
                self.client.table("ticket_transfers")
                .select("*")
                .eq("id", transfer_id)
                .execute()
            )
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to fetch transfer {transfer_id}: {e}") from e
        return result.data[0] if result.data else None

    def list_transfers_for_review(self) -> list[dict]:
        """Unreviewed FAILED / PARSE_ERROR records, oldest first."""
        try:
            result = (
                self.client.table("ticket_transfers")
                .select("*")
                .in_("verification_status", _REVIEW_STATUSES)
                .is_("reviewed_at", "null")
                .order("received_at")
                .execute()
            )
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to list transfers for review: {e}") from e
        return result.data or []

    def resolve_transfer(
        self,
        transfer_id: str,
        listing_id: str,
        reviewed_by: str,
        notes: str,
        ticket_details: dict,
    ) -> Optional[dict]:
        """
        Link a reviewed record to a listing and verify that listing, atomically.

        Returns None if the record had already been reviewed by someone else.
        """
        try:
            result = self.client.rpc(
                "resolve_transfer_record",
                {
                    "p_transfer_id": transfer_id,
                    "p_listing_id": listing_id,
                    "p_reviewed_by": reviewed_by,
                    "p_notes": notes,
                    "p_ticket_details": ticket_details,
                },
            ).execute()
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to resolve transfer {transfer_id}: {e}") from e
        return _rpc_row(result.data)

    def dismiss_transfer(
        self, transfer_id: str, reviewed_by: str, notes: str
    ) -> Optional[dict]:
        """
        Close a review record without linking it. The listing is not touched.

        The update only applies while reviewed_at is still null, so the
        first reviewer wins. Returns None if the record was already reviewed.
        """
        try:
            result = (
                self.client.table("ticket_transfers")
                .update({
                    "reviewed_by": reviewed_by,
                    "reviewed_at": datetime.now(timezone.utc).isoformat(),
                    "verification_notes": notes,
                })
                .eq("id", transfer_id)
                .is_("reviewed_at", "null")
                .execute()
            )
        except TransferStoreError:
            raise
        except Exception as e:
            raise TransferStoreError(f"Failed to dismiss transfer {transfer_id}: {e}") from e
        return result.data[0] if result.data else None

    def get_user_contact(self, user_id: str) -> Optional[dict]:
        """Return {"id", "email", "name"} for a user, or None. Best-effort."""
        try:
            result = (
                self.client.table("users")
                .select("id, email, name")
                .eq("id", user_id)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Failed to look up contact for user {user_id!r}: {e}")
            return None
        return result.data[0] if result.data else None

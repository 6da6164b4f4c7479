"""
Admin review of transfer records the webhook could not match.

FAILED and PARSE_ERROR ticket_transfers rows sit in a review queue until an
admin links them to the right listing or dismisses them. Linking marks the
record reviewed and verifies the listing in one database transaction
(resolve_transfer_record). Dismissing only marks the record reviewed.

Endpoints:
  GET  (root)                   — unreviewed FAILED / PARSE_ERROR records (auth: admin)
  POST /{transfer_id}/resolve   — link a record to a listing (auth: admin)
  POST /{transfer_id}/dismiss   — close a record without a listing (auth: admin)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from app.auth import require_admin
from app.db import supabase_admin
from app.models.transfer import (
    DismissTransferRequest,
    ParsedTransfer,
    Platform,
    ResolveTransferRequest,
    TransferRecord,
    VerificationStatus,
)
from app.services.transfer_reconciler import merge_ticket_details
from app.services.transfer_store import TransferStore, TransferStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_transfer_store() -> TransferStore:
    return TransferStore(supabase_admin)


def _parsed_from_record(record: dict) -> ParsedTransfer:
    """Rebuild the stored parse; PARSE_ERROR records have none."""
    parsed_data = record.get("parsed_data")
    if parsed_data:
        try:
            return ParsedTransfer.model_validate(parsed_data)
        except ValidationError as e:
            logger.warning(f"Stored parse for transfer {record.get('id')} is unreadable: {e}")
    return ParsedTransfer(platform=Platform.OTHER.value)


@router.get("", response_model=list[TransferRecord])
async def list_transfers_for_review(
    _admin_id: str = Depends(require_admin),
    store: TransferStore = Depends(get_transfer_store),
):
    try:
        rows = store.list_transfers_for_review()
    except TransferStoreError as e:
        logger.error(f"Failed to list transfers for review: {e}")
        raise HTTPException(status_code=500, detail="Failed to load transfer records")
    return [TransferRecord(**row) for row in rows]


@router.post("/{transfer_id}/resolve")
async def resolve_transfer(
    transfer_id: str,
    body: ResolveTransferRequest,
    admin_id: str = Depends(require_admin),
    store: TransferStore = Depends(get_transfer_store),
):
    """
    Link a FAILED / PARSE_ERROR record to a listing and verify the listing.

    Raises:
        404 if the record or the listing does not exist
        409 if the record has already been reviewed
    """
    try:
        record = store.get_transfer(transfer_id)
        if not record:
            raise HTTPException(status_code=404, detail="Transfer record not found")
        if record.get("reviewed_at"):
            raise HTTPException(status_code=409, detail="Transfer record already reviewed")

        listing = store.get_listing(body.listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")

        ticket_details = merge_ticket_details(
            _parsed_from_record(record), listing, verified_via="manual_review"
        )
        notes = body.notes or f"Manually linked to listing {body.listing_id}"

        row = store.resolve_transfer(
            transfer_id=transfer_id,
            listing_id=body.listing_id,
            reviewed_by=admin_id,
            notes=notes,
            ticket_details=ticket_details,
        )
    except TransferStoreError as e:
        logger.error(f"Failed to resolve transfer {transfer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to resolve transfer record")

    if row is None:
        # Another reviewer got there between our read and the update
        raise HTTPException(status_code=409, detail="Transfer record already reviewed")

    logger.info(f"Transfer {transfer_id} linked to listing {body.listing_id} by {admin_id}")
    return {
        "success": True,
        "message": "Transfer linked and listing verified",
        "data": {
            "transfer_id": transfer_id,
            "listing_id": body.listing_id,
            "verification_status": VerificationStatus.VERIFIED.value,
        },
    }


@router.post("/{transfer_id}/dismiss")
async def dismiss_transfer(
    transfer_id: str,
    body: DismissTransferRequest,
    admin_id: str = Depends(require_admin),
    store: TransferStore = Depends(get_transfer_store),
):
    """
    Close a FAILED / PARSE_ERROR record that belongs to no listing
    (spam, unrelated forwards, duplicate deliveries). Its status is kept.

    Raises:
        404 if the record does not exist
        409 if the record has already been reviewed
    """
    try:
        record = store.get_transfer(transfer_id)
        if not record:
            raise HTTPException(status_code=404, detail="Transfer record not found")
        if record.get("reviewed_at"):
            raise HTTPException(status_code=409, detail="Transfer record already reviewed")

        row = store.dismiss_transfer(
            transfer_id=transfer_id,
            reviewed_by=admin_id,
            notes=f"Dismissed: {body.reason}",
        )
    except TransferStoreError as e:
        logger.error(f"Failed to dismiss transfer {transfer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to dismiss transfer record")

    if row is None:
        raise HTTPException(status_code=409, detail="Transfer record already reviewed")

    logger.info(f"Transfer {transfer_id} dismissed by {admin_id}: {body.reason}")
    return {
        "success": True,
        "message": "Transfer dismissed",
        "data": {
            "transfer_id": transfer_id,
            "verification_status": record.get("verification_status"),
        },
    }

"""
Transfer email router.

Receives forwarded ticket transfer confirmations from the inbound email relay
and hands them to the TransferReconciler, which writes the audit record and
verifies the matching listing.

The webhook accepts JSON (custom forwarders) or form posts (SendGrid Inbound
Parse, Mailgun); payloads are normalized by the inbound_email_adapter service.

Environment variables
---------------------
INBOUND_WEBHOOK_SECRET    Shared secret checked in the X-Webhook-Secret header.

Endpoints:
  POST /webhook   — relay webhook (auth: X-Webhook-Secret)
  GET  /webhook   — liveness/info for relay configuration
  POST /test      — run detection + parsing on a sample or ad-hoc email (auth: admin)
  GET  /test      — usage info for /test
"""

import logging
import os
from typing import Optional

import anyio
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from app.auth import require_admin
from app.db import supabase_admin
from app.models.transfer import ParserTestRequest
from app.services.inbound_email_adapter import (
    InvalidEmailPayload,
    UnsupportedContentType,
    format_for_content_type,
    normalize_webhook,
)
from app.services.notifier import SellerNotifier
from app.services.sample_emails import SAMPLE_EMAILS
from app.services.transfer_codes import extract_platform_hint
from app.services.transfer_email_parser import TransferEmailParser
from app.services.transfer_reconciler import TransferReconciler
from app.services.transfer_store import TransferStore, TransferStoreError

logger = logging.getLogger(__name__)

router = APIRouter()

_TEXT_PREVIEW_CHARS = 200


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def _verify_webhook_secret(x_webhook_secret: Optional[str] = Header(None)) -> None:
    """
    Verify that the inbound webhook request carries the shared secret.

    Raises 401 if the secret is missing, unconfigured, or does not match.
    """
    expected = os.getenv("INBOUND_WEBHOOK_SECRET") or ""
    if not expected:
        logger.warning(
            "INBOUND_WEBHOOK_SECRET is not configured — all inbound webhook requests will be rejected"
        )
        raise HTTPException(status_code=401, detail="Webhook secret not configured")

    if not x_webhook_secret or x_webhook_secret != expected:
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


def get_transfer_parser(request: Request) -> TransferEmailParser:
    """The parser table built once in app.main."""
    return request.app.state.transfer_parser


def get_reconciler(
    parser: TransferEmailParser = Depends(get_transfer_parser),
) -> TransferReconciler:
    return TransferReconciler(
        parser=parser,
        store=TransferStore(supabase_admin),
        notifier=SellerNotifier(),
    )


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------

@router.post("/webhook")
async def receive_transfer_email(
    request: Request,
    background_tasks: BackgroundTasks,
    _: None = Depends(_verify_webhook_secret),
    reconciler: TransferReconciler = Depends(get_reconciler),
):
    """
    Process one forwarded transfer confirmation.

    Responses:
      200 success=true   listing verified; data carries the ids
                         (seller notification is sent after the response)
      200 success=false  no code / no listing / duplicate; record saved for review
      400                unsupported content type, bad JSON, missing fields
      422                the parser failed; PARSE_ERROR record saved
      500                the database rejected a read or write
    """
    content_type = request.headers.get("content-type")
    try:
        payload_format = format_for_content_type(content_type)
        if payload_format == "json":
            payload = await request.json()
        else:
            payload = await request.form()
        email = normalize_webhook(payload, payload_format)
    except UnsupportedContentType:
        logger.warning(f"Rejected transfer webhook with content type {content_type!r}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Unsupported content type"},
        )
    except InvalidEmailPayload as exc:
        logger.warning(f"Rejected transfer webhook: {exc}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing required email fields", "details": str(exc)},
        )
    except ValueError as exc:
        # Malformed JSON body
        logger.warning(f"Rejected transfer webhook with unreadable body: {exc}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request body"},
        )

    logger.info(f"Received transfer email: from={email.sender_email!r} subject={email.subject!r}")

    try:
        # Supabase and Resend calls block; keep them off the event loop
        outcome = await anyio.to_thread.run_sync(
            reconciler.reconcile, email, background_tasks.add_task
        )
    except TransferStoreError as exc:
        logger.error(f"Transfer webhook failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "details": str(exc)},
        )

    if outcome.status == "parse_failed":
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "Failed to parse email", "details": outcome.error},
        )

    if not outcome.success:
        return {"success": False, "message": outcome.message}

    return {
        "success": True,
        "message": outcome.message,
        "data": {
            "listing_id": outcome.listing_id,
            "transfer_id": outcome.transfer_id,
            "transfer_code": outcome.transfer_code,
            "verification_status": outcome.verification_status.value,
        },
    }


@router.get("/webhook")
async def webhook_info():
    return {
        "message": "Transfer email webhook endpoint",
        "method": "POST",
        "content_types": [
            "application/json",
            "multipart/form-data",
            "application/x-www-form-urlencoded",
        ],
        "required_fields": ["from", "to", "subject", "text"],
        "auth": "X-Webhook-Secret header",
    }


# ---------------------------------------------------------------------------
# Parser test endpoint
# ---------------------------------------------------------------------------

@router.post("/test")
async def test_transfer_parser(
    body: ParserTestRequest,
    _admin_id: str = Depends(require_admin),
    parser: TransferEmailParser = Depends(get_transfer_parser),
):
    """
    Run detection + parsing only. Nothing is written and no listing changes.

    Use use_sample=TICKETMASTER|AXS|STUBHUB for a built-in email, or supply
    from/to/subject/text.
    """
    sample_key = (body.use_sample or "").strip().upper()
    if sample_key and sample_key in SAMPLE_EMAILS:
        sample = SAMPLE_EMAILS[sample_key]
        from_address, to, subject, text = (
            sample["from"], sample["to"], sample["subject"], sample["text"]
        )
    elif body.from_address and body.to and body.subject and body.text:
        from_address, to, subject, text = body.from_address, body.to, body.subject, body.text
    else:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing required fields",
                "required": ["from", "to", "subject", "text"],
                "alternative": f"Use use_sample with one of: {', '.join(sorted(SAMPLE_EMAILS))}",
            },
        )

    hint = body.platform or extract_platform_hint(to)
    platform = parser.resolve_platform(text, from_address, hint)
    result = parser.parse_email(text, subject, from_address, platform)

    if not result.success or result.data is None:
        return {
            "success": False,
            "error": result.error,
            "email_data": {"from": from_address, "to": to, "subject": subject},
        }

    preview = text[:_TEXT_PREVIEW_CHARS]
    if len(text) > _TEXT_PREVIEW_CHARS:
        preview += "..."

    return {
        "success": True,
        "message": "Email parsed successfully",
        "input": {"from": from_address, "to": to, "subject": subject, "text_preview": preview},
        "detected": {"platform": platform, "hinted": bool(hint)},
        "parsed": result.data.model_dump(mode="json"),
    }


@router.get("/test")
async def test_parser_info():
    return {
        "message": "Transfer parser test endpoint",
        "usage": {
            "method": "POST",
            "body": {
                "from": "sender@example.com",
                "to": "escrow+ticketmaster@crowtickets.com",
                "subject": "Email subject",
                "text": "Email body",
                "platform": "Optional: TICKETMASTER, AXS, STUBHUB",
                "use_sample": "Optional: TICKETMASTER, AXS, STUBHUB",
            },
        },
        "samples": sorted(SAMPLE_EMAILS),
    }

"""
Outbound transactional email for the transfer pipeline.

Fire-and-forget: sends through the Resend REST API when RESEND_API_KEY is set,
otherwise only logs what would have been sent. Callers never see an exception
from here.
"""

import logging
import os
from html import escape
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"


class SellerNotifier:
    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        app_base_url: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("RESEND_API_KEY", "")
        self.from_email = from_email or os.getenv("EMAIL_FROM", "noreply@crowtickets.com")
        self.app_base_url = (
            app_base_url or os.getenv("APP_BASE_URL", "https://crowtickets.com")
        ).rstrip("/")
        self.timeout = timeout

    def send_email(self, to: str, subject: str, html: str) -> dict:
        if not self.api_key:
            logger.info(f"Email would be sent (Resend not configured): to={to!r} subject={subject!r}")
            return {"success": True, "simulated": True}

        try:
            response = httpx.post(
                _RESEND_API_URL,
                json={"from": self.from_email, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to send email to {to!r}: {e}")
            return {"success": False, "error": str(e)}

        logger.info(f"Email sent to {to!r}: {subject!r}")
        return {"success": True, "data": data}

    def notify_transfer_verified(
        self,
        seller_email: str,
        seller_name: Optional[str],
        listing_id: str,
        listing_title: str,
        transfer_code: str,
    ) -> dict:
        """Tell the seller their transfer arrived and the listing is live."""
        listing_url = f"{self.app_base_url}/listings/{listing_id}"
        html = (
            f"<p>Hi {escape(seller_name or 'there')},</p>"
            f"<p>We received and verified your ticket transfer for "
            f"<strong>{escape(listing_title)}</strong> "
            f"(transfer code <code>{escape(transfer_code)}</code>).</p>"
            f"<p>Your listing is now verified: "
            f'<a href="{escape(listing_url)}">{escape(listing_url)}</a></p>'
        )
        return self.send_email(
            to=seller_email,
            subject="Tickets Verified - Your Listing is Now Active",
            html=html,
        )

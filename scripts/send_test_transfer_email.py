#!/usr/bin/env python3
"""
Dev helper: send a sample transfer confirmation to the local Crow backend.

Takes one of the built-in platform samples (app.services.sample_emails),
optionally swaps in the transfer code of a real listing, and POST-s it to
/api/email/webhook the way the inbound relay would.

Usage
-----
# Ticketmaster sample as JSON, targeting localhost:8000
python scripts/send_test_transfer_email.py

# AXS sample carrying a real listing's transfer code
python scripts/send_test_transfer_email.py --platform axs --code AX-7QK2M9P

# Send as a SendGrid-style form post instead of JSON
python scripts/send_test_transfer_email.py --form

# Target a different backend URL
python scripts/send_test_transfer_email.py --url http://staging.example.com

Environment / .env
------------------
INBOUND_WEBHOOK_SECRET   Shared webhook secret (required unless --dry-run).
"""

import argparse
import json
import os
import re
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv

from app.services.sample_emails import SAMPLE_EMAILS
from app.services.transfer_fields import TRANSFER_CODE_RE


def _build_payload(platform: str, code: str = None) -> dict:
    """Copy of the sample for platform, with every transfer code replaced by code."""
    sample = dict(SAMPLE_EMAILS[platform])
    if code:
        sample["text"] = re.sub(TRANSFER_CODE_RE, code, sample["text"])
    return sample


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def main() -> int:
    # scripts/ lives one level below the project root
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_transfer_email.py",
        description="Send a sample transfer confirmation email to the Crow webhook.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_transfer_email.py
              python scripts/send_test_transfer_email.py --platform stubhub
              python scripts/send_test_transfer_email.py --code TM-4K7Q2ZB --form
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--platform",
        default="ticketmaster",
        type=str.upper,
        choices=sorted(SAMPLE_EMAILS),
        help="Which sample email to send (default: TICKETMASTER)",
    )
    parser.add_argument(
        "--code",
        default=None,
        metavar="TRANSFER_CODE",
        help="Replace the sample's transfer code, e.g. with a real listing's code.",
    )
    parser.add_argument(
        "--form",
        action="store_true",
        help="Post as application/x-www-form-urlencoded instead of JSON.",
    )
    parser.add_argument(
        "--secret",
        default=None,
        help="Override the webhook secret (default: INBOUND_WEBHOOK_SECRET).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload without sending it.",
    )

    args = parser.parse_args()

    secret = args.secret or os.getenv("INBOUND_WEBHOOK_SECRET", "")
    if not secret and not args.dry_run:
        print(
            "ERROR: No webhook secret found.\n"
            "Set INBOUND_WEBHOOK_SECRET in your environment or .env file, "
            "or pass --secret.",
            file=sys.stderr,
        )
        return 1

    payload = _build_payload(args.platform, args.code)
    endpoint = f"{args.url.rstrip('/')}/api/email/webhook"

    print(f"Endpoint : {endpoint}")
    print(f"Platform : {args.platform}")
    print(f"From     : {payload['from']}")
    print(f"To       : {payload['to']}")
    print(f"Subject  : {payload['subject']}")
    print(f"Format   : {'form' if args.form else 'json'}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2))
        return 0

    request_kwargs = {"data": payload} if args.form else {"json": payload}
    try:
        response = httpx.post(
            endpoint,
            headers={"X-Webhook-Secret": secret},
            timeout=30,
            **request_kwargs,
        )
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn app.main:app --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())

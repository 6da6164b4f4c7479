"""
Captured-style transfer confirmation emails, one per supported platform.

Served by POST /api/email/test (use_sample=...) so operators can check a
parser change without setting up email forwarding.
"""

import textwrap

SAMPLE_EMAILS: dict[str, dict[str, str]] = {
    "TICKETMASTER": {
        "from": "noreply@ticketmaster.com",
        "to": "escrow+ticketmaster@crowtickets.com",
        "subject": "Your Tickets for Taylor Swift - The Eras Tour have been transferred",
        "text": textwrap.dedent("""\
            Your tickets have been successfully transferred!

            Event: Taylor Swift - The Eras Tour
            Venue: SoFi Stadium
            Date: Saturday, August 5, 2024 at 7:00 PM
            Section: 101
            Row: 15
            Seats: 1-2

            Transfer Code: TM-ABC123

            Confirmation #: 45-67890/LOS

            The tickets have been sent to: escrow+ticketmaster@crowtickets.com

            The recipient will receive an email with instructions to accept the transfer.

            Thank you for using Ticketmaster!
        """),
    },
    "AXS": {
        "from": "noreply@axs.com",
        "to": "escrow+axs@crowtickets.com",
        "subject": "Tickets transferred: Bad Bunny - Most Wanted Tour",
        "text": textwrap.dedent("""\
            You've successfully transferred your tickets!

            Show: Bad Bunny - Most Wanted Tour
            Venue: Crypto.com Arena
            Date: Friday, March 15, 2024 at 8:00 PM

            Sec: 215
            Row: J
            Seats: 5-6
            Qty: 2

            Transfer Code: AX-XYZ789

            Order #: AXS-98765432
            Reference: TRF-2024-001

            Transferred to: escrow+axs@crowtickets.com

            The recipient will be notified via email and can accept the transfer through their AXS account.

            Thank you for choosing AXS!
        """),
    },
    "STUBHUB": {
        "from": "tickets@stubhub.com",
        "to": "escrow+stubhub@crowtickets.com",
        "subject": "Your tickets for The Weeknd - After Hours Tour",
        "text": textwrap.dedent("""\
            Ticket Transfer Confirmation

            Event: The Weeknd - After Hours Tour
            Venue: Madison Square Garden
            Section: 200
            Row: 12
            Seats: 7-8

            Transfer Code: ST-QWE456

            Order #: SH-123456789

            Recipient: escrow+stubhub@crowtickets.com

            Your tickets have been successfully transferred. The recipient will receive an email with download instructions.

            Questions? Visit stubhub.com/help
        """),
    },
}

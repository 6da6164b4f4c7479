"""
Inbound email adapter service.

Normalizes the payloads email relays POST to the transfer webhook into a
single InboundEmail model.

Supported payload formats:
  - json  custom forwarders / tests:  {from, to, subject, text, html?, receivedAt?}
  - form  SendGrid Inbound Parse (multipart/form-data, same field names) and
          Mailgun routes (sender, recipient, subject, body-plain, body-html)

Adding a new format:
  1. Write a normalize_<format>(payload) -> InboundEmail function.
  2. Register it in _NORMALIZERS.
  3. Map its content type in format_for_content_type().
"""

from typing import Any, Callable, Mapping, Optional

from app.models.inbound_email import InboundEmail


class InvalidEmailPayload(ValueError):
    """Required email fields are missing from the webhook payload."""


class UnsupportedContentType(ValueError):
    """The webhook was posted with a content type no normalizer handles."""


_REQUIRED_FIELDS = ("from", "to", "subject", "text")


def _text(value: Any) -> Optional[str]:
    """Form values may arrive as UploadFile or lists; only plain strings count."""
    if isinstance(value, str):
        return value
    return None


def _build_email(fields: Mapping[str, Optional[str]]) -> InboundEmail:
    missing = [name for name in _REQUIRED_FIELDS if not fields.get(name)]
    if missing:
        raise InvalidEmailPayload(f"Missing required email fields: {', '.join(missing)}")

    return InboundEmail(
        sender_email=fields["from"],
        recipient_email=fields["to"],
        subject=fields["subject"],
        text=fields["text"],
        html=fields.get("html") or None,
        received_at=fields.get("received_at") or None,
    )


# ---------------------------------------------------------------------------
# JSON normalizer
# ---------------------------------------------------------------------------

def normalize_json(payload: Mapping[str, Any]) -> InboundEmail:
    """
    Convert a JSON webhook body to InboundEmail.

    Keys: from, to, subject, text, html (optional), receivedAt or
    received_at (optional).
    """
    if not isinstance(payload, Mapping):
        raise InvalidEmailPayload("Webhook JSON body must be an object")

    return _build_email({
        "from": _text(payload.get("from")),
        "to": _text(payload.get("to")),
        "subject": _text(payload.get("subject")),
        "text": _text(payload.get("text")),
        "html": _text(payload.get("html")),
        "received_at": _text(payload.get("receivedAt") or payload.get("received_at")),
    })


# ---------------------------------------------------------------------------
# Form normalizer (SendGrid / Mailgun)
# ---------------------------------------------------------------------------

def normalize_form(form: Mapping[str, Any]) -> InboundEmail:
    """
    Convert a form-encoded webhook submission to InboundEmail.

    SendGrid Inbound Parse posts from/to/subject/text/html. Mailgun posts
    sender/recipient/subject/body-plain/body-html; those are accepted as
    fallbacks for the same fields.
    """
    return _build_email({
        "from": _text(form.get("from")) or _text(form.get("sender")),
        "to": _text(form.get("to")) or _text(form.get("recipient")),
        "subject": _text(form.get("subject")),
        "text": _text(form.get("text")) or _text(form.get("body-plain")),
        "html": _text(form.get("html")) or _text(form.get("body-html")),
        "received_at": _text(form.get("receivedAt")),
    })


# ---------------------------------------------------------------------------
# Registry and dispatcher
# ---------------------------------------------------------------------------

_NORMALIZERS: dict[str, Callable[[Mapping[str, Any]], InboundEmail]] = {
    "json": normalize_json,
    "form": normalize_form,
}


def format_for_content_type(content_type: Optional[str]) -> str:
    """
    Map a request Content-Type header to a normalizer key.

    Raises UnsupportedContentType for anything else.
    """
    ct = (content_type or "").lower()
    if "application/json" in ct:
        return "json"
    if "multipart/form-data" in ct or "application/x-www-form-urlencoded" in ct:
        return "form"
    raise UnsupportedContentType(f"Unsupported content type {content_type!r}")


def normalize_webhook(payload: Mapping[str, Any], payload_format: str) -> InboundEmail:
    """
    Route to the normalizer for payload_format ("json" or "form").

    Raises UnsupportedContentType for unknown formats and
    InvalidEmailPayload when required fields are missing.
    """
    normalizer = _NORMALIZERS.get(payload_format.lower().strip())
    if normalizer is None:
        raise UnsupportedContentType(
            f"Unknown payload format {payload_format!r}. "
            f"Supported formats: {sorted(_NORMALIZERS)}"
        )
    return normalizer(payload)

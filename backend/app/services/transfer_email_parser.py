"""
Single entry point for parsing a transfer confirmation email.

Combines platform detection, parser lookup and invocation. The platform ->
parser table is passed in at construction and frozen, so the webhook router
builds one instance at startup and tests can build their own with fake
parsers.

Resolution order for parse_email():
  1. platform_hint (explicit, e.g. from the escrow+<platform>@ recipient)
  2. detect_platform(body, from_address)
  3. Unknown ids always fall back to the OTHER parser; an email is never
     rejected for having an unrecognized platform.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional

from app.models.transfer import ParseResult, Platform
from app.services.platform_detection import detect_platform
from app.services.transfer_parsers import PLATFORM_PARSERS, ParserFn

logger = logging.getLogger(__name__)


class TransferEmailParser:
    """Immutable platform -> parser dispatch table with a generic fallback."""

    def __init__(self, parsers: Mapping[str, ParserFn]):
        normalized = {key.upper(): fn for key, fn in parsers.items()}
        if Platform.OTHER.value not in normalized:
            raise ValueError("Parser table must include a fallback for 'OTHER'")
        self._parsers = MappingProxyType(normalized)

    @property
    def platforms(self) -> list[str]:
        return sorted(self._parsers)

    def get_parser(self, platform: Optional[str]) -> ParserFn:
        """Parser for platform (case-insensitive), or the OTHER parser."""
        key = (platform or "").strip().upper()
        return self._parsers.get(key) or self._parsers[Platform.OTHER.value]

    def resolve_platform(
        self, body: str, from_address: str, platform_hint: Optional[str] = None
    ) -> str:
        if platform_hint and platform_hint.strip():
            return platform_hint.strip().upper()
        return detect_platform(body, from_address)

    def parse_email(
        self,
        body: str,
        subject: str,
        from_address: str,
        platform_hint: Optional[str] = None,
    ) -> ParseResult:
        platform = self.resolve_platform(body, from_address, platform_hint)
        logger.info(
            f"Parsing transfer email as {platform} "
            f"({'hinted' if platform_hint else 'detected'})"
        )
        return self.get_parser(platform)(body, subject)


def build_default_parser() -> TransferEmailParser:
    """The production parser table: Ticketmaster, AXS, StubHub, generic."""
    return TransferEmailParser(PLATFORM_PARSERS)

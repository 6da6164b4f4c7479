"""
Tests for TransferEmailParser: hint handling, detection and fallback dispatch.
"""

import pytest

from app.models.transfer import ParsedTransfer, ParseResult
from app.services.sample_emails import SAMPLE_EMAILS
from app.services.transfer_email_parser import TransferEmailParser, build_default_parser


def _tagging_parser(tag: str):
    """Fake parser that records which table entry handled the call."""
    def parse(body, subject):
        return ParseResult.ok(ParsedTransfer(platform=tag, event_name=subject))
    return parse


@pytest.fixture
def fake_parser():
    return TransferEmailParser({
        "ticketmaster": _tagging_parser("TM-FAKE"),
        "OTHER": _tagging_parser("OTHER-FAKE"),
    })


class TestConstruction:

    def test_requires_other_fallback(self):
        with pytest.raises(ValueError):
            TransferEmailParser({"TICKETMASTER": _tagging_parser("TM")})

    def test_keys_are_normalized_to_uppercase(self, fake_parser):
        assert fake_parser.platforms == ["OTHER", "TICKETMASTER"]

    def test_table_cannot_be_modified_after_construction(self):
        table = {"OTHER": _tagging_parser("OTHER")}
        parser = TransferEmailParser(table)
        table["AXS"] = _tagging_parser("AXS")

        assert parser.platforms == ["OTHER"]
        with pytest.raises(TypeError):
            parser._parsers["AXS"] = _tagging_parser("AXS")


class TestDispatch:

    def test_hint_wins_over_detection(self, fake_parser):
        result = fake_parser.parse_email(
            "Sold on StubHub", "s", "tickets@stubhub.com", platform_hint="ticketmaster"
        )
        assert result.data.platform == "TM-FAKE"

    def test_detection_used_without_hint(self, fake_parser):
        result = fake_parser.parse_email("body", "s", "noreply@ticketmaster.com")
        assert result.data.platform == "TM-FAKE"

    def test_blank_hint_falls_through_to_detection(self, fake_parser):
        assert fake_parser.resolve_platform("body", "noreply@ticketmaster.com", "  ") == "TICKETMASTER"

    def test_detected_platform_without_parser_uses_other(self, fake_parser):
        result = fake_parser.parse_email("body", "s", "orders@seatgeek.com")
        assert result.data.platform == "OTHER-FAKE"

    @pytest.mark.parametrize("hint", ["NOT_A_PLATFORM", "axs", "GAMETIME"])
    def test_unknown_hint_uses_other(self, fake_parser, hint):
        result = fake_parser.parse_email("body", "s", "a@b.com", platform_hint=hint)
        assert result.success is True
        assert result.data.platform == "OTHER-FAKE"

    def test_get_parser_none_returns_other(self, fake_parser):
        assert fake_parser.get_parser(None)("b", "s").data.platform == "OTHER-FAKE"


class TestDefaultParser:

    @pytest.mark.parametrize("platform", sorted(SAMPLE_EMAILS))
    def test_samples_detect_and_parse(self, platform):
        sample = SAMPLE_EMAILS[platform]
        parser = build_default_parser()

        assert parser.resolve_platform(sample["text"], sample["from"]) == platform
        result = parser.parse_email(sample["text"], sample["subject"], sample["from"])
        assert result.success is True
        assert result.data.platform == platform
        assert result.data.transfer_code is not None

    def test_seatgeek_email_falls_back_to_generic(self):
        parser = build_default_parser()
        result = parser.parse_email(
            "Transfer Code: SG-7Q2ZB4K\nEvent: Knicks vs Nets",
            "Your SeatGeek transfer",
            "orders@seatgeek.com",
        )
        assert result.success is True
        assert result.data.platform == "OTHER"
        assert result.data.transfer_code == "SG-7Q2ZB4K"

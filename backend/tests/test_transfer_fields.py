"""
Unit tests for the transfer-email field extractors.

Pure functions, no mocking needed.
"""

from datetime import date

import pytest

from app.services.transfer_codes import generate_transfer_code
from app.services.transfer_fields import (
    clean_text,
    extract_date,
    extract_emails,
    extract_labeled_transfer_code,
    extract_transfer_code,
)


class TestExtractTransferCode:

    def test_finds_code_in_sentence(self):
        assert extract_transfer_code("Your transfer code is TM-ABC123, keep it safe") == "TM-ABC123"

    def test_first_code_wins(self):
        text = "Promo SV-SAVE2024 applied. Transfer Code: TM-ABC123"
        assert extract_transfer_code(text) == "SV-SAVE2024"

    def test_lowercase_code_is_not_matched(self):
        assert extract_transfer_code("code tm-abc123") is None

    def test_suffix_length_bounds(self):
        assert extract_transfer_code("TM-ABCD") is None
        assert extract_transfer_code("TM-ABCDE") == "TM-ABCDE"
        assert extract_transfer_code("TM-ABCDEFGHIJ") == "TM-ABCDEFGHIJ"
        # 11 characters runs past the word boundary
        assert extract_transfer_code("TM-ABCDEFGHIJK") is None

    def test_code_embedded_in_word_is_not_matched(self):
        assert extract_transfer_code("XTM-ABC123") is None

    def test_generated_codes_round_trip(self):
        for platform in ("TICKETMASTER", "AXS", "STUBHUB", "SEATGEEK", "VIVID_SEATS", "GAMETIME"):
            code = generate_transfer_code(platform)
            text = f"Your tickets were transferred.\n\nTransfer Code: {code}\n\nThanks!"
            assert extract_transfer_code(text) == code

    @pytest.mark.parametrize("value", [None, "", "   ", 42, ["TM-ABC123"]])
    def test_garbage_input_returns_none(self, value):
        assert extract_transfer_code(value) is None


class TestExtractLabeledTransferCode:

    def test_labeled_code_beats_earlier_bare_code(self):
        text = "Use promo SV-SAVE2024 next time.\nTransfer Code: TM-ABC123"
        assert extract_labeled_transfer_code(text) == "TM-ABC123"

    def test_label_is_case_insensitive(self):
        assert extract_labeled_transfer_code("TRANSFER ID # AX-XYZ789") == "AX-XYZ789"

    def test_falls_back_to_first_bare_code(self):
        assert extract_labeled_transfer_code("Reference ST-QWE456 attached") == "ST-QWE456"

    def test_none_input(self):
        assert extract_labeled_transfer_code(None) is None


class TestExtractEmails:

    def test_all_emails_in_order(self):
        text = "From noreply@ticketmaster.com to escrow+tm@crowtickets.com (cc seller@example.org)"
        assert extract_emails(text) == [
            "noreply@ticketmaster.com",
            "escrow+tm@crowtickets.com",
            "seller@example.org",
        ]

    def test_duplicates_are_kept(self):
        assert extract_emails("a@b.com and a@b.com") == ["a@b.com", "a@b.com"]

    @pytest.mark.parametrize("value", [None, "", "no addresses here", 3.14])
    def test_nothing_found(self, value):
        assert extract_emails(value) == []


class TestExtractDate:

    def test_prose_date_with_weekday(self):
        assert extract_date("Date: Saturday, August 5, 2024 at 7:00 PM") == date(2024, 8, 5)

    def test_abbreviated_month(self):
        assert extract_date("Doors open Sept. 14 2025") == date(2025, 9, 14)

    def test_us_numeric_date(self):
        assert extract_date("Event on 3/15/2024") == date(2024, 3, 15)

    def test_iso_date(self):
        assert extract_date("event_date=2024-03-15") == date(2024, 3, 15)

    def test_prose_is_preferred_over_numeric(self):
        assert extract_date("Sent 1/2/2024 for the show on March 15, 2024") == date(2024, 3, 15)

    def test_impossible_date_is_skipped(self):
        assert extract_date("February 30, 2024") is None
        assert extract_date("13/40/2024 then 2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", [None, "", "no date here", object()])
    def test_garbage_input_returns_none(self, value):
        assert extract_date(value) is None


class TestCleanText:

    def test_collapses_whitespace_and_trims(self):
        assert clean_text("  Taylor   Swift\n\t- The Eras Tour  ") == "Taylor Swift - The Eras Tour"

    def test_drops_non_printable_characters(self):
        assert clean_text("SoFi\u200b Stadium") == "SoFi Stadium"
        assert clean_text("Sec\x00tion 101") == "Section 101"

    @pytest.mark.parametrize("value", [
        "  Taylor   Swift\n- The Eras Tour ",
        "café — night\r\n\r\nshow",
        "\t\x07bell\x07\t",
        "already clean",
        "",
    ])
    def test_idempotent(self, value):
        once = clean_text(value)
        assert clean_text(once) == once

    @pytest.mark.parametrize("value", [None, 12, {"a": 1}])
    def test_non_string_returns_empty(self, value):
        assert clean_text(value) == ""

"""Tests for order status, payment method and address helpers."""
import pytest
from app.preparers.location import clean_state_and_zip, country_code, country_name, guess_us_state_from_zip
from app.preparers.status import financial_status, map_status, payment_method_title, status_name


class TestStatusMapping:
    @pytest.mark.parametrize("status,expected", [
        ("pending", 1),
        ("processing", 11),
        ("on-hold", 7),
        ("completed", 10),
        ("cancelled", 5),
        ("refunded", 4),
        ("failed", 0),
        ("checkout-draft", 0),
    ])
    def test_explicit_table(self, status, expected):
        assert map_status(status) == expected

    def test_prefix_and_case_ignored(self):
        assert map_status("wc-Completed") == 10

    @pytest.mark.parametrize("status,expected", [
        ("partially-fulfilled", 10),
        ("ready-to-ship", 11),
        ("cancel-request", 5),
        ("partial-refund", 4),
        ("awaiting-payment", 7),
    ])
    def test_substring_heuristics(self, status, expected):
        assert map_status(status) == expected

    def test_substring_order_first_match_wins(self):
        # contains both "ship" and "cancel"; shipping is checked first
        assert map_status("shipment-cancelled") == 11

    def test_unknown_status_defaults_to_pending(self):
        assert map_status("mystery") == 1
        assert map_status("") == 1

    def test_overrides_consulted_before_heuristics(self):
        assert map_status("ready-to-ship", {"ready-to-ship": 9}) == 9
        assert map_status("completed", {"completed": 2}) == 10

    def test_status_names(self):
        assert status_name(11) == "Awaiting Fulfillment"
        assert status_name(99) == "Unknown"


class TestPaymentHelpers:
    def test_title_preferred_over_table(self):
        assert payment_method_title("stripe", "Credit Card (Stripe)") == "Credit Card (Stripe)"

    def test_table_then_title_case_fallback(self):
        assert payment_method_title("bacs") == "Bank Transfer (BACS)"
        assert payment_method_title("gift_card-pay") == "Gift Card Pay"

    def test_financial_status(self):
        assert financial_status("completed", "stripe") == "paid"
        assert financial_status("cancelled", "paypal") == "voided"
        assert financial_status("on-hold", "bacs") == "pending"
        assert financial_status("refunded", "other") == "refunded"


class TestLocationCleaning:
    def test_country_lookup(self):
        assert country_name("us") == "United States"
        assert country_name("ZZ") is None
        assert country_code("United States") == "US"
        assert country_code("gb") == "GB"

    def test_state_typed_into_zip_is_split(self):
        cleaned = clean_state_and_zip("", "NY 10001", "US")
        assert (cleaned.state, cleaned.zip) == ("NY", "10001")

    def test_missing_zip_gets_country_default(self):
        assert clean_state_and_zip("Bavaria", "", "DE").zip == "00000"

    def test_postcode_optional_country_left_blank(self):
        assert clean_state_and_zip("", "", "AE").zip == ""

    def test_required_state_guessed_from_us_zip(self):
        assert clean_state_and_zip("", "90210", "US").state == "CA"
        assert guess_us_state_from_zip("abc") is None

    def test_required_state_falls_back_to_placeholder(self):
        assert clean_state_and_zip("", "", "CA").state == "N/A"
        assert clean_state_and_zip("", "", "FR").state == ""

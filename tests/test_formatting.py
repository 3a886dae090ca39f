"""Tests for quote formatting helpers."""

from decimal import Decimal

import pytest

from zenithswap.resolver.contracts import QuoteParams, RawQuoteResponse
from zenithswap.swap.formatting import (
    amount_in_units,
    format_quote,
    format_units,
    humanize_duration,
    to_base_units,
)

from .conftest import HAPPY_QUOTE_PARAMS


class TestUnits:
    """Tests for smallest-unit conversions."""

    def test_format_wei(self):
        """Test formatting 18-decimal amounts to 8 places."""
        assert format_units("1000000000000000", 18) == "0.00100000"
        assert format_units("1234567890123456789", 18) == "1.23456789"

    def test_format_sats(self):
        """Test formatting satoshis."""
        assert format_units("100000", 8) == "0.00100000"
        assert format_units(150000000, 8) == "1.50000000"

    def test_format_zero(self):
        """Test that zero is not rendered in exponent notation."""
        assert format_units("0", 18) == "0.00000000"

    def test_format_truncates(self):
        """Test that extra precision is truncated, not rounded."""
        assert format_units("999999999999999999", 18) == "0.99999999"

    def test_format_rejects_garbage(self):
        """Test that a non-numeric amount raises ValueError."""
        with pytest.raises(ValueError):
            format_units("lots", 18)

    @pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "NaN", "1" + "0" * 40])
    def test_format_rejects_unrepresentable(self, raw):
        """Test that non-finite or oversized amounts raise ValueError."""
        with pytest.raises(ValueError):
            format_units(raw, 8)

    def test_to_base_units(self):
        """Test converting human amounts to smallest units."""
        assert to_base_units("0.001", 18) == "1000000000000000"
        assert to_base_units("1.5", 8) == "150000000"
        assert to_base_units(Decimal("0.000000001"), 8) == "0"


class TestHumanizeDuration:
    """Tests for estimated time rendering."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "Unknown"),
            (1, "~1 second"),
            (45, "~45 seconds"),
            (60, "~1 minute"),
            (300, "~5 minutes"),
            (3600, "~1 hour"),
            (5400, "~1 hour 30 minutes"),
            (7200, "~2 hours"),
        ],
    )
    def test_durations(self, seconds, expected):
        """Test representative durations."""
        assert humanize_duration(seconds) == expected


class TestFormatQuote:
    """Tests for building display quotes."""

    def test_pol_to_btc_quote(self):
        """Test the native token to BTC quote."""
        params = QuoteParams.model_validate(HAPPY_QUOTE_PARAMS)
        raw = RawQuoteResponse.model_validate(
            {"quoteId": "q1", "toTokenAmount": "100000", "fee": "10000000000000", "estimatedTime": 300}
        )

        quote = format_quote(params, raw)

        assert quote.quote_id == "q1"
        assert quote.from_token == "POL"
        assert quote.to_token == "BTC"
        assert quote.from_amount == "0.00100000"
        assert quote.to_amount == "0.00100000"
        assert quote.rate == "1.00000000"
        assert quote.fee == "0.00001000"
        assert quote.fee_token == "POL"
        assert quote.estimated_time == "~5 minutes"

    def test_btc_to_evm_quote(self):
        """Test the reverse direction uses BTC decimals for the source."""
        params = QuoteParams(
            from_chain_id=0,
            from_token_address="BTC",
            to_chain_id=80002,
            to_token_address="0x0000000000000000000000000000000000000000",
            amount="50000000",
        )
        raw = RawQuoteResponse(quote_id="q2", to_token_amount="30000000000000000000000", fee="1000")

        quote = format_quote(params, raw)

        assert quote.from_amount == "0.50000000"
        assert quote.to_amount == "30000.00000000"
        assert quote.rate == "60000.00000000"
        assert quote.fee == "0.00001000"
        assert quote.fee_token == "BTC"
        assert quote.estimated_time == "Unknown"

    def test_unknown_token_uses_short_address(self):
        """Test that unknown tokens fall back to a shortened address."""
        params = QuoteParams(
            from_chain_id=80002,
            from_token_address="0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
            to_chain_id=0,
            to_token_address="BTC",
            amount="2000000000000000000",
        )
        raw = RawQuoteResponse(quote_id="q3", to_token_amount="3000")

        quote = format_quote(params, raw)

        assert quote.from_token == "0x41E9...7582"
        assert quote.from_amount == "2.00000000"
        assert quote.rate == "0.00001500"

    def test_zero_amount_rate(self):
        """Test that a zero source amount gives a zero rate instead of failing."""
        params = QuoteParams.model_validate({**HAPPY_QUOTE_PARAMS, "amount": "0"})
        raw = RawQuoteResponse(quote_id="q4", to_token_amount="0")

        assert format_quote(params, raw).rate == "0"

    def test_oversized_amount_raises(self):
        """Test that a rate beyond decimal precision raises ValueError, not InvalidOperation."""
        params = QuoteParams.model_validate(HAPPY_QUOTE_PARAMS)
        raw = RawQuoteResponse(quote_id="q5", to_token_amount="1" + "0" * 40)

        with pytest.raises(ValueError):
            format_quote(params, raw)

    def test_amount_in_units(self):
        """Test the request amount in whole units."""
        params = QuoteParams.model_validate(HAPPY_QUOTE_PARAMS)

        assert amount_in_units(params) == Decimal("0.001")

"""Tests for input validation and quota arithmetic."""

from decimal import Decimal

import pytest

from sluice.faucet import Decision, InvalidArgument, QuotaDimension, QuotaLimits, RejectionReason
from sluice.faucet.quota import evaluate, normalize_address, parse_amount, quota_key

LIMITS = QuotaLimits(identity=Decimal("100"), destination=Decimal("100"))


class TestNormalizeAddress:
    """Tests for address validation."""

    def test_hex_address_lowercased(self):
        """Checksummed and plain spellings share one quota."""
        address = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
        assert normalize_address("identity_address", address) == address.lower()

    def test_other_formats_kept_verbatim(self):
        """Non-hex addresses are only trimmed."""
        assert normalize_address("destination_address", "  ABCD1234efgh ") == "ABCD1234efgh"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_rejected(self, value):
        with pytest.raises(InvalidArgument) as exc_info:
            normalize_address("identity_address", value)

        assert exc_info.value.field == "identity_address"
        assert exc_info.value.message == "identity_address cannot be empty"

    def test_non_string_rejected(self):
        with pytest.raises(InvalidArgument, match="must be a string"):
            normalize_address("destination_address", 12345)


class TestParseAmount:
    """Tests for amount validation."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("25", Decimal("25")),
            (25, Decimal("25")),
            (0.5, Decimal("0.5")),
            (" 1.25 ", Decimal("1.25")),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing(self, value):
        with pytest.raises(InvalidArgument, match="amount cannot be empty"):
            parse_amount(value)

    @pytest.mark.parametrize("value", ["abc", True, "NaN", "Infinity", [1]])
    def test_not_a_number(self, value):
        with pytest.raises(InvalidArgument, match="amount must be a number"):
            parse_amount(value)

    @pytest.mark.parametrize("value", ["0", "-5", 0])
    def test_not_positive(self, value):
        with pytest.raises(InvalidArgument, match="amount must be positive"):
            parse_amount(value)

    def test_maximum(self):
        assert parse_amount("10", maximum=Decimal("10")) == Decimal("10")
        with pytest.raises(InvalidArgument, match="exceeds maximum of 10"):
            parse_amount("10.01", maximum=Decimal("10"))


def test_quota_key():
    assert quota_key(QuotaDimension.IDENTITY, "0xabc") == "identity:0xabc"
    assert quota_key(QuotaDimension.DESTINATION, "0xabc") == "destination:0xabc"


class TestEvaluate:
    """Tests for the quota decision."""

    def test_admitted_up_to_limit(self):
        """Reaching the limit exactly is allowed."""
        decision = evaluate(Decimal("80"), Decimal("0"), Decimal("20"), LIMITS)

        assert decision.admitted is True
        assert decision.reason is None
        assert decision.message == "allowed to receive tokens, quota check passed"

    def test_identity_exceeded(self):
        decision = evaluate(Decimal("80"), Decimal("0"), Decimal("25"), LIMITS)

        assert decision.admitted is False
        assert decision.reason == RejectionReason.IDENTITY_QUOTA_EXCEEDED
        assert decision.would_be_total == Decimal("105")
        assert decision.limit == Decimal("100")
        assert "105" in decision.message
        assert "100" in decision.message

    def test_destination_exceeded(self):
        decision = evaluate(Decimal("0"), Decimal("90"), Decimal("15"), LIMITS)

        assert decision.admitted is False
        assert decision.reason == RejectionReason.DESTINATION_QUOTA_EXCEEDED
        assert decision.would_be_total == Decimal("105")

    def test_identity_reported_first(self):
        """When both quotas overflow the identity quota is the reason."""
        decision = evaluate(Decimal("95"), Decimal("95"), Decimal("10"), LIMITS)

        assert decision.reason == RejectionReason.IDENTITY_QUOTA_EXCEEDED
        assert decision.destination_used == Decimal("95")

    def test_separate_limits(self):
        limits = QuotaLimits(identity=Decimal("100"), destination=Decimal("10"))

        decision = evaluate(Decimal("0"), Decimal("5"), Decimal("6"), limits)

        assert decision.reason == RejectionReason.DESTINATION_QUOTA_EXCEEDED
        assert decision.limit == Decimal("10")

    def test_decimal_precision(self):
        """Fractional amounts add up exactly."""
        decision = evaluate(Decimal("99.9"), Decimal("0"), Decimal("0.1"), LIMITS)
        assert decision.admitted is True


class TestDecision:
    """Tests for Decision serialization."""

    def test_admitted_to_dict(self):
        decision = Decision(
            admitted=True,
            requested=Decimal("20"),
            identity_used=Decimal("80"),
            destination_used=Decimal("0"),
        )

        assert decision.to_dict() == {
            "admitted": True,
            "requested": "20",
            "identity_used": "80",
            "destination_used": "0",
        }

    def test_rejected_to_dict(self):
        decision = evaluate(Decimal("80"), Decimal("0"), Decimal("25"), LIMITS)

        data = decision.to_dict()

        assert data["admitted"] is False
        assert data["reason"] == "identity quota exceeded"
        assert data["would_be_total"] == "105"
        assert data["limit"] == "100"

"""Unit tests for riskgate.utils.validation."""

from __future__ import annotations

import pytest

from riskgate.errors import ValidationError
from riskgate.utils.validation import (
    format_wei,
    validate_address,
    validate_amount,
    validate_hex,
    validate_limit,
)

CHECKSUMMED = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestValidateAddress:
    def test_lowercase_is_checksummed(self) -> None:
        assert validate_address(CHECKSUMMED.lower()) == CHECKSUMMED

    def test_bad_checksum_is_still_accepted(self) -> None:
        assert validate_address("0xF39fd6e51aad88f6f4ce6ab8827279cfffb92266") == CHECKSUMMED

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing(self, value) -> None:
        with pytest.raises(ValidationError, match="contract is required"):
            validate_address(value, "contract")

    @pytest.mark.parametrize("value", ["0x123", "f39fd6e51aad88f6f4ce6ab8827279cfffb92266zz", "hello"])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(ValidationError, match="must be a valid Ethereum address") as exc:
            validate_address(value)
        assert exc.value.status_code == 400


class TestValidateAmount:
    def test_decimal_string_to_wei(self) -> None:
        assert validate_amount("1.5") == 1_500_000_000_000_000_000

    def test_numbers_accepted(self) -> None:
        assert validate_amount(2) == 2 * 10**18

    def test_smallest_unit(self) -> None:
        assert validate_amount("0.000000000000000001") == 1

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "nan", "inf"])
    def test_rejects_non_positive_and_garbage(self, value: str) -> None:
        with pytest.raises(ValidationError):
            validate_amount(value)

    def test_rejects_too_large(self) -> None:
        with pytest.raises(ValidationError, match="too large"):
            validate_amount("1000000000000000001")

    @pytest.mark.parametrize("value", [None, "", True])
    def test_missing(self, value) -> None:
        with pytest.raises(ValidationError, match="value is required"):
            validate_amount(value, "value")


class TestValidateHex:
    def test_valid(self) -> None:
        assert validate_hex("0xa9059cbb") == "0xa9059cbb"
        assert validate_hex("0x") == "0x"

    def test_missing_prefix(self) -> None:
        with pytest.raises(ValidationError, match="must start with 0x"):
            validate_hex("a9059cbb", "callData")

    def test_non_hex_characters(self) -> None:
        with pytest.raises(ValidationError, match="valid hex"):
            validate_hex("0xzz")


class TestValidateLimit:
    @pytest.mark.parametrize("value, expected", [(None, 20), (0, 1), (-5, 1), (50, 50), (1000, 100)])
    def test_clamping(self, value, expected: int) -> None:
        assert validate_limit(value) == expected


def test_format_wei() -> None:
    assert format_wei(1_500_000_000_000_000_000) == "1.5"
    assert format_wei(0) == "0"

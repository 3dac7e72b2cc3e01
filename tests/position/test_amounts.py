"""Tests for base-unit conversion, fee arithmetic and unit tags."""

from decimal import Decimal

import pytest

from multiply.config import PlanningConfig
from multiply.errors import InvalidAmount
from multiply.position.amounts import (
    Token,
    TokenAmount,
    as_percentage_value,
    calculate_fee,
    ensure_base_units,
    from_base_units,
    net_amount,
    to_base_units,
)


class TestBaseUnits:
    @pytest.mark.parametrize(
        "value, precision",
        [
            ("1", 18),
            ("0.000000000000000001", 18),
            ("1234.567891", 6),
            ("0.00000001", 8),
            ("21000000.12345678", 8),
            ("100000", 18),
        ],
    )
    def test_round_trip(self, value: str, precision: int) -> None:
        x = Decimal(value)
        assert from_base_units(to_base_units(x, precision), precision) == x

    def test_to_base_units_is_integer(self) -> None:
        assert to_base_units(Decimal("1.5"), 6) == 1_500_000
        assert isinstance(to_base_units(Decimal("1.5"), 6), int)

    def test_excess_digits_round_down(self) -> None:
        assert to_base_units(Decimal("1.0000009"), 6) == 1_000_000

    def test_float_input_has_no_binary_noise(self) -> None:
        assert to_base_units(0.1, 18) == 10**17


class TestFee:
    def test_embedded_in_gross(self) -> None:
        # 20 bips over a 10_000 base: fee = floor(10020 * 20 / 10020) = 20
        assert calculate_fee(10_020, 20, 10_000) == 20
        assert net_amount(10_020, 20, 10_000) == 10_000

    def test_rounds_down(self) -> None:
        assert calculate_fee(100, 20, 10_000) == 0
        assert calculate_fee(1000, 20, 10_000) == 1

    @pytest.mark.parametrize("gross", [0, 1, 999, 10**18, 3 * 10**21 + 7])
    @pytest.mark.parametrize("bips", [0, 2, 20, 100])
    def test_decomposition(self, gross: int, bips: int) -> None:
        assert calculate_fee(gross, bips, 10_000) + net_amount(gross, bips, 10_000) == gross

    def test_monotonic_in_gross(self) -> None:
        fees = [calculate_fee(g, 20, 10_000) for g in range(0, 50_000, 137)]
        assert fees == sorted(fees)

    def test_zero_bips_is_free(self) -> None:
        assert calculate_fee(10**18, 0, 10_000) == 0

    def test_negative_bips_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            calculate_fee(100, -1, 10_000)


class TestUnitTags:
    def test_human(self) -> None:
        assert ensure_base_units("2.5", 6, unit="human") == 2_500_000

    def test_base(self) -> None:
        assert ensure_base_units(2_500_000, 6, unit="base") == 2_500_000

    def test_base_rejects_fraction(self) -> None:
        with pytest.raises(InvalidAmount):
            ensure_base_units("2.5", 6, unit="base")

    def test_untagged_rejected_by_default(self) -> None:
        with pytest.raises(InvalidAmount):
            ensure_base_units(100, 18)

    def test_magnitude_heuristic_when_enabled(self) -> None:
        config = PlanningConfig(allow_magnitude_heuristic=True)
        assert ensure_base_units(100, 18, config=config) == 100 * 10**18
        assert ensure_base_units(10**20, 18, config=config) == 10**20

    def test_negative_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            ensure_base_units(-1, 18, unit="base")


class TestTokenAmount:
    def test_precision_lookup(self) -> None:
        assert Token.of("USDC").precision == 6
        assert Token.of("WBTC").precision == 8
        assert Token.of("UNKNOWN").precision == 18

    def test_from_human_and_normalized(self) -> None:
        amount = TokenAmount.from_human("12.5", Token.of("USDC"))
        assert amount.amount == Decimal(12_500_000)
        assert amount.normalized == Decimal("12.5")

    def test_negative_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            TokenAmount(Decimal(-1), "DAI")

    def test_percentage_value(self) -> None:
        pct = as_percentage_value(8, 100)
        assert pct.value == Decimal(8)
        assert pct.as_decimal == Decimal("0.08")

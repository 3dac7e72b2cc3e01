"""Tests for the hardcoded market parameters and static reader."""

from decimal import Decimal

import pytest

from multiply.data.static_params import (
    AAVE_V3_CATEGORIES,
    AAVE_V3_EMODE_CATEGORIES,
    MAKER_CATEGORIES,
    StaticPositionReader,
    default_category,
)
from multiply.errors import UnsupportedAsset
from multiply.position.amounts import Token, TokenAmount
from multiply.position.position import Position
from multiply.protocol.context import AAVE_V2, AAVE_V3, MAKER

ETH = Token.of("ETH")
DAI = Token.of("DAI")


class TestDefaultCategory:
    def test_reserve(self) -> None:
        assert default_category(AAVE_V3, "ETH") == AAVE_V3_CATEGORIES["ETH"]

    def test_emode(self) -> None:
        category = default_category(AAVE_V3, "WSTETH", 1)
        assert category == AAVE_V3_EMODE_CATEGORIES[1]
        assert category.max_loan_to_value > AAVE_V3_CATEGORIES["WSTETH"].max_loan_to_value

    def test_emode_ignored_on_v2(self) -> None:
        assert default_category(AAVE_V2, "ETH", 1).category_id == 0

    def test_unknown_emode(self) -> None:
        with pytest.raises(UnsupportedAsset):
            default_category(AAVE_V3, "ETH", 7)

    def test_unknown_symbol(self) -> None:
        with pytest.raises(UnsupportedAsset):
            default_category(MAKER, "USDC")

    def test_maker_ilk(self) -> None:
        category = MAKER_CATEGORIES["ETH"]
        assert float(category.min_collateralization_ratio) == pytest.approx(1.45)
        assert category.dust_limit == Decimal(15_000 * 10**18)


class TestStaticPositionReader:
    def test_oracle_price(self) -> None:
        reader = StaticPositionReader(AAVE_V3)
        assert reader.get_oracle_price(ETH, DAI) == Decimal(1600)

    def test_custom_prices(self) -> None:
        reader = StaticPositionReader(MAKER, prices={"ETH": Decimal(2900), "DAI": Decimal(1)})
        assert reader.oracle_price("ETH", "DAI") == Decimal(2900)

    def test_unknown_price(self) -> None:
        with pytest.raises(UnsupportedAsset):
            StaticPositionReader(AAVE_V3).oracle_price("FOO", "DAI")

    def test_unknown_proxy_gets_empty_position(self) -> None:
        position = StaticPositionReader(AAVE_V3).get_current_position("0xabc", ETH, DAI)
        assert position.collateral.amount == 0
        assert position.debt.amount == 0
        assert position.oracle_price == Decimal(1600)
        assert position.category == AAVE_V3_CATEGORIES["ETH"]

    def test_stored_position_lookup_ignores_case(self) -> None:
        stored = Position(
            TokenAmount.from_human(1, DAI),
            TokenAmount.from_human(1, ETH),
            Decimal(1600),
            AAVE_V3_CATEGORIES["ETH"],
        )
        reader = StaticPositionReader(AAVE_V3, positions={"0xABC": stored})
        assert reader.get_current_position("0xabc", ETH, DAI) is stored

    def test_emode_reader(self) -> None:
        reader = StaticPositionReader(AAVE_V3, category_id=1)
        position = reader.get_current_position("0xabc", Token.of("WSTETH"), ETH)
        assert position.category.category_id == 1

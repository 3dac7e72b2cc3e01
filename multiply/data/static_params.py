"""Static position reader with hardcoded market parameters.

Used offline and in tests; live reads go through ``onchain_reader``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping

from multiply.data.constants import (
    DAI,
    EMODE_ETH_CORRELATED,
    ETH,
    STETH,
    USDC,
    WBTC,
    WETH,
    WSTETH,
)
from multiply.data.interfaces import PositionReader
from multiply.errors import UnsupportedAsset
from multiply.position.amounts import Token, TokenAmount
from multiply.position.position import Position
from multiply.protocol.category import PositionCategory
from multiply.protocol.context import AAVE_V2, AAVE_V3, MAKER

# --- Reserve parameters sourced from governance snapshots ---

AAVE_V2_CATEGORIES: dict[str, PositionCategory] = {
    ETH: PositionCategory(Decimal("0.80"), Decimal("0.825"), Decimal("0.05")),
    WETH: PositionCategory(Decimal("0.80"), Decimal("0.825"), Decimal("0.05")),
    STETH: PositionCategory(Decimal("0.69"), Decimal("0.81"), Decimal("0.075")),
    WBTC: PositionCategory(Decimal("0.70"), Decimal("0.75"), Decimal("0.065")),
    USDC: PositionCategory(Decimal("0.80"), Decimal("0.85"), Decimal("0.05")),
    DAI: PositionCategory(Decimal("0.75"), Decimal("0.80"), Decimal("0.05")),
}

AAVE_V3_CATEGORIES: dict[str, PositionCategory] = {
    ETH: PositionCategory(Decimal("0.805"), Decimal("0.83"), Decimal("0.05")),
    WETH: PositionCategory(Decimal("0.805"), Decimal("0.83"), Decimal("0.05")),
    WSTETH: PositionCategory(Decimal("0.795"), Decimal("0.81"), Decimal("0.07")),
    WBTC: PositionCategory(Decimal("0.73"), Decimal("0.78"), Decimal("0.05")),
    USDC: PositionCategory(Decimal("0.77"), Decimal("0.80"), Decimal("0.045")),
    DAI: PositionCategory(Decimal("0.77"), Decimal("0.80"), Decimal("0.05")),
}

AAVE_V3_EMODE_CATEGORIES: dict[int, PositionCategory] = {
    EMODE_ETH_CORRELATED: PositionCategory(
        max_loan_to_value=Decimal("0.935"),
        liquidation_threshold=Decimal("0.955"),
        liquidation_bonus=Decimal("0.01"),
        category_id=EMODE_ETH_CORRELATED,
        label="ETH correlated",
    ),
}

# Maker ilks: liquidation ratio and dust (DAI, base units)
MAKER_CATEGORIES: dict[str, PositionCategory] = {
    ETH: PositionCategory.from_liquidation_ratio(Decimal("1.45"), Decimal(15_000 * 10**18), "ETH-A"),
    WETH: PositionCategory.from_liquidation_ratio(Decimal("1.45"), Decimal(15_000 * 10**18), "ETH-A"),
    WSTETH: PositionCategory.from_liquidation_ratio(Decimal("1.60"), Decimal(7_500 * 10**18), "WSTETH-A"),
    WBTC: PositionCategory.from_liquidation_ratio(Decimal("1.45"), Decimal(7_500 * 10**18), "WBTC-A"),
}

_CATEGORIES: dict[str, dict[str, PositionCategory]] = {
    AAVE_V2: AAVE_V2_CATEGORIES,
    AAVE_V3: AAVE_V3_CATEGORIES,
    MAKER: MAKER_CATEGORIES,
}

# USD prices, representative snapshot
_ORACLE_PRICES: dict[str, Decimal] = {
    ETH: Decimal("1600"),
    WETH: Decimal("1600"),
    STETH: Decimal("1590"),
    WSTETH: Decimal("1790"),
    WBTC: Decimal("21000"),
    DAI: Decimal("1"),
    USDC: Decimal("1"),
}


def default_category(protocol: str, collateral_symbol: str, category_id: int = 0) -> PositionCategory:
    """Hardcoded category for a collateral market, e-mode aware on Aave V3."""
    if protocol == AAVE_V3 and category_id:
        try:
            return AAVE_V3_EMODE_CATEGORIES[category_id]
        except KeyError:
            raise UnsupportedAsset(protocol, f"e-mode category {category_id}") from None
    try:
        return _CATEGORIES[protocol][collateral_symbol]
    except KeyError:
        raise UnsupportedAsset(protocol, collateral_symbol) from None


class StaticPositionReader(PositionReader):
    """Serves stored positions; unknown proxies get an empty position."""

    def __init__(
        self,
        protocol: str,
        positions: Mapping[str, Position] | None = None,
        prices: Mapping[str, Decimal] | None = None,
        category_id: int = 0,
    ) -> None:
        self.protocol = protocol
        self._positions = {k.lower(): v for k, v in (positions or {}).items()}
        self._prices = dict(prices or _ORACLE_PRICES)
        self._category_id = category_id

    def oracle_price(self, base_symbol: str, quote_symbol: str) -> Decimal:
        try:
            return self._prices[base_symbol] / self._prices[quote_symbol]
        except KeyError as exc:
            raise UnsupportedAsset(self.protocol, str(exc.args[0])) from None

    def get_oracle_price(self, base_token: Token, quote_token: Token) -> Decimal:
        return self.oracle_price(base_token.symbol, quote_token.symbol)

    def get_current_position(
        self, proxy: str, collateral_token: Token, debt_token: Token
    ) -> Position:
        stored = self._positions.get(proxy.lower())
        if stored is not None:
            return stored
        return Position(
            debt=TokenAmount.zero(debt_token),
            collateral=TokenAmount.zero(collateral_token),
            oracle_price=self.oracle_price(collateral_token.symbol, debt_token.symbol),
            category=default_category(self.protocol, collateral_token.symbol, self._category_id),
        )

"""Immutable leveraged position model."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, localcontext

from multiply.errors import InsufficientCollateral, InvalidAmount
from multiply.position.amounts import DECIMAL_CONTEXT, Numeric, TokenAmount, to_decimal
from multiply.position.risk_ratio import RiskRatio
from multiply.protocol.category import PositionCategory
from multiply.protocol.liquidation import LiquidationModel


def _non_negative(amount: Numeric) -> Decimal:
    value = to_decimal(amount)
    if value < 0:
        raise InvalidAmount(f"Amount must be non-negative, got {value}")
    return value


@dataclass(frozen=True)
class Position:
    """A debt/collateral pair on one protocol market.

    ``oracle_price`` is the collateral priced in debt-token terms (e.g. 2900
    DAI per ETH).  Amounts are in base units; ratios are computed on the
    precision-normalised amounts.  Transformations return a new ``Position``.
    """

    debt: TokenAmount
    collateral: TokenAmount
    oracle_price: Decimal
    category: PositionCategory

    def __post_init__(self) -> None:
        object.__setattr__(self, "oracle_price", to_decimal(self.oracle_price))

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def collateral_value(self) -> Decimal:
        """Collateral value in debt-token terms (human scale)."""
        with localcontext(DECIMAL_CONTEXT):
            return self.collateral.normalized * self.oracle_price

    @property
    def debt_value(self) -> Decimal:
        return self.debt.normalized

    @property
    def risk_ratio(self) -> RiskRatio:
        with localcontext(DECIMAL_CONTEXT):
            collateral_value = self.collateral_value
            if collateral_value <= 0:
                if self.debt.amount > 0:
                    return RiskRatio(Decimal("Infinity"))
                return RiskRatio(Decimal(0))
            return RiskRatio(self.debt_value / collateral_value)

    @property
    def health_factor(self) -> Decimal:
        model = LiquidationModel(self.category)
        return model.health_factor(self.collateral_value, self.debt_value)

    @property
    def liquidation_price(self) -> Decimal:
        model = LiquidationModel(self.category)
        with localcontext(DECIMAL_CONTEXT):
            return model.liquidation_price(self.collateral.normalized, self.debt_value)

    @property
    def max_debt_to_borrow(self) -> Decimal:
        """Additional debt (base units) the category still allows."""
        with localcontext(DECIMAL_CONTEXT):
            headroom = self.collateral_value * self.category.max_loan_to_value - self.debt_value
            return max(Decimal(0), headroom).scaleb(self.debt.precision)

    def is_full_payback(self, amount: Numeric) -> bool:
        return to_decimal(amount) >= self.debt.amount

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def deposit(self, amount: Numeric) -> Position:
        value = _non_negative(amount)
        return replace(self, collateral=self.collateral.with_amount(self.collateral.amount + value))

    def withdraw(self, amount: Numeric) -> Position:
        value = _non_negative(amount)
        if value > self.collateral.amount:
            raise InsufficientCollateral(value, self.collateral.amount)
        return replace(self, collateral=self.collateral.with_amount(self.collateral.amount - value))

    def borrow(self, amount: Numeric) -> Position:
        value = _non_negative(amount)
        return replace(self, debt=self.debt.with_amount(self.debt.amount + value))

    def payback(self, amount: Numeric) -> Position:
        """Reduce debt, clamping at zero; see ``is_full_payback``."""
        value = _non_negative(amount)
        return replace(self, debt=self.debt.with_amount(max(Decimal(0), self.debt.amount - value)))

    def with_oracle_price(self, oracle_price: Numeric) -> Position:
        return replace(self, oracle_price=to_decimal(oracle_price))

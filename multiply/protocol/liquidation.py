"""Health factor, liquidation price and price-sensitivity calculations."""

from __future__ import annotations

from decimal import Decimal

import numpy as np
import pandas as pd

from multiply.protocol.category import PositionCategory

_INFINITY = Decimal("Infinity")


class LiquidationModel:
    """Liquidation calculations for one position category."""

    def __init__(self, category: PositionCategory) -> None:
        self.max_loan_to_value = category.max_loan_to_value
        self.liquidation_threshold = category.liquidation_threshold
        self.liquidation_bonus = category.liquidation_bonus

    def health_factor(self, collateral_value: Decimal, debt_value: Decimal) -> Decimal:
        """Compute health factor.

        HF = (collateral_value * liquidation_threshold) / debt_value
        """
        if debt_value <= 0:
            return _INFINITY
        return (collateral_value * self.liquidation_threshold) / debt_value

    def max_borrowable(self, collateral_value: Decimal) -> Decimal:
        """Maximum debt value allowed given collateral (using max LTV)."""
        return collateral_value * self.max_loan_to_value

    def liquidation_price(self, collateral_amount: Decimal, debt_value: Decimal) -> Decimal:
        """Collateral price (in debt terms) at which HF reaches 1.0.

        Returns 0 for a position with no debt.
        """
        if debt_value <= 0 or collateral_amount <= 0:
            return Decimal(0)
        return debt_value / (collateral_amount * self.liquidation_threshold)

    def liquidation_price_drop(self, collateral_value: Decimal, debt_value: Decimal) -> Decimal:
        """Fractional collateral price drop that triggers liquidation.

        A return value of 0.05 means a 5% drop triggers liquidation.
        Returns inf if position has no debt.
        """
        if debt_value <= 0:
            return _INFINITY
        # HF = (collateral * (1 - drop) * liq_threshold) / debt = 1.0
        critical_ratio = debt_value / (collateral_value * self.liquidation_threshold)
        if critical_ratio >= 1:
            return Decimal(0)  # Already liquidatable
        return 1 - critical_ratio

    def price_sensitivity(
        self,
        collateral_amount: float,
        oracle_price: float,
        debt_value: float,
        price_range: tuple[float, float] = (0.5, 1.0),
        n_points: int = 100,
    ) -> pd.DataFrame:
        """Health factor as the oracle price moves to a fraction of today's.

        Returns:
            DataFrame with columns: price_ratio, oracle_price, health_factor
        """
        ratios = np.linspace(price_range[0], price_range[1], n_points)
        prices = ratios * oracle_price
        threshold = float(self.liquidation_threshold)
        if debt_value <= 0:
            hfs = np.full(n_points, np.inf)
        else:
            hfs = collateral_amount * prices * threshold / debt_value

        return pd.DataFrame(
            {"price_ratio": ratios, "oracle_price": prices, "health_factor": hfs}
        )

"""Residual-risk sweeps for a planned transition.

A plan is sized at an expected market price; what it actually buys depends
on the price at execution.  These sweeps show where the resulting position
lands as that price deviates, and where the oracle would liquidate it.
"""

from __future__ import annotations

from decimal import Decimal

import numpy as np
import pandas as pd

from multiply.position.amounts import Numeric, to_decimal
from multiply.position.position import Position
from multiply.position.risk_ratio import RiskRatio
from multiply.protocol.liquidation import LiquidationModel
from multiply.simulation.solvers import solve_decrease, solve_increase


def market_price_sensitivity(
    position: Position,
    target: RiskRatio,
    slippage: Numeric,
    fee_rate: Numeric,
    market_price: Numeric | None = None,
    deviation_range: tuple[float, float] = (-0.05, 0.05),
    n_points: int = 21,
) -> pd.DataFrame:
    """Resulting position when the swap executes away from the sizing price.

    The transition is sized once at ``market_price`` (the oracle price when
    omitted); each row re-prices the swap at ``market_price * (1 + deviation)``
    and recomputes the outcome against the oracle.

    Returns:
        DataFrame with columns: deviation, execution_price, loan_to_value,
        multiple, health_factor, target_gap, within_slippage.  ``target_gap``
        is resulting multiple minus target multiple; ``within_slippage`` is
        False where the swap would fall short of its guaranteed minimum and
        the plan would revert.
    """
    planned_price = to_decimal(market_price) if market_price is not None else position.oracle_price
    slippage = to_decimal(slippage)
    fee_rate = to_decimal(fee_rate)
    collateral = float(position.collateral.normalized)
    debt = float(position.debt.normalized)
    oracle = float(position.oracle_price)

    deviations = np.linspace(deviation_range[0], deviation_range[1], n_points)
    prices = float(planned_price) * (1 + deviations)
    keep = 1 - float(fee_rate)

    increasing = target.multiple > position.risk_ratio.multiple
    if increasing:
        sizing = solve_increase(
            position.collateral.normalized, position.debt.normalized, position.oracle_price,
            planned_price, target.loan_to_value, slippage, fee_rate,
            max_ltv=position.category.max_loan_to_value,
        )
        swap = float(sizing.swap_amount)
        bought = swap * keep / prices
        final_collateral = collateral + bought
        final_debt = np.full(n_points, debt + float(sizing.debt_increase))
        within = bought >= swap * keep / (float(planned_price) * (1 + float(slippage)))
    else:
        sizing = solve_decrease(
            position.collateral.normalized, position.debt.normalized, position.oracle_price,
            planned_price, target.loan_to_value, slippage, fee_rate,
            max_ltv=position.category.max_loan_to_value,
        )
        sold = float(sizing.collateral_sold)
        received = sold * prices * keep
        final_collateral = np.full(n_points, collateral - sold)
        final_debt = np.maximum(debt - received, 0.0)
        within = received >= sold * float(planned_price) * (1 - float(slippage)) * keep

    collateral_value = final_collateral * oracle
    ltv = np.divide(final_debt, collateral_value, out=np.zeros(n_points), where=collateral_value > 0)
    multiple = np.where(ltv < 1, 1 / np.clip(1 - ltv, 1e-18, None), np.inf)
    threshold = float(position.category.liquidation_threshold)
    hf = np.divide(
        collateral_value * threshold, final_debt, out=np.full(n_points, np.inf), where=final_debt > 0
    )

    return pd.DataFrame(
        {
            "deviation": deviations,
            "execution_price": prices,
            "loan_to_value": ltv,
            "multiple": multiple,
            "health_factor": hf,
            "target_gap": multiple - float(target.multiple),
            "within_slippage": within,
        }
    )


def liquidation_sweep(
    position: Position,
    price_range: tuple[float, float] = (0.5, 1.0),
    n_points: int = 100,
) -> pd.DataFrame:
    """Health factor of ``position`` as the oracle price falls.

    Returns:
        DataFrame with columns: price_ratio, oracle_price, health_factor
    """
    model = LiquidationModel(position.category)
    return model.price_sensitivity(
        float(position.collateral.normalized),
        float(position.oracle_price),
        float(position.debt_value),
        price_range=price_range,
        n_points=n_points,
    )


def liquidation_buffer(position: Position) -> Decimal:
    """Fractional oracle-price drop that makes ``position`` liquidatable."""
    model = LiquidationModel(position.category)
    return model.liquidation_price_drop(position.collateral_value, position.debt_value)

"""Sizing solvers for leverage transitions.

All solvers are pure functions on human-scale ``Decimal`` amounts.  Prices
are collateral priced in debt-token terms.  The oracle price governs the
resulting ratio; the market price (moved against the user by ``slippage``)
governs what a swap returns.  The gap between the two is the residual risk
of the plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, localcontext

from multiply.config import FeeSource, PlanningConfig
from multiply.errors import InfeasibleTarget, InvalidAmount
from multiply.position.amounts import DECIMAL_CONTEXT, Numeric, to_base_units, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)

# Resolution at which a ratio is compared with its protocol limit
RATIO_QUANTUM = Decimal("1e-18")


# ---------------------------------------------------------------------------
# Deposit-funded loop
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoopParams:
    """Base-unit sizes for looping a deposit up to a minimum collateral ratio."""

    own_deposit: int
    lend_amount: int
    borrow_amount: int
    flashloan_amount: int


def calculate_loop_params(
    own_deposit: Numeric,
    min_collateral_ratio: Numeric = Decimal("0.77"),
    config: PlanningConfig | None = None,
) -> LoopParams:
    """Size a flashloan-funded loop of ``own_deposit``.

    Assumes collateral and debt trade 1:1 (same asset or a wrapped
    equivalent such as stETH/ETH); it is not a general cross-asset model.

        min_multiple = 1 / min_collateral_ratio
        lend         = own_deposit / (min_multiple - 1) * min_multiple
        borrow       = own_deposit / (min_multiple - 1)
        flashloan    = lend - own_deposit
    """
    config = config or PlanningConfig()
    precision = config.default_precision
    deposit = to_decimal(own_deposit)
    ratio = to_decimal(min_collateral_ratio)
    if deposit < 0:
        raise InvalidAmount(f"Deposit must be non-negative, got {deposit}")
    if not ZERO < ratio < ONE:
        raise InfeasibleTarget("Minimum collateral ratio must lie in (0, 1)", ratio, ONE)

    with localcontext(DECIMAL_CONTEXT):
        min_multiple = ONE / ratio
        lend = deposit / (min_multiple - ONE) * min_multiple
        borrow = deposit / (min_multiple - ONE)
        flashloan = lend - deposit

    logger.debug(
        "Loop sizing: deposit=%s lend=%s borrow=%s flashloan=%s", deposit, lend, borrow, flashloan
    )
    return LoopParams(
        own_deposit=to_base_units(deposit, precision),
        lend_amount=to_base_units(lend, precision),
        borrow_amount=to_base_units(borrow, precision),
        flashloan_amount=to_base_units(flashloan, precision),
    )


# ---------------------------------------------------------------------------
# Target-ratio solvers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IncreaseSizing:
    """Debt to draw and collateral it buys, human scale.

    ``debt_drawn`` is what is swapped out of the credit line;
    ``debt_increase`` adds the flashloan fee when the draw repays a flashloan.
    """

    debt_drawn: Decimal
    debt_increase: Decimal
    swap_amount: Decimal  # debt token, gross of fee (draw + debt top-up)
    collateral_bought: Decimal  # after fee and slippage


@dataclass(frozen=True)
class DecreaseSizing:
    """Collateral to sell and debt it repays, human scale."""

    collateral_sold: Decimal
    swap_amount: Decimal  # collateral token, gross of fee
    debt_bought: Decimal  # after fee and slippage, before flashloan fee
    debt_repaid: Decimal  # from the swap plus any debt top-up


def at_or_above_limit(ltv: Decimal, limit: Decimal) -> bool:
    if ltv.is_infinite():
        return True
    with localcontext(DECIMAL_CONTEXT):
        return ltv.quantize(RATIO_QUANTUM) >= limit.quantize(RATIO_QUANTUM)


def _check_target(target_ltv: Decimal, max_ltv: Decimal | None) -> None:
    if target_ltv < 0:
        raise InfeasibleTarget("Loan-to-value must be non-negative", target_ltv, ZERO)
    if max_ltv is not None and at_or_above_limit(target_ltv, to_decimal(max_ltv)):
        raise InfeasibleTarget(
            "Target collateralization ratio at or below protocol minimum",
            ONE / target_ltv if target_ltv else None,
            ONE / max_ltv,
        )


def solve_increase(
    collateral: Numeric,
    debt: Numeric,
    oracle_price: Numeric,
    market_price: Numeric,
    target_ltv: Numeric,
    slippage: Numeric,
    fee_rate: Numeric,
    debt_top_up: Numeric = ZERO,
    collateral_top_up: Numeric = ZERO,
    flashloan_fee: Numeric = ZERO,
    max_ltv: Decimal | None = None,
) -> IncreaseSizing:
    """Debt to draw so that, once swapped into collateral, LTV hits the target.

    Solves ``D + X(1+fl) = L * P_o * (C + T_c + (X + T_d)(1-f) / P_m')`` for
    ``X`` where ``P_m' = P_m (1 + slippage)``.
    """
    c, d = to_decimal(collateral), to_decimal(debt)
    p_o, p_m = to_decimal(oracle_price), to_decimal(market_price)
    ltv, s, f = to_decimal(target_ltv), to_decimal(slippage), to_decimal(fee_rate)
    t_d, t_c, fl = to_decimal(debt_top_up), to_decimal(collateral_top_up), to_decimal(flashloan_fee)
    _check_target(ltv, max_ltv)
    if p_o <= 0 or p_m <= 0:
        raise InvalidAmount("Prices must be positive")

    with localcontext(DECIMAL_CONTEXT):
        buy_price = p_m * (ONE + s)
        received_per_debt = (ONE - f) / buy_price
        numerator = ltv * p_o * (c + t_c + t_d * received_per_debt) - d
        denominator = (ONE + fl) - ltv * p_o * received_per_debt
        if denominator <= 0:
            raise InfeasibleTarget(
                "Swap price and fees make the target unreachable by borrowing",
                ltv,
                ONE / (p_o * received_per_debt),
            )
        debt_drawn = numerator / denominator
        if debt_drawn < 0:
            raise InfeasibleTarget("Target requires reducing debt, not drawing it", ltv, d / (p_o * c) if c else None)
        swap_amount = debt_drawn + t_d
        collateral_bought = swap_amount * received_per_debt

    logger.debug(
        "Increase sizing: draw=%s swap=%s bought=%s", debt_drawn, swap_amount, collateral_bought
    )
    return IncreaseSizing(
        debt_drawn=debt_drawn,
        debt_increase=debt_drawn * (ONE + fl),
        swap_amount=swap_amount,
        collateral_bought=collateral_bought,
    )


def solve_decrease(
    collateral: Numeric,
    debt: Numeric,
    oracle_price: Numeric,
    market_price: Numeric,
    target_ltv: Numeric,
    slippage: Numeric,
    fee_rate: Numeric,
    debt_top_up: Numeric = ZERO,
    collateral_top_up: Numeric = ZERO,
    flashloan_fee: Numeric = ZERO,
    max_ltv: Decimal | None = None,
) -> DecreaseSizing:
    """Collateral to sell so that repaying debt with the proceeds hits the target LTV.

    Solves ``D - T_d - Y k = L * P_o * (C + T_c - Y)`` for ``Y`` where
    ``k = P_m (1 - slippage)(1 - f) / (1 + fl)``.
    """
    c, d = to_decimal(collateral), to_decimal(debt)
    p_o, p_m = to_decimal(oracle_price), to_decimal(market_price)
    ltv, s, f = to_decimal(target_ltv), to_decimal(slippage), to_decimal(fee_rate)
    t_d, t_c, fl = to_decimal(debt_top_up), to_decimal(collateral_top_up), to_decimal(flashloan_fee)
    _check_target(ltv, max_ltv)
    if p_o <= 0 or p_m <= 0:
        raise InvalidAmount("Prices must be positive")

    with localcontext(DECIMAL_CONTEXT):
        sell_price = p_m * (ONE - s)
        repaid_per_collateral = sell_price * (ONE - f) / (ONE + fl)
        numerator = d - t_d - ltv * p_o * (c + t_c)
        denominator = repaid_per_collateral - ltv * p_o
        if denominator <= 0:
            raise InfeasibleTarget(
                "Swap price and fees make the target unreachable by selling collateral",
                ltv,
                repaid_per_collateral / p_o,
            )
        collateral_sold = numerator / denominator
        if collateral_sold <= 0:
            raise InfeasibleTarget("Target is not below the current risk", ltv, d / (p_o * c) if c else None)
        if collateral_sold > c + t_c:
            raise InfeasibleTarget(
                "Target requires selling more collateral than the position holds",
                collateral_sold,
                c + t_c,
            )
        debt_bought = collateral_sold * sell_price * (ONE - f)
        debt_repaid = collateral_sold * repaid_per_collateral + t_d

    logger.debug(
        "Decrease sizing: sell=%s bought=%s repaid=%s", collateral_sold, debt_bought, debt_repaid
    )
    return DecreaseSizing(
        collateral_sold=collateral_sold,
        swap_amount=collateral_sold,
        debt_bought=debt_bought,
        debt_repaid=debt_repaid,
    )


# ---------------------------------------------------------------------------
# Collateralization-ratio flavoured entry points (Maker vaults)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MultiplyParams:
    """Human-scale sizes for a Maker multiply change."""

    required_debt: Decimal
    additional_collateral: Decimal
    pre_increase_top_up: Decimal


@dataclass(frozen=True)
class DecreaseMultiplyParams:
    collateral_to_sell: Decimal
    debt_to_payback: Decimal


def calculate_increase_multiple_params(
    oracle_price: Numeric,
    market_price: Numeric,
    oazo_fee: Numeric,
    flashloan_fee: Numeric,
    current_coll: Numeric,
    current_debt: Numeric,
    dai_top_up: Numeric,
    coll_top_up: Numeric,
    required_coll_ratio: Numeric,
    slippage: Numeric,
    min_coll_ratio: Numeric | None = None,
) -> MultiplyParams:
    """DAI to generate and collateral it buys to reach ``required_coll_ratio``.

    The collateral top-up is deposited before the increase
    (``pre_increase_top_up``); the DAI top-up is swapped together with the
    generated DAI.
    """
    ratio = to_decimal(required_coll_ratio)
    if ratio <= 0:
        raise InfeasibleTarget("Collateralization ratio must be positive", ratio, ZERO)
    with localcontext(DECIMAL_CONTEXT):
        max_ltv = ONE / to_decimal(min_coll_ratio) if min_coll_ratio is not None else None
        sizing = solve_increase(
            collateral=current_coll,
            debt=current_debt,
            oracle_price=oracle_price,
            market_price=market_price,
            target_ltv=ONE / ratio,
            slippage=slippage,
            fee_rate=oazo_fee,
            debt_top_up=dai_top_up,
            collateral_top_up=coll_top_up,
            flashloan_fee=flashloan_fee,
            max_ltv=max_ltv,
        )
    return MultiplyParams(
        required_debt=sizing.debt_drawn,
        additional_collateral=sizing.collateral_bought,
        pre_increase_top_up=to_decimal(coll_top_up),
    )


def calculate_decrease_multiple_params(
    oracle_price: Numeric,
    market_price: Numeric,
    oazo_fee: Numeric,
    flashloan_fee: Numeric,
    current_coll: Numeric,
    current_debt: Numeric,
    required_coll_ratio: Numeric,
    slippage: Numeric,
    min_coll_ratio: Numeric | None = None,
    dai_top_up: Numeric = ZERO,
    coll_top_up: Numeric = ZERO,
) -> DecreaseMultiplyParams:
    """Collateral to sell and DAI to pay back to reach ``required_coll_ratio``."""
    ratio = to_decimal(required_coll_ratio)
    if ratio <= 0:
        raise InfeasibleTarget("Collateralization ratio must be positive", ratio, ZERO)
    with localcontext(DECIMAL_CONTEXT):
        max_ltv = ONE / to_decimal(min_coll_ratio) if min_coll_ratio is not None else None
        sizing = solve_decrease(
            collateral=current_coll,
            debt=current_debt,
            oracle_price=oracle_price,
            market_price=market_price,
            target_ltv=ONE / ratio,
            slippage=slippage,
            fee_rate=oazo_fee,
            debt_top_up=dai_top_up,
            collateral_top_up=coll_top_up,
            flashloan_fee=flashloan_fee,
            max_ltv=max_ltv,
        )
    return DecreaseMultiplyParams(
        collateral_to_sell=sizing.collateral_sold,
        debt_to_payback=sizing.debt_repaid,
    )


# ---------------------------------------------------------------------------
# Flashloan sizing
# ---------------------------------------------------------------------------

def calculate_flashloan_amount(
    value_in_debt: Numeric,
    debt_price_in_flashloan_token: Numeric,
    flashloan_token_max_ltv: Numeric,
    safety_margin: Numeric = ZERO,
) -> Decimal:
    """Flashloan-token collateral needed to back ``value_in_debt`` of debt-side value.

    ``value * price / max_ltv * (1 + margin)``.  Used when the lender cannot
    flashloan the debt token itself and the loan is deposited as substitute
    collateral for the duration of the plan.
    """
    max_ltv = to_decimal(flashloan_token_max_ltv)
    if not ZERO < max_ltv <= ONE:
        raise InfeasibleTarget("Flashloan token max LTV must lie in (0, 1]", max_ltv, ONE)
    with localcontext(DECIMAL_CONTEXT):
        return (
            to_decimal(value_in_debt)
            * to_decimal(debt_price_in_flashloan_token)
            / max_ltv
            * (ONE + to_decimal(safety_margin))
        )


# ---------------------------------------------------------------------------
# Fee attribution
# ---------------------------------------------------------------------------

# (is_increasing_risk, collect_fee_from) -> fee paid in the debt token
FEE_FROM_DEBT_TOKEN: dict[tuple[bool, FeeSource], bool] = {
    (True, "sourceToken"): True,
    (True, "targetToken"): False,
    (False, "sourceToken"): False,
    (False, "targetToken"): True,
}


def is_fee_from_debt_token(is_increasing_risk: bool, collect_fee_from: FeeSource) -> bool:
    return FEE_FROM_DEBT_TOKEN[(is_increasing_risk, collect_fee_from)]

"""Steps shared by every strategy family."""

from __future__ import annotations

import logging
from decimal import Decimal, localcontext
from typing import Callable

from multiply.config import FeeSource, PlanningConfig
from multiply.data.constants import MAX_UINT
from multiply.data.flashloan import FlashloanProvider, provider_lends, resolve_flashloan_provider
from multiply.errors import InfeasibleTarget, InsufficientCollateral, InsufficientDebt, InvalidAmount
from multiply.operations.steps import FlashloanFunding, Step, TransitionPlan, swap_step
from multiply.position.amounts import (
    DECIMAL_CONTEXT,
    Numeric,
    Token,
    Unit,
    calculate_fee,
    ensure_base_units,
    floor_int,
    from_base_units,
    to_base_units,
    to_decimal,
)
from multiply.position.position import Position
from multiply.protocol.context import ProtocolContext, TokenAddresses, resolve_token_addresses
from multiply.simulation.results import Delta, Flags, SimulationResult, SwapSpec
from multiply.simulation.solvers import at_or_above_limit, calculate_flashloan_amount
from multiply.strategies.types import PositionTransition, StrategyDependencies

logger = logging.getLogger(__name__)


def validate_slippage(slippage: Numeric) -> Decimal:
    value = to_decimal(slippage)
    if not Decimal(0) <= value < Decimal(1):
        raise InvalidAmount(f"Slippage must lie in [0, 1), got {value}")
    return value


def to_base(value: Numeric, token: Token, unit: Unit | None, config: PlanningConfig) -> int:
    return ensure_base_units(value, token.precision, unit, config)


def load_position(
    context: ProtocolContext,
    collateral: Token,
    debt: Token,
    dependencies: StrategyDependencies,
) -> tuple[TokenAddresses, Position]:
    """Resolve asset identifiers, then read (or accept) the current position."""
    addresses = resolve_token_addresses(context, collateral.symbol, debt.symbol)
    position = dependencies.current_position
    if position is None:
        position = dependencies.position_reader.get_current_position(
            dependencies.proxy, collateral, debt
        )
    return addresses, position


def is_increasing_risk(position: Position, target_multiple: Decimal) -> bool:
    return target_multiple > position.risk_ratio.multiple


def market_price_or_oracle(market_price: Decimal | None, position: Position) -> Decimal:
    if market_price is None:
        return position.oracle_price
    price = to_decimal(market_price)
    if price <= 0:
        raise InvalidAmount(f"Market price must be positive, got {price}")
    return price


def fetch_swap(
    source: Token,
    target: Token,
    gross_amount: int,
    slippage: Decimal,
    collect_fee_from: FeeSource,
    dependencies: StrategyDependencies,
    expected_received: Decimal | None = None,
) -> SwapSpec:
    """Quote a sized swap and derive the guaranteed output.

    A source-side fee is cut from ``gross_amount`` before quoting; a
    target-side fee is cut from the guaranteed output.
    """
    config = dependencies.config
    fee = 0
    amount_to_swap = gross_amount
    if collect_fee_from == "sourceToken":
        fee = calculate_fee(gross_amount, config.fee_bips, config.fee_base)
        amount_to_swap = gross_amount - fee

    quote = dependencies.swap_quotes.get_swap_quote(
        source, target, Decimal(amount_to_swap), slippage
    )
    with localcontext(DECIMAL_CONTEXT):
        min_received = floor_int(quote.to_amount * (1 - slippage))
    if collect_fee_from == "targetToken":
        fee = calculate_fee(min_received, config.fee_bips, config.fee_base)

    spec = SwapSpec(
        source_token=source,
        target_token=target,
        amount=Decimal(gross_amount),
        amount_to_swap=Decimal(amount_to_swap),
        quoted_amount=quote.to_amount,
        min_received=Decimal(min_received),
        fee=Decimal(fee),
        fee_split=collect_fee_from,
        calldata=quote.calldata,
        exchange_address=quote.exchange_address,
    )
    if expected_received is not None and spec.received_after_fee < expected_received:
        logger.warning(
            "Quote for %s %s -> %s guarantees %s, sizing assumed %s",
            gross_amount, source.symbol, target.symbol, spec.received_after_fee, expected_received,
        )
    return spec


def swap_to_step(swap: SwapSpec, addresses_by_symbol: dict[str, str], config: PlanningConfig) -> Step:
    return swap_step(
        swap.source_token,
        addresses_by_symbol[swap.source_token.symbol],
        swap.target_token,
        addresses_by_symbol[swap.target_token.symbol],
        swap.amount,
        swap.min_received,
        config.fee_bips,
        swap.fee_split,
        swap.calldata,
    )


def flashloan_funding(
    provider: FlashloanProvider,
    debt: Token,
    debt_amount: int,
    flashloan_token: Token,
    flashloan_token_address: str,
    debt_address: str,
    flashloan_token_max_ltv: Decimal,
    dependencies: StrategyDependencies,
    margin: bool = False,
) -> FlashloanFunding:
    """Size the flashloan backing ``debt_amount`` of the debt token.

    The loan is taken in the debt token when the lender has it; otherwise in
    the substitute token, sized to collateralise ``debt_amount`` at the
    substitute's maximum LTV.
    """
    config = dependencies.config
    if provider_lends(provider, debt.symbol):
        amount = debt_amount
        if margin:
            amount = floor_int(Decimal(debt_amount) * (1 + config.flashloan_safety_margin))
        fee = floor_int(Decimal(amount) * config.flashloan_fee)
        return FlashloanFunding(provider, debt, amount, debt_address, fee)

    price = dependencies.position_reader.get_oracle_price(debt, flashloan_token)
    value = calculate_flashloan_amount(
        from_base_units(debt_amount, debt.precision),
        price,
        flashloan_token_max_ltv,
        config.flashloan_safety_margin,
    )
    amount = to_base_units(value, flashloan_token.precision)
    fee = floor_int(Decimal(amount) * config.flashloan_fee)
    logger.debug(
        "Substitute flashloan of %s %s backing %s %s", amount, flashloan_token.symbol, debt_amount, debt.symbol
    )
    return FlashloanFunding(provider, flashloan_token, amount, flashloan_token_address, fee)


def resolve_provider(dependencies: StrategyDependencies) -> FlashloanProvider:
    return resolve_flashloan_provider(dependencies.network)


def position_delta(before: Position, after: Position, flashloan: int = 0) -> Delta:
    return Delta(
        debt=after.debt.amount - before.debt.amount,
        collateral=after.collateral.amount - before.collateral.amount,
        flashloan=Decimal(flashloan),
    )


def plan_payback_withdraw(
    position: Position,
    payback: int,
    withdraw: int,
    build: Callable[..., TransitionPlan],
) -> PositionTransition:
    """Payback/withdraw policy shared by every protocol.

    A payback at or above the current debt becomes a "payback all" step and
    a withdrawal at or above the collateral becomes "withdraw all", both
    carrying ``MAX_UINT`` so interest accrued before execution is covered.
    ``build`` assembles the protocol plan from the final step amounts.
    """
    if payback > 0 and position.debt.amount == 0:
        raise InsufficientDebt(payback, position.debt.amount)
    if withdraw > 0 and position.collateral.amount == 0:
        raise InsufficientCollateral(withdraw, position.collateral.amount)

    payback_all = payback > 0 and position.is_full_payback(payback)
    withdraw_all = withdraw > 0 and withdraw >= position.collateral.amount
    resulting = position.payback(payback).withdraw(min(Decimal(withdraw), position.collateral.amount))
    max_ltv = resulting.category.max_loan_to_value
    if resulting.debt.amount > 0 and at_or_above_limit(resulting.risk_ratio.loan_to_value, max_ltv):
        raise InfeasibleTarget(
            "Withdrawal leaves the position above its maximum loan-to-value",
            resulting.risk_ratio.loan_to_value,
            max_ltv,
        )

    plan = build(
        pull_amount=payback,
        payback_amount=MAX_UINT if payback_all else payback,
        payback_all=payback_all,
        withdraw_amount=MAX_UINT if withdraw_all else withdraw,
    )
    flags = Flags(
        is_increasing_risk=position.risk_ratio.loan_to_value < resulting.risk_ratio.loan_to_value,
        requires_flashloan=False,
    )
    logger.info(
        "%s: payback_all=%s withdraw_all=%s", plan.operation_name.value, payback_all, withdraw_all
    )
    simulation = SimulationResult(
        delta=position_delta(position, resulting),
        fee=Decimal(0),
        fee_token=None,
        position=position,
        resulting_position=resulting,
        flags=flags,
        collateral_returned=position.collateral.amount - resulting.collateral.amount,
        debt_returned=Decimal(max(0, payback - position.debt.amount)),
    )
    return PositionTransition(plan, simulation)

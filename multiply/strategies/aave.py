"""Aave V2/V3 strategies: open, adjust, payback/withdraw, close.

Every call resolves the flashloan lender first, then reads the position,
sizes the transition, fetches one swap quote for the sized amount and
finally assembles the plan and its simulation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal, localcontext
from functools import partial

from multiply.data.flashloan import FlashloanProvider, provider_lends
from multiply.data.static_params import default_category
from multiply.errors import (
    InfeasibleTarget,
    InvalidAmount,
    UnsupportedProtocol,
)
from multiply.operations import aave as operations
from multiply.operations.steps import FlashloanFunding
from multiply.position.amounts import (
    DECIMAL_CONTEXT,
    Token,
    floor_int,
    from_base_units,
    to_base_units,
)
from multiply.position.position import Position
from multiply.protocol.context import AAVE_V3, AaveContext, AaveV3Context, TokenAddresses
from multiply.simulation.results import Flags, FlashloanSpec, SimulationResult, SwapSpec
from multiply.simulation.solvers import is_fee_from_debt_token, solve_decrease, solve_increase
from multiply.strategies.common import (
    fetch_swap,
    flashloan_funding,
    is_increasing_risk,
    load_position,
    market_price_or_oracle,
    plan_payback_withdraw,
    position_delta,
    resolve_provider,
    swap_to_step,
    to_base,
    validate_slippage,
)
from multiply.strategies.types import (
    AdjustRequest,
    CloseRequest,
    OpenRequest,
    PaybackWithdrawRequest,
    PositionTransition,
    StrategyDependencies,
)

logger = logging.getLogger(__name__)


def _flashloan_token(context: AaveContext) -> tuple[Token, str]:
    token = Token.of(context.flashloan_token)
    return token, context.tokens[context.flashloan_token]


def _funding(
    context: AaveContext,
    provider: FlashloanProvider,
    debt: Token,
    debt_amount: int,
    addresses: TokenAddresses,
    dependencies: StrategyDependencies,
    margin: bool = False,
) -> FlashloanFunding:
    fl_token, fl_address = _flashloan_token(context)
    return flashloan_funding(
        provider,
        debt,
        debt_amount,
        fl_token,
        fl_address,
        addresses.debt,
        context.flashloan_token_max_ltv,
        dependencies,
        margin=margin,
    )


def _flashloan_spec(funding: FlashloanFunding | None, debt: Token) -> FlashloanSpec:
    if funding is None:
        return FlashloanSpec(None, debt, Decimal(0))
    return FlashloanSpec(funding.provider, funding.token, Decimal(funding.amount))


def _fee_token(is_increasing: bool, swap: SwapSpec, collateral: Token, debt: Token) -> Token:
    return debt if is_fee_from_debt_token(is_increasing, swap.fee_split) else collateral


def _swap_addresses(addresses: TokenAddresses, collateral: Token, debt: Token) -> dict[str, str]:
    return {collateral.symbol: addresses.collateral, debt.symbol: addresses.debt}


# ---------------------------------------------------------------------------
# Increase / decrease
# ---------------------------------------------------------------------------

def _increase(
    context: AaveContext,
    addresses: TokenAddresses,
    position: Position,
    request: OpenRequest | AdjustRequest,
    provider: FlashloanProvider,
    deposit_collateral: int,
    deposit_debt: int,
    dependencies: StrategyDependencies,
    is_open: bool,
) -> PositionTransition:
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    slippage = validate_slippage(request.slippage)
    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    direct = provider_lends(provider, debt.symbol)
    flashloan_fee = config.flashloan_fee if direct else Decimal(0)
    market_price = market_price_or_oracle(request.market_price, position)

    sizing = solve_increase(
        collateral=position.collateral.normalized,
        debt=position.debt.normalized,
        oracle_price=position.oracle_price,
        market_price=market_price,
        target_ltv=request.target.loan_to_value,
        slippage=slippage,
        fee_rate=config.fee_rate,
        debt_top_up=from_base_units(deposit_debt, debt.precision),
        collateral_top_up=from_base_units(deposit_collateral, collateral.precision),
        flashloan_fee=flashloan_fee,
        max_ltv=position.category.max_loan_to_value,
    )
    borrow_amount = to_base_units(sizing.debt_drawn, debt.precision)
    swap_amount = borrow_amount + deposit_debt

    swap = None
    swap_step = None
    if swap_amount > 0:
        swap = fetch_swap(
            debt,
            collateral,
            swap_amount,
            slippage,
            collect_fee_from,
            dependencies,
            expected_received=Decimal(to_base_units(sizing.collateral_bought, collateral.precision)),
        )
        swap_step = swap_to_step(swap, _swap_addresses(addresses, collateral, debt), config)

    funding = None
    if borrow_amount > 0:
        funding = _funding(context, provider, debt, borrow_amount, addresses, dependencies)
    debt_increase = borrow_amount
    if funding is not None and direct:
        debt_increase = funding.repayment

    bought = swap.received_after_fee if swap is not None else Decimal(0)
    resulting = position.deposit(deposit_collateral + bought).borrow(debt_increase)

    plan = operations.build_increase(
        context,
        addresses,
        collateral,
        debt,
        dependencies.proxy,
        dependencies.user,
        deposit_collateral=deposit_collateral,
        deposit_debt=deposit_debt,
        borrow_amount=borrow_amount,
        swap=swap_step,
        flashloan=funding,
        is_open=is_open,
    )
    flags = Flags(
        is_increasing_risk=is_increasing_risk(position, request.target.multiple),
        requires_flashloan=funding is not None,
    )
    logger.info(
        "%s: multiple %s -> %s, flashloan=%s",
        plan.operation_name.value,
        position.risk_ratio.multiple,
        resulting.risk_ratio.multiple,
        flags.requires_flashloan,
    )
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount if funding else 0),
        fee=swap.fee if swap is not None else Decimal(0),
        fee_token=_fee_token(True, swap, collateral, debt) if swap is not None else None,
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding, debt),
    )
    return PositionTransition(plan, simulation)


def _decrease(
    context: AaveContext,
    addresses: TokenAddresses,
    position: Position,
    request: AdjustRequest,
    provider: FlashloanProvider,
    deposit_collateral: int,
    deposit_debt: int,
    dependencies: StrategyDependencies,
) -> PositionTransition:
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    slippage = validate_slippage(request.slippage)
    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    direct = provider_lends(provider, debt.symbol)
    flashloan_fee = config.flashloan_fee if direct else Decimal(0)
    market_price = market_price_or_oracle(request.market_price, position)

    sizing = solve_decrease(
        collateral=position.collateral.normalized,
        debt=position.debt.normalized,
        oracle_price=position.oracle_price,
        market_price=market_price,
        target_ltv=request.target.loan_to_value,
        slippage=slippage,
        fee_rate=config.fee_rate,
        debt_top_up=from_base_units(deposit_debt, debt.precision),
        collateral_top_up=from_base_units(deposit_collateral, collateral.precision),
        flashloan_fee=flashloan_fee,
        max_ltv=position.category.max_loan_to_value,
    )
    withdraw_amount = to_base_units(sizing.collateral_sold, collateral.precision)
    swap = fetch_swap(
        collateral,
        debt,
        withdraw_amount,
        slippage,
        collect_fee_from,
        dependencies,
        expected_received=Decimal(to_base_units(sizing.debt_bought, debt.precision)),
    )
    received = int(swap.received_after_fee)

    if direct:
        with localcontext(DECIMAL_CONTEXT):
            loan = floor_int(Decimal(received) / (1 + flashloan_fee))
        funding = _funding(context, provider, debt, loan, addresses, dependencies)
        payback_amount = funding.amount + deposit_debt
    else:
        funding = _funding(context, provider, debt, received, addresses, dependencies)
        payback_amount = received + deposit_debt

    resulting = (
        position.deposit(deposit_collateral).withdraw(withdraw_amount).payback(payback_amount)
    )
    plan = operations.build_decrease(
        context,
        addresses,
        collateral,
        debt,
        dependencies.proxy,
        dependencies.user,
        withdraw_amount=withdraw_amount,
        payback_amount=payback_amount,
        deposit_collateral=deposit_collateral,
        deposit_debt=deposit_debt,
        swap=swap_to_step(swap, _swap_addresses(addresses, collateral, debt), config),
        flashloan=funding,
    )
    flags = Flags(
        is_increasing_risk=is_increasing_risk(position, request.target.multiple),
        requires_flashloan=True,
    )
    logger.info(
        "%s: multiple %s -> %s, flashloan=%s",
        plan.operation_name.value,
        position.risk_ratio.multiple,
        resulting.risk_ratio.multiple,
        flags.requires_flashloan,
    )
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount),
        fee=swap.fee,
        fee_token=_fee_token(False, swap, collateral, debt),
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding, debt),
        debt_returned=Decimal(max(0, received - funding.repayment)) if direct else Decimal(0),
    )
    return PositionTransition(plan, simulation)


# ---------------------------------------------------------------------------
# Public strategies
# ---------------------------------------------------------------------------

def open_position(
    request: OpenRequest, context: AaveContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Deposit and lever up to ``request.target`` in one plan.

    On Aave V3 a non-zero ``context.category_id`` enters that e-mode before
    borrowing, and the target is checked against the e-mode limits.
    """
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    validate_slippage(request.slippage)
    deposit_collateral = to_base(request.deposit_collateral, collateral, request.unit, config)
    deposit_debt = to_base(request.deposit_debt, debt, request.unit, config)
    if deposit_collateral == 0 and deposit_debt == 0:
        raise InvalidAmount("Opening a position requires a deposit")

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, debt, dependencies)
    if isinstance(context, AaveV3Context) and context.category_id:
        category = default_category(AAVE_V3, collateral.symbol, context.category_id)
        position = replace(position, category=category)

    return _increase(
        context, addresses, position, request, provider,
        deposit_collateral, deposit_debt, dependencies, is_open=True,
    )


def adjust(
    request: AdjustRequest, context: AaveContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Move to ``request.target``; the direction follows from the current multiple."""
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    validate_slippage(request.slippage)
    deposit_collateral = to_base(request.deposit_collateral, collateral, request.unit, config)
    deposit_debt = to_base(request.deposit_debt, debt, request.unit, config)

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, debt, dependencies)
    if position.collateral.amount == 0 and deposit_collateral == 0 and deposit_debt == 0:
        raise InvalidAmount("Cannot adjust an empty position without a deposit")

    target_multiple = request.target.multiple
    current_multiple = position.risk_ratio.multiple
    has_top_up = deposit_collateral > 0 or deposit_debt > 0
    if target_multiple == current_multiple and not has_top_up:
        raise InfeasibleTarget("Position is already at the target multiple", target_multiple, current_multiple)

    if target_multiple >= current_multiple:
        return _increase(
            context, addresses, position, request, provider,
            deposit_collateral, deposit_debt, dependencies, is_open=False,
        )
    return _decrease(
        context, addresses, position, request, provider,
        deposit_collateral, deposit_debt, dependencies,
    )


def payback_withdraw(
    request: PaybackWithdrawRequest, context: AaveContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Pay back debt and/or withdraw collateral without a swap; see ``plan_payback_withdraw``."""
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    payback = to_base(request.payback_amount, debt, request.unit, config)
    withdraw = to_base(request.withdraw_amount, collateral, request.unit, config)
    if payback == 0 and withdraw == 0:
        raise InvalidAmount("Nothing to pay back or withdraw")

    addresses, position = load_position(context, collateral, debt, dependencies)
    return plan_payback_withdraw(
        position,
        payback,
        withdraw,
        partial(
            operations.build_payback_withdraw,
            context, addresses, collateral, debt, dependencies.proxy, dependencies.user,
        ),
    )


def close(
    request: CloseRequest, context: AaveContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Sell all collateral, repay all debt and return the rest in the debt token."""
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    slippage = validate_slippage(request.slippage)
    if request.close_to != "debt":
        raise UnsupportedProtocol(context.protocol, f"close to {request.close_to}")

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, debt, dependencies)
    if position.collateral.amount == 0:
        raise InvalidAmount("Position has no collateral to close")

    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    market_price = market_price_or_oracle(request.market_price, position)
    with localcontext(DECIMAL_CONTEXT):
        expected = position.collateral.normalized * market_price * (1 - slippage) * (1 - config.fee_rate)
    swap = fetch_swap(
        collateral,
        debt,
        int(position.collateral.amount),
        slippage,
        collect_fee_from,
        dependencies,
        expected_received=Decimal(to_base_units(expected, debt.precision)),
    )
    received = swap.received_after_fee

    funding = None
    if position.debt.amount > 0:
        funding = _funding(
            context, provider, debt, int(position.debt.amount), addresses, dependencies, margin=True
        )
    owed = position.debt.amount
    if funding is not None and funding.token.symbol == debt.symbol:
        owed += funding.fee
    if received < owed:
        raise InfeasibleTarget("Collateral proceeds do not cover the debt", received, owed)

    resulting = position.payback(position.debt.amount).withdraw(position.collateral.amount)
    plan = operations.build_close(
        context,
        addresses,
        collateral,
        debt,
        dependencies.user,
        swap=swap_to_step(swap, _swap_addresses(addresses, collateral, debt), config),
        flashloan=funding,
    )
    flags = Flags(is_increasing_risk=False, requires_flashloan=funding is not None)
    logger.info("%s: flashloan=%s", plan.operation_name.value, flags.requires_flashloan)
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount if funding else 0),
        fee=swap.fee,
        fee_token=_fee_token(False, swap, collateral, debt),
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding, debt),
        debt_returned=Decimal(max(Decimal(0), received - owed)),
    )
    return PositionTransition(plan, simulation)

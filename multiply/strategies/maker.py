"""Maker CDP multiply strategies: open, adjust, payback/withdraw, close.

Vaults generate DAI from their own headroom, so a flashloan is only taken
when the intermediate vault state would fall below the liquidation ratio.
The lender is still resolved before any sizing.  Resulting debt must be
zero or at least the ilk's dust.
"""

from __future__ import annotations

import logging
from decimal import Decimal, localcontext
from functools import partial

from multiply.data.constants import DAI
from multiply.data.flashloan import FlashloanProvider
from multiply.errors import InfeasibleTarget, InvalidAmount
from multiply.operations import maker as operations
from multiply.operations.steps import FlashloanFunding
from multiply.position.amounts import (
    DECIMAL_CONTEXT,
    Token,
    floor_int,
    from_base_units,
    to_base_units,
)
from multiply.position.position import Position
from multiply.protocol.context import MakerContext, TokenAddresses
from multiply.simulation.results import Flags, FlashloanSpec, SimulationResult
from multiply.simulation.solvers import (
    calculate_decrease_multiple_params,
    calculate_increase_multiple_params,
    is_fee_from_debt_token,
)
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

_DAI = Token.of(DAI)


def _check_dust(position: Position) -> None:
    dust = position.category.dust_limit
    if 0 < position.debt.amount < dust:
        raise InfeasibleTarget("Resulting vault debt is below the dust limit", position.debt.amount, dust)


def _below_liquidation_ratio(collateral: Decimal, debt: Decimal, position: Position) -> bool:
    """Whether an intermediate vault state (human amounts) breaches the liquidation ratio."""
    if debt <= 0:
        return False
    with localcontext(DECIMAL_CONTEXT):
        return collateral * position.oracle_price / debt < position.category.min_collateralization_ratio


def _funding(
    provider: FlashloanProvider,
    debt_amount: int,
    addresses: TokenAddresses,
    dependencies: StrategyDependencies,
    margin: bool = False,
) -> FlashloanFunding:
    return flashloan_funding(
        provider, _DAI, debt_amount, _DAI, addresses.debt, addresses.debt, Decimal(1), dependencies,
        margin=margin,
    )


def _flashloan_spec(funding: FlashloanFunding | None) -> FlashloanSpec:
    if funding is None:
        return FlashloanSpec(None, _DAI, Decimal(0))
    return FlashloanSpec(funding.provider, funding.token, Decimal(funding.amount))


def _close_fee_token(swap, collateral: Token) -> Token | None:
    if swap is None:
        return None
    return _DAI if is_fee_from_debt_token(False, swap.fee_split) else collateral


def _swap_addresses(addresses: TokenAddresses, collateral: Token) -> dict[str, str]:
    return {collateral.symbol: addresses.collateral, DAI: addresses.debt}


# ---------------------------------------------------------------------------
# Increase / decrease
# ---------------------------------------------------------------------------

def _increase(
    context: MakerContext,
    addresses: TokenAddresses,
    position: Position,
    request: OpenRequest | AdjustRequest,
    provider: FlashloanProvider,
    deposit_collateral: int,
    deposit_dai: int,
    dependencies: StrategyDependencies,
    is_open: bool,
) -> PositionTransition:
    config = dependencies.config
    collateral = request.collateral_token
    slippage = validate_slippage(request.slippage)
    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    market_price = market_price_or_oracle(request.market_price, position)
    coll_top_up = from_base_units(deposit_collateral, collateral.precision)

    def size(flashloan_fee: Decimal):
        return calculate_increase_multiple_params(
            oracle_price=position.oracle_price,
            market_price=market_price,
            oazo_fee=config.fee_rate,
            flashloan_fee=flashloan_fee,
            current_coll=position.collateral.normalized,
            current_debt=position.debt.normalized,
            dai_top_up=from_base_units(deposit_dai, _DAI.precision),
            coll_top_up=coll_top_up,
            required_coll_ratio=request.target.collateralization_ratio,
            slippage=slippage,
            min_coll_ratio=position.category.min_collateralization_ratio,
        )

    params = size(Decimal(0))
    needs_flashloan = _below_liquidation_ratio(
        position.collateral.normalized + params.pre_increase_top_up,
        position.debt.normalized + params.required_debt,
        position,
    )
    if needs_flashloan and config.flashloan_fee > 0:
        params = size(config.flashloan_fee)

    generate = to_base_units(params.required_debt, _DAI.precision)
    funding = None
    if needs_flashloan and generate > 0:
        funding = _funding(provider, generate, addresses, dependencies)
    debt_increase = funding.repayment if funding is not None else generate

    swap = None
    swap_step = None
    if generate + deposit_dai > 0:
        swap = fetch_swap(
            _DAI,
            collateral,
            generate + deposit_dai,
            slippage,
            collect_fee_from,
            dependencies,
            expected_received=Decimal(to_base_units(params.additional_collateral, collateral.precision)),
        )
        swap_step = swap_to_step(swap, _swap_addresses(addresses, collateral), config)

    bought = swap.received_after_fee if swap is not None else Decimal(0)
    resulting = position.deposit(deposit_collateral + bought).borrow(debt_increase)
    _check_dust(resulting)

    plan = operations.build_increase(
        context,
        addresses,
        collateral,
        _DAI,
        dependencies.proxy,
        dependencies.user,
        deposit_collateral=deposit_collateral,
        deposit_dai=deposit_dai,
        generate_amount=generate,
        swap=swap_step,
        flashloan=funding,
        is_open=is_open,
    )
    flags = Flags(
        is_increasing_risk=is_increasing_risk(position, request.target.multiple),
        requires_flashloan=funding is not None,
    )
    logger.info(
        "%s: collateralization %s -> %s, flashloan=%s",
        plan.operation_name.value,
        position.risk_ratio.collateralization_ratio,
        resulting.risk_ratio.collateralization_ratio,
        flags.requires_flashloan,
    )
    fee_token = None
    if swap is not None:
        fee_token = _DAI if is_fee_from_debt_token(True, swap.fee_split) else collateral
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount if funding else 0),
        fee=swap.fee if swap is not None else Decimal(0),
        fee_token=fee_token,
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding),
    )
    return PositionTransition(plan, simulation)


def _decrease(
    context: MakerContext,
    addresses: TokenAddresses,
    position: Position,
    request: AdjustRequest,
    provider: FlashloanProvider,
    deposit_collateral: int,
    deposit_dai: int,
    dependencies: StrategyDependencies,
) -> PositionTransition:
    config = dependencies.config
    collateral = request.collateral_token
    slippage = validate_slippage(request.slippage)
    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    market_price = market_price_or_oracle(request.market_price, position)
    coll_top_up = from_base_units(deposit_collateral, collateral.precision)

    def size(flashloan_fee: Decimal):
        return calculate_decrease_multiple_params(
            oracle_price=position.oracle_price,
            market_price=market_price,
            oazo_fee=config.fee_rate,
            flashloan_fee=flashloan_fee,
            current_coll=position.collateral.normalized,
            current_debt=position.debt.normalized,
            required_coll_ratio=request.target.collateralization_ratio,
            slippage=slippage,
            min_coll_ratio=position.category.min_collateralization_ratio,
            dai_top_up=from_base_units(deposit_dai, _DAI.precision),
            coll_top_up=coll_top_up,
        )

    params = size(Decimal(0))
    needs_flashloan = _below_liquidation_ratio(
        position.collateral.normalized + coll_top_up - params.collateral_to_sell,
        position.debt.normalized,
        position,
    )
    if needs_flashloan and config.flashloan_fee > 0:
        params = size(config.flashloan_fee)

    withdraw = to_base_units(params.collateral_to_sell, collateral.precision)
    with localcontext(DECIMAL_CONTEXT):
        expected = params.debt_to_payback - from_base_units(deposit_dai, _DAI.precision)
    swap = fetch_swap(
        collateral,
        _DAI,
        withdraw,
        slippage,
        collect_fee_from,
        dependencies,
        expected_received=Decimal(to_base_units(expected, _DAI.precision)),
    )
    received = int(swap.received_after_fee)

    funding = None
    payback = received + deposit_dai
    if needs_flashloan:
        flashloan_fee = config.flashloan_fee
        with localcontext(DECIMAL_CONTEXT):
            loan = floor_int(Decimal(received) / (1 + flashloan_fee))
        funding = _funding(provider, loan, addresses, dependencies)
        payback = funding.amount + deposit_dai

    resulting = position.deposit(deposit_collateral).withdraw(withdraw).payback(payback)
    _check_dust(resulting)

    plan = operations.build_decrease(
        context,
        addresses,
        collateral,
        _DAI,
        dependencies.proxy,
        dependencies.user,
        withdraw_amount=withdraw,
        payback_amount=payback,
        deposit_collateral=deposit_collateral,
        deposit_dai=deposit_dai,
        swap=swap_to_step(swap, _swap_addresses(addresses, collateral), config),
        flashloan=funding,
    )
    flags = Flags(
        is_increasing_risk=is_increasing_risk(position, request.target.multiple),
        requires_flashloan=funding is not None,
    )
    logger.info(
        "%s: collateralization %s -> %s, flashloan=%s",
        plan.operation_name.value,
        position.risk_ratio.collateralization_ratio,
        resulting.risk_ratio.collateralization_ratio,
        flags.requires_flashloan,
    )
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount if funding else 0),
        fee=swap.fee,
        fee_token=_DAI if is_fee_from_debt_token(False, swap.fee_split) else collateral,
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding),
        debt_returned=Decimal(received - funding.repayment) if funding is not None else Decimal(0),
    )
    return PositionTransition(plan, simulation)


# ---------------------------------------------------------------------------
# Public strategies
# ---------------------------------------------------------------------------

def open_position(
    request: OpenRequest, context: MakerContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Open a vault (unless ``context.vault_id`` names one) and multiply it."""
    config = dependencies.config
    collateral = request.collateral_token
    validate_slippage(request.slippage)
    deposit_collateral = to_base(request.deposit_collateral, collateral, request.unit, config)
    deposit_dai = to_base(request.deposit_debt, request.debt_token, request.unit, config)
    if deposit_collateral == 0 and deposit_dai == 0:
        raise InvalidAmount("Opening a vault requires a deposit")

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, request.debt_token, dependencies)
    return _increase(
        context, addresses, position, request, provider, deposit_collateral, deposit_dai, dependencies,
        is_open=True,
    )


def adjust(
    request: AdjustRequest, context: MakerContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Change the vault multiple, drawing or repaying DAI through a swap."""
    config = dependencies.config
    collateral = request.collateral_token
    validate_slippage(request.slippage)
    deposit_collateral = to_base(request.deposit_collateral, collateral, request.unit, config)
    deposit_dai = to_base(request.deposit_debt, request.debt_token, request.unit, config)

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, request.debt_token, dependencies)
    if position.collateral.amount == 0 and deposit_collateral == 0 and deposit_dai == 0:
        raise InvalidAmount("Cannot adjust an empty vault without a deposit")

    target_multiple = request.target.multiple
    current_multiple = position.risk_ratio.multiple
    if target_multiple == current_multiple and not (deposit_collateral or deposit_dai):
        raise InfeasibleTarget("Vault is already at the target multiple", target_multiple, current_multiple)

    if target_multiple >= current_multiple:
        return _increase(
            context, addresses, position, request, provider, deposit_collateral, deposit_dai,
            dependencies, is_open=False,
        )
    return _decrease(
        context, addresses, position, request, provider, deposit_collateral, deposit_dai, dependencies
    )


def payback_withdraw(
    request: PaybackWithdrawRequest, context: MakerContext, dependencies: StrategyDependencies
) -> PositionTransition:
    config = dependencies.config
    collateral, debt = request.collateral_token, request.debt_token
    payback = to_base(request.payback_amount, debt, request.unit, config)
    withdraw = to_base(request.withdraw_amount, collateral, request.unit, config)
    if payback == 0 and withdraw == 0:
        raise InvalidAmount("Nothing to pay back or withdraw")

    addresses, position = load_position(context, collateral, debt, dependencies)
    transition = plan_payback_withdraw(
        position,
        payback,
        withdraw,
        partial(
            operations.build_payback_withdraw,
            context, addresses, collateral, debt, dependencies.proxy, dependencies.user,
        ),
    )
    _check_dust(transition.simulation.resulting_position)
    return transition


def close(
    request: CloseRequest, context: MakerContext, dependencies: StrategyDependencies
) -> PositionTransition:
    """Repay all DAI and free the collateral.

    ``close_to="collateral"`` sells just enough collateral to repay the
    flashloaned DAI and returns the rest; ``"debt"`` sells it all for DAI.
    """
    config = dependencies.config
    collateral = request.collateral_token
    slippage = validate_slippage(request.slippage)
    to_collateral = request.close_to == "collateral"

    provider = resolve_provider(dependencies)
    addresses, position = load_position(context, collateral, request.debt_token, dependencies)
    if position.collateral.amount == 0:
        raise InvalidAmount("Vault has no collateral to close")

    collect_fee_from = request.collect_fee_from or config.collect_fee_from
    market_price = market_price_or_oracle(request.market_price, position)
    funding = None
    if position.debt.amount > 0:
        funding = _funding(provider, int(position.debt.amount), addresses, dependencies, margin=True)
    owed = Decimal(funding.repayment) if funding is not None else Decimal(0)

    with localcontext(DECIMAL_CONTEXT):
        sell_price = market_price * (1 - slippage) * (1 - config.fee_rate)
        if to_collateral:
            to_sell = from_base_units(owed, _DAI.precision) / sell_price
            sell = to_base_units(to_sell, collateral.precision)
        else:
            sell = int(position.collateral.amount)
        expected = from_base_units(sell, collateral.precision) * sell_price
    if sell > position.collateral.amount:
        raise InfeasibleTarget("Collateral does not cover the debt", sell, position.collateral.amount)

    swap = None
    swap_step = None
    if sell > 0:
        swap = fetch_swap(
            collateral,
            _DAI,
            sell,
            slippage,
            collect_fee_from,
            dependencies,
            expected_received=Decimal(to_base_units(expected, _DAI.precision)),
        )
        swap_step = swap_to_step(swap, _swap_addresses(addresses, collateral), config)
    received = swap.received_after_fee if swap is not None else Decimal(0)
    surplus = Decimal(funding.amount) - position.debt.amount if funding is not None else Decimal(0)
    if funding is not None and received + surplus < owed:
        raise InfeasibleTarget("Swap proceeds do not repay the flashloan", received + surplus, owed)

    resulting = position.payback(position.debt.amount).withdraw(position.collateral.amount)
    plan = operations.build_close(
        context,
        addresses,
        collateral,
        _DAI,
        dependencies.user,
        swap=swap_step,
        flashloan=funding,
        to_collateral=to_collateral,
    )
    flags = Flags(is_increasing_risk=False, requires_flashloan=funding is not None)
    logger.info("%s: flashloan=%s", plan.operation_name.value, flags.requires_flashloan)
    simulation = SimulationResult(
        delta=position_delta(position, resulting, funding.amount if funding else 0),
        fee=swap.fee if swap is not None else Decimal(0),
        fee_token=_close_fee_token(swap, collateral),
        position=position,
        resulting_position=resulting,
        flags=flags,
        swap=swap,
        flashloan=_flashloan_spec(funding),
        collateral_returned=position.collateral.amount - sell if to_collateral else Decimal(0),
        debt_returned=received + surplus - owed,
    )
    return PositionTransition(plan, simulation)

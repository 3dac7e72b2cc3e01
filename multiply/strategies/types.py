"""Strategy requests, dependencies and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal, Union

from multiply.config import FeeSource, PlanningConfig
from multiply.data.constants import MAINNET
from multiply.data.interfaces import PositionReader, SwapQuoteProvider
from multiply.operations.steps import TransitionPlan
from multiply.position.amounts import Numeric, Token, Unit
from multiply.position.position import Position
from multiply.position.risk_ratio import RiskRatio
from multiply.simulation.results import SimulationResult


@dataclass(frozen=True)
class OpenRequest:
    """Open a leveraged position at ``target`` from the given deposits.

    Deposit amounts are read according to ``unit``.  ``market_price`` is the
    expected swap price of collateral in debt terms; the oracle price is
    used when it is not given.
    """

    collateral_token: Token
    debt_token: Token
    target: RiskRatio
    slippage: Decimal
    deposit_collateral: Numeric = 0
    deposit_debt: Numeric = 0
    unit: Unit = "base"
    market_price: Decimal | None = None
    collect_fee_from: FeeSource | None = None


@dataclass(frozen=True)
class AdjustRequest:
    """Move an existing position to ``target``, optionally with top-ups."""

    collateral_token: Token
    debt_token: Token
    target: RiskRatio
    slippage: Decimal
    deposit_collateral: Numeric = 0
    deposit_debt: Numeric = 0
    unit: Unit = "base"
    market_price: Decimal | None = None
    collect_fee_from: FeeSource | None = None


@dataclass(frozen=True)
class PaybackWithdrawRequest:
    collateral_token: Token
    debt_token: Token
    payback_amount: Numeric = 0
    withdraw_amount: Numeric = 0
    unit: Unit = "base"


@dataclass(frozen=True)
class CloseRequest:
    """Unwind the whole position.

    ``close_to="collateral"`` keeps the collateral not needed to repay the
    debt (Maker only); ``"debt"`` sells everything.
    """

    collateral_token: Token
    debt_token: Token
    slippage: Decimal
    close_to: Literal["collateral", "debt"] = "debt"
    market_price: Decimal | None = None
    collect_fee_from: FeeSource | None = None


StrategyRequest = Union[OpenRequest, AdjustRequest, PaybackWithdrawRequest, CloseRequest]


@dataclass(frozen=True)
class StrategyDependencies:
    """Collaborators and settings for one planning call.

    ``current_position`` skips the position read when the caller already
    holds the state.
    """

    position_reader: PositionReader
    swap_quotes: SwapQuoteProvider
    proxy: str
    user: str
    network: str = MAINNET
    config: PlanningConfig = field(default_factory=PlanningConfig)
    current_position: Position | None = None


@dataclass(frozen=True)
class PositionTransition:
    plan: TransitionPlan
    simulation: SimulationResult

"""Result dataclasses for planned transitions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from multiply.config import FeeSource
from multiply.data.flashloan import FlashloanProvider
from multiply.position.amounts import Token
from multiply.position.position import Position


@dataclass(frozen=True)
class SwapSpec:
    """A planned exchange.

    Attributes:
        source_token: Token sold.
        target_token: Token bought.
        amount: Gross amount of ``source_token`` (base units) including any
            source-side fee.
        amount_to_swap: What actually reaches the aggregator.
        quoted_amount: Aggregator's expected output for ``amount_to_swap``.
        min_received: Output guaranteed after slippage (before target-side fee).
        fee: Fee in base units of the fee token.
        fee_split: Which side of the swap pays the fee.
        calldata: Opaque aggregator payload for the execution layer.
    """

    source_token: Token
    target_token: Token
    amount: Decimal
    amount_to_swap: Decimal
    quoted_amount: Decimal
    min_received: Decimal
    fee: Decimal
    fee_split: FeeSource
    calldata: str = "0x"
    exchange_address: str = ""

    @property
    def fee_token(self) -> Token:
        return self.source_token if self.fee_split == "sourceToken" else self.target_token

    @property
    def received_after_fee(self) -> Decimal:
        """Guaranteed usable output of the swap."""
        if self.fee_split == "targetToken":
            return self.min_received - self.fee
        return self.min_received


@dataclass(frozen=True)
class FlashloanSpec:
    """Same-transaction loan funding the plan; ``amount`` is 0 when none is needed."""

    provider: FlashloanProvider | None
    token: Token
    amount: Decimal

    @property
    def is_required(self) -> bool:
        return self.amount > 0


@dataclass(frozen=True)
class Delta:
    """Signed base-unit changes from the current to the resulting position."""

    debt: Decimal
    collateral: Decimal
    flashloan: Decimal = Decimal(0)


@dataclass(frozen=True)
class Flags:
    is_increasing_risk: bool
    requires_flashloan: bool


@dataclass(frozen=True)
class SimulationResult:
    """Predicted outcome of executing a plan."""

    delta: Delta
    fee: Decimal
    fee_token: Token | None
    position: Position
    resulting_position: Position
    flags: Flags
    swap: SwapSpec | None = None
    flashloan: FlashloanSpec | None = None
    collateral_returned: Decimal = Decimal(0)
    debt_returned: Decimal = Decimal(0)

    @property
    def target_multiple(self) -> Decimal:
        return self.resulting_position.risk_ratio.multiple

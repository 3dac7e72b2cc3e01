"""Plan steps and the ordered transition plan handed to the execution layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Mapping, Union

import pandas as pd

from multiply.data.flashloan import FlashloanProvider
from multiply.operations.names import ActionName, OperationName
from multiply.position.amounts import Token


@dataclass(frozen=True)
class Step:
    """One action call.

    ``args`` holds base-unit integer amounts and addresses.  A step whose
    input is produced by the preceding swap carries ``from_swap_output=True``
    in its args rather than a literal amount.
    """

    action: ActionName
    args: Mapping[str, Any] = field(default_factory=dict)
    protocol: str = ""


@dataclass(frozen=True)
class FlashloanStep:
    """Flashloan wrapping every step executed while the loan is outstanding."""

    provider: FlashloanProvider
    token: Token
    amount: int
    steps: tuple[PlanStep, ...]

    @property
    def action(self) -> ActionName:
        return ActionName.TAKE_FLASHLOAN

    @property
    def args(self) -> Mapping[str, Any]:
        return {"provider": self.provider.name, "asset": self.token.symbol, "amount": self.amount}


PlanStep = Union[Step, FlashloanStep]


@dataclass(frozen=True)
class TransitionPlan:
    operation_name: OperationName
    steps: tuple[PlanStep, ...]

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self.steps)

    @property
    def flashloan(self) -> FlashloanStep | None:
        for step in self.steps:
            if isinstance(step, FlashloanStep):
                return step
        return None

    def _walk(self, steps: tuple[PlanStep, ...], depth: int) -> Iterator[tuple[int, PlanStep]]:
        for step in steps:
            yield depth, step
            if isinstance(step, FlashloanStep):
                yield from self._walk(step.steps, depth + 1)

    def flatten(self) -> list[PlanStep]:
        """Steps in execution order, each flashloan followed by its inner steps."""
        return [step for _, step in self._walk(self.steps, 0)]

    def actions(self) -> list[ActionName]:
        return [step.action for step in self.flatten()]

    def index_of(self, action: ActionName) -> int:
        """Execution-order index of the first ``action``; ``ValueError`` if absent."""
        return self.actions().index(action)

    def to_frame(self) -> pd.DataFrame:
        """One row per step in execution order.

        Columns: ``order``, ``depth`` (flashloan nesting), ``action``,
        ``protocol``, ``asset``, ``amount`` (base units, ``None`` for steps
        that consume a swap output).
        """
        rows = []
        for order, (depth, step) in enumerate(self._walk(self.steps, 0)):
            args = step.args
            rows.append(
                {
                    "order": order,
                    "depth": depth,
                    "action": step.action.value,
                    "protocol": getattr(step, "protocol", ""),
                    "asset": args.get("asset"),
                    "amount": args.get("amount"),
                }
            )
        return pd.DataFrame(rows, columns=["order", "depth", "action", "protocol", "asset", "amount"])


# ---------------------------------------------------------------------------
# Shared step builders
# ---------------------------------------------------------------------------

def pull_in(token: Token, address: str, amount: int, user: str, proxy: str) -> list[Step]:
    """Bring user funds into the proxy; ETH is wrapped on the way in."""
    if amount <= 0:
        return []
    if token.is_eth:
        return [Step(ActionName.WRAP_ETH, {"asset": token.symbol, "amount": amount})]
    return [
        Step(
            ActionName.PULL_TOKEN,
            {"asset": token.symbol, "address": address, "amount": amount, "from": user, "to": proxy},
        )
    ]


def return_funds(token: Token, address: str, user: str) -> list[Step]:
    """Send the proxy's whole balance of ``token`` back to ``user``, unwrapping ETH."""
    steps = []
    if token.is_eth:
        steps.append(Step(ActionName.UNWRAP_ETH, {"asset": token.symbol, "amount": "all"}))
    steps.append(
        Step(ActionName.RETURN_FUNDS, {"asset": token.symbol, "address": address, "to": user})
    )
    return steps


def swap_step(
    source: Token,
    source_address: str,
    target: Token,
    target_address: str,
    amount: Decimal,
    min_received: Decimal,
    fee_bips: int,
    collect_fee_from: str,
    calldata: str,
) -> Step:
    return Step(
        ActionName.SWAP,
        {
            "asset": source.symbol,
            "from_token": source_address,
            "to_token": target_address,
            "target_asset": target.symbol,
            "amount": int(amount),
            "receive_at_least": int(min_received),
            "fee": fee_bips,
            "collect_fee_from": collect_fee_from,
            "calldata": calldata,
        },
    )


def repay_flashloan(token: Token, amount: int, executor: str) -> Step:
    return Step(
        ActionName.REPAY_FLASHLOAN,
        {"asset": token.symbol, "amount": amount, "to": executor},
    )


@dataclass(frozen=True)
class FlashloanFunding:
    """Sized flashloan a builder wraps its steps in.

    ``fee`` is the lender's fee in base units of ``token``; the repayment is
    ``amount + fee``.
    """

    provider: FlashloanProvider
    token: Token
    amount: int
    address: str
    fee: int = 0

    @property
    def repayment(self) -> int:
        return self.amount + self.fee

    def wrap(self, steps: list[PlanStep]) -> FlashloanStep:
        return FlashloanStep(self.provider, self.token, self.amount, tuple(steps))

"""Aave V2/V3 plan assembly.

Builders take fully sized base-unit amounts and only decide step order.
When the flashloan is taken in a token other than the debt token it is
deposited as substitute collateral for the duration of the plan, which lets
collateral leave the position before the debt is repaid.
"""

from __future__ import annotations

from multiply.data.constants import MAX_UINT
from multiply.operations.names import ActionName, OperationName
from multiply.operations.steps import (
    FlashloanFunding,
    PlanStep,
    Step,
    TransitionPlan,
    pull_in,
    repay_flashloan,
    return_funds,
)
from multiply.position.amounts import Token
from multiply.protocol.context import AAVE_V2, AAVE_V3, AaveContext, AaveV3Context, TokenAddresses

_OPERATIONS: dict[str, dict[str, OperationName]] = {
    AAVE_V2: {
        "open": OperationName.AAVE_OPEN,
        "increase": OperationName.AAVE_INCREASE,
        "decrease": OperationName.AAVE_DECREASE,
        "payback_withdraw": OperationName.AAVE_PAYBACK_WITHDRAW,
        "close": OperationName.AAVE_CLOSE,
    },
    AAVE_V3: {
        "open": OperationName.AAVE_V3_OPEN,
        "increase": OperationName.AAVE_V3_INCREASE,
        "decrease": OperationName.AAVE_V3_DECREASE,
        "payback_withdraw": OperationName.AAVE_V3_PAYBACK_WITHDRAW,
        "close": OperationName.AAVE_V3_CLOSE,
    },
}


def operation_name(context: AaveContext, kind: str) -> OperationName:
    return _OPERATIONS[context.protocol][kind]


class _Steps:
    """Lending-step factory bound to one market."""

    def __init__(
        self, context: AaveContext, addresses: TokenAddresses, collateral: Token, debt: Token
    ) -> None:
        self.context = context
        self.addresses = addresses
        self.collateral = collateral
        self.debt = debt

    def _step(self, action: ActionName, token: Token, address: str, **args) -> Step:
        return Step(action, {"asset": token.symbol, "address": address, **args}, self.context.protocol)

    def deposit(self, amount: int, from_swap_output: bool = False) -> Step:
        return self._step(
            ActionName.DEPOSIT, self.collateral, self.addresses.collateral,
            amount=amount, from_swap_output=from_swap_output,
        )

    def withdraw(self, amount: int) -> Step:
        return self._step(ActionName.WITHDRAW, self.collateral, self.addresses.collateral, amount=amount)

    def borrow(self, amount: int) -> Step:
        return self._step(ActionName.BORROW, self.debt, self.addresses.debt, amount=amount)

    def payback(self, amount: int, payback_all: bool = False, from_swap_output: bool = False) -> Step:
        return self._step(
            ActionName.PAYBACK, self.debt, self.addresses.debt,
            amount=amount, payback_all=payback_all, from_swap_output=from_swap_output,
        )

    def set_emode(self) -> list[Step]:
        if isinstance(self.context, AaveV3Context) and self.context.category_id:
            return [
                Step(ActionName.SET_EMODE, {"category_id": self.context.category_id}, self.context.protocol)
            ]
        return []

    def substitute_in(self, flashloan: FlashloanFunding) -> Step:
        return self._step(ActionName.DEPOSIT, flashloan.token, flashloan.address, amount=flashloan.amount)

    def substitute_out(self, flashloan: FlashloanFunding) -> list[Step]:
        return [
            self._step(ActionName.WITHDRAW, flashloan.token, flashloan.address, amount=flashloan.amount),
            repay_flashloan(flashloan.token, flashloan.repayment, self.context.operation_executor),
        ]

    def repay(self, flashloan: FlashloanFunding) -> Step:
        return repay_flashloan(flashloan.token, flashloan.repayment, self.context.operation_executor)


def _is_direct(flashloan: FlashloanFunding, debt: Token) -> bool:
    return flashloan.token.symbol == debt.symbol


def build_increase(
    context: AaveContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    proxy: str,
    user: str,
    deposit_collateral: int,
    deposit_debt: int,
    borrow_amount: int,
    swap: Step | None,
    flashloan: FlashloanFunding | None,
    is_open: bool = False,
) -> TransitionPlan:
    """Open a position or lever up an existing one.

    ``swap`` sells the borrowed amount plus ``deposit_debt`` for collateral.
    A debt-token flashloan is repaid by borrowing ``amount + fee``.
    """
    at = _Steps(context, addresses, collateral, debt)
    steps: list[PlanStep] = []
    steps += pull_in(collateral, addresses.collateral, deposit_collateral, user, proxy)
    steps += pull_in(debt, addresses.debt, deposit_debt, user, proxy)

    set_emode = at.set_emode() if is_open else []
    deposit = at.deposit(deposit_collateral, from_swap_output=swap is not None)
    swaps = [swap] if swap is not None else []

    if flashloan is None:
        steps += [*swaps, deposit, *set_emode]
        if borrow_amount > 0:
            steps.append(at.borrow(borrow_amount))
    elif _is_direct(flashloan, debt):
        steps.append(
            flashloan.wrap(
                [*swaps, deposit, *set_emode, at.borrow(flashloan.repayment), at.repay(flashloan)]
            )
        )
    else:
        steps.append(
            flashloan.wrap(
                [
                    at.substitute_in(flashloan),
                    *set_emode,
                    at.borrow(borrow_amount),
                    *swaps,
                    deposit,
                    *at.substitute_out(flashloan),
                ]
            )
        )

    return TransitionPlan(operation_name(context, "open" if is_open else "increase"), tuple(steps))


def build_decrease(
    context: AaveContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    proxy: str,
    user: str,
    withdraw_amount: int,
    payback_amount: int,
    deposit_collateral: int,
    deposit_debt: int,
    swap: Step,
    flashloan: FlashloanFunding,
) -> TransitionPlan:
    """Sell collateral to reduce debt.

    With a debt-token flashloan the payback precedes the withdrawal and the
    swap output repays the loan.  With a substitute flashloan the substitute
    collateral covers the withdrawal and the payback consumes the swap output.
    """
    at = _Steps(context, addresses, collateral, debt)
    steps: list[PlanStep] = []
    steps += pull_in(collateral, addresses.collateral, deposit_collateral, user, proxy)
    steps += pull_in(debt, addresses.debt, deposit_debt, user, proxy)
    top_up = [at.deposit(deposit_collateral)] if deposit_collateral > 0 else []

    if _is_direct(flashloan, debt):
        inner: list[PlanStep] = [
            *top_up,
            at.payback(payback_amount),
            at.withdraw(withdraw_amount),
            swap,
            at.repay(flashloan),
        ]
    else:
        inner = [
            *top_up,
            at.substitute_in(flashloan),
            at.withdraw(withdraw_amount),
            swap,
            at.payback(deposit_debt, from_swap_output=True),
            *at.substitute_out(flashloan),
        ]
    inner += return_funds(debt, addresses.debt, user)
    steps.append(flashloan.wrap(inner))
    return TransitionPlan(operation_name(context, "decrease"), tuple(steps))


def build_payback_withdraw(
    context: AaveContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    proxy: str,
    user: str,
    pull_amount: int,
    payback_amount: int,
    payback_all: bool,
    withdraw_amount: int,
) -> TransitionPlan:
    """Plain payback and/or withdrawal; ``MAX_UINT`` amounts mean "everything"."""
    at = _Steps(context, addresses, collateral, debt)
    steps: list[PlanStep] = []
    steps += pull_in(debt, addresses.debt, pull_amount, user, proxy)
    if payback_amount > 0:
        steps.append(at.payback(payback_amount, payback_all=payback_all))
        if payback_all:
            steps += return_funds(debt, addresses.debt, user)
    if withdraw_amount > 0:
        steps.append(at.withdraw(withdraw_amount))
        steps += return_funds(collateral, addresses.collateral, user)
    return TransitionPlan(operation_name(context, "payback_withdraw"), tuple(steps))


def build_close(
    context: AaveContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    user: str,
    swap: Step,
    flashloan: FlashloanFunding | None,
) -> TransitionPlan:
    """Sell all collateral, repay all debt and return the remainder in the debt token."""
    at = _Steps(context, addresses, collateral, debt)
    refund = return_funds(debt, addresses.debt, user)

    if flashloan is None:
        steps: list[PlanStep] = [at.withdraw(MAX_UINT), swap, *refund]
    elif _is_direct(flashloan, debt):
        steps = [
            flashloan.wrap(
                [
                    at.payback(MAX_UINT, payback_all=True),
                    at.withdraw(MAX_UINT),
                    swap,
                    at.repay(flashloan),
                    *refund,
                ]
            )
        ]
    else:
        steps = [
            flashloan.wrap(
                [
                    at.substitute_in(flashloan),
                    at.withdraw(MAX_UINT),
                    swap,
                    at.payback(MAX_UINT, payback_all=True, from_swap_output=True),
                    *at.substitute_out(flashloan),
                    *refund,
                ]
            )
        ]
    return TransitionPlan(operation_name(context, "close"), tuple(steps))

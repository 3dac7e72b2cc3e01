"""Maker CDP plan assembly.

A vault can generate DAI against collateral it already holds, so a
flashloan is only taken when the intermediate vault state would breach the
liquidation ratio.  ``vault_id == 0`` targets the vault opened earlier in the
same plan.
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
from multiply.protocol.context import MAKER, MakerContext, TokenAddresses


class _Vault:
    def __init__(
        self, context: MakerContext, addresses: TokenAddresses, collateral: Token, debt: Token
    ) -> None:
        self.context = context
        self.addresses = addresses
        self.collateral = collateral
        self.debt = debt

    def _step(self, action: ActionName, token: Token, **args) -> Step:
        return Step(
            action,
            {"asset": token.symbol, "vault_id": self.context.vault_id, **args},
            MAKER,
        )

    def open(self) -> list[Step]:
        if self.context.vault_id:
            return []
        return [
            Step(
                ActionName.OPEN_VAULT,
                {"ilk": self.addresses.ilk, "join": self.addresses.collateral_join},
                MAKER,
            )
        ]

    def deposit(self, amount: int, from_swap_output: bool = False) -> Step:
        return self._step(
            ActionName.DEPOSIT, self.collateral,
            join=self.addresses.collateral_join, amount=amount, from_swap_output=from_swap_output,
        )

    def withdraw(self, amount: int) -> Step:
        return self._step(
            ActionName.WITHDRAW, self.collateral, join=self.addresses.collateral_join, amount=amount
        )

    def generate(self, amount: int) -> Step:
        return self._step(ActionName.GENERATE, self.debt, amount=amount)

    def payback(self, amount: int, payback_all: bool = False, from_swap_output: bool = False) -> Step:
        return self._step(
            ActionName.PAYBACK, self.debt,
            amount=amount, payback_all=payback_all, from_swap_output=from_swap_output,
        )

    def repay(self, flashloan: FlashloanFunding) -> Step:
        return repay_flashloan(flashloan.token, flashloan.repayment, self.context.operation_executor)


def build_increase(
    context: MakerContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    proxy: str,
    user: str,
    deposit_collateral: int,
    deposit_dai: int,
    generate_amount: int,
    swap: Step | None,
    flashloan: FlashloanFunding | None,
    is_open: bool = False,
) -> TransitionPlan:
    """Open a multiply vault or increase its multiple.

    Without a flashloan the collateral top-up is locked first and the DAI is
    generated from the vault's own headroom; with one the bought collateral
    is locked before generating ``amount + fee`` to repay the lender.
    """
    vault = _Vault(context, addresses, collateral, debt)
    steps: list[PlanStep] = vault.open() if is_open else []
    steps += pull_in(collateral, addresses.collateral, deposit_collateral, user, proxy)
    steps += pull_in(debt, addresses.debt, deposit_dai, user, proxy)
    swaps = [swap] if swap is not None else []

    if flashloan is None:
        if deposit_collateral > 0:
            steps.append(vault.deposit(deposit_collateral))
        if generate_amount > 0:
            steps.append(vault.generate(generate_amount))
        if swaps:
            steps += [*swaps, vault.deposit(0, from_swap_output=True)]
        name = OperationName.MAKER_INCREASE_MULTIPLE
    else:
        steps.append(
            flashloan.wrap(
                [
                    *swaps,
                    vault.deposit(deposit_collateral, from_swap_output=True),
                    vault.generate(flashloan.repayment),
                    vault.repay(flashloan),
                ]
            )
        )
        name = OperationName.MAKER_INCREASE_MULTIPLE_WITH_FLASHLOAN
    if is_open:
        name = OperationName.MAKER_OPEN_MULTIPLY
    return TransitionPlan(name, tuple(steps))


def build_decrease(
    context: MakerContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    proxy: str,
    user: str,
    withdraw_amount: int,
    payback_amount: int,
    deposit_collateral: int,
    deposit_dai: int,
    swap: Step,
    flashloan: FlashloanFunding | None,
) -> TransitionPlan:
    """Sell vault collateral to pay back DAI.

    With a flashloan the DAI is paid back before the collateral is freed;
    without one the withdrawal fits in the vault's headroom and the swap
    output is paid back directly.
    """
    vault = _Vault(context, addresses, collateral, debt)
    steps: list[PlanStep] = []
    steps += pull_in(collateral, addresses.collateral, deposit_collateral, user, proxy)
    steps += pull_in(debt, addresses.debt, deposit_dai, user, proxy)
    top_up = [vault.deposit(deposit_collateral)] if deposit_collateral > 0 else []

    if flashloan is None:
        steps += [
            *top_up,
            vault.withdraw(withdraw_amount),
            swap,
            vault.payback(deposit_dai, from_swap_output=True),
        ]
        name = OperationName.MAKER_DECREASE_MULTIPLE
    else:
        steps.append(
            flashloan.wrap(
                [
                    *top_up,
                    vault.payback(payback_amount),
                    vault.withdraw(withdraw_amount),
                    swap,
                    vault.repay(flashloan),
                    *return_funds(debt, addresses.debt, user),
                ]
            )
        )
        name = OperationName.MAKER_DECREASE_MULTIPLE_WITH_FLASHLOAN
    return TransitionPlan(name, tuple(steps))


def build_payback_withdraw(
    context: MakerContext,
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
    vault = _Vault(context, addresses, collateral, debt)
    steps: list[PlanStep] = []
    steps += pull_in(debt, addresses.debt, pull_amount, user, proxy)
    if payback_amount > 0:
        steps.append(vault.payback(payback_amount, payback_all=payback_all))
        if payback_all:
            steps += return_funds(debt, addresses.debt, user)
    if withdraw_amount > 0:
        steps.append(vault.withdraw(withdraw_amount))
        steps += return_funds(collateral, addresses.collateral, user)
    return TransitionPlan(OperationName.MAKER_PAYBACK_WITHDRAW, tuple(steps))


def build_close(
    context: MakerContext,
    addresses: TokenAddresses,
    collateral: Token,
    debt: Token,
    user: str,
    swap: Step | None,
    flashloan: FlashloanFunding | None,
    to_collateral: bool,
) -> TransitionPlan:
    """Repay all DAI and free all collateral.

    Closing to collateral sells only what repays the flashloan and returns
    the rest of the collateral; closing to DAI sells everything.
    """
    vault = _Vault(context, addresses, collateral, debt)
    refund: list[Step] = []
    if to_collateral:
        refund += return_funds(collateral, addresses.collateral, user)
    refund += return_funds(debt, addresses.debt, user)

    swaps = [swap] if swap is not None else []
    if flashloan is None:
        steps: list[PlanStep] = [vault.withdraw(MAX_UINT), *swaps, *refund]
    else:
        steps = [
            flashloan.wrap(
                [
                    vault.payback(MAX_UINT, payback_all=True),
                    vault.withdraw(MAX_UINT),
                    *swaps,
                    vault.repay(flashloan),
                    *refund,
                ]
            )
        ]
    name = OperationName.MAKER_CLOSE_TO_COLLATERAL if to_collateral else OperationName.MAKER_CLOSE_TO_DAI
    return TransitionPlan(name, tuple(steps))

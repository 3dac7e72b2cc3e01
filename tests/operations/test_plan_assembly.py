"""Tests for step ordering in assembled plans."""

from decimal import Decimal

import pytest

from multiply.data.constants import MAX_UINT
from multiply.data.flashloan import FlashloanProvider
from multiply.operations import aave, maker
from multiply.operations.names import ActionName, OperationName
from multiply.operations.steps import FlashloanFunding, FlashloanStep, Step, TransitionPlan, swap_step
from multiply.position.amounts import Token
from multiply.protocol.context import (
    AaveV2Context,
    AaveV3Context,
    MakerContext,
    resolve_token_addresses,
)

ETH = Token.of("ETH")
DAI = Token.of("DAI")
WSTETH = Token.of("WSTETH")
PROXY = "0x00000000000000000000000000000000000000aa"
USER = "0x00000000000000000000000000000000000000bb"


def _swap(source: Token, target: Token, amount: int = 1000) -> Step:
    return swap_step(source, "0xsrc", target, "0xdst", Decimal(amount), Decimal(900), 20, "sourceToken", "0x")


def _funding(token: Token, amount: int = 10**21) -> FlashloanFunding:
    return FlashloanFunding(FlashloanProvider.DSS_FLASH, token, amount, "0xfl")


class TestTransitionPlan:
    @pytest.fixture
    def plan(self) -> TransitionPlan:
        inner = (Step(ActionName.DEPOSIT, {"asset": "ETH", "amount": 5}), Step(ActionName.BORROW))
        return TransitionPlan(
            OperationName.AAVE_OPEN,
            (
                Step(ActionName.WRAP_ETH, {"asset": "ETH", "amount": 5}),
                FlashloanStep(FlashloanProvider.BALANCER, DAI, 7, inner),
            ),
        )

    def test_flatten_order(self, plan: TransitionPlan) -> None:
        assert plan.actions() == [
            ActionName.WRAP_ETH,
            ActionName.TAKE_FLASHLOAN,
            ActionName.DEPOSIT,
            ActionName.BORROW,
        ]

    def test_flashloan_lookup(self, plan: TransitionPlan) -> None:
        assert plan.flashloan is not None
        assert plan.flashloan.amount == 7

    def test_iterates_top_level_steps(self, plan: TransitionPlan) -> None:
        assert [step.action for step in plan] == [ActionName.WRAP_ETH, ActionName.TAKE_FLASHLOAN]

    def test_to_frame(self, plan: TransitionPlan) -> None:
        frame = plan.to_frame()
        assert list(frame.columns) == ["order", "depth", "action", "protocol", "asset", "amount"]
        assert frame["depth"].tolist() == [0, 0, 1, 1]
        assert frame.loc[1, "action"] == "TakeFlashloan"
        assert frame.loc[1, "asset"] == "DAI"


class TestAaveAssembly:
    @pytest.fixture
    def context(self) -> AaveV3Context:
        return AaveV3Context(operation_executor="0xexec", category_id=1)

    def test_open_direct_flashloan(self, context: AaveV3Context) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        funding = _funding(DAI)
        plan = aave.build_increase(
            context, addresses, ETH, DAI, PROXY, USER,
            deposit_collateral=10**19, deposit_debt=0, borrow_amount=funding.amount,
            swap=_swap(DAI, ETH), flashloan=funding, is_open=True,
        )
        assert plan.operation_name is OperationName.AAVE_V3_OPEN
        # flashloan encloses everything after the pull-in
        assert isinstance(plan.steps[-1], FlashloanStep)
        assert plan.actions() == [
            ActionName.WRAP_ETH,
            ActionName.TAKE_FLASHLOAN,
            ActionName.SWAP,
            ActionName.DEPOSIT,
            ActionName.SET_EMODE,
            ActionName.BORROW,
            ActionName.REPAY_FLASHLOAN,
        ]

    def test_open_substitute_flashloan(self, context: AaveV3Context) -> None:
        addresses = resolve_token_addresses(context, "WSTETH", "ETH")
        funding = _funding(DAI)
        plan = aave.build_increase(
            context, addresses, WSTETH, ETH, PROXY, USER,
            deposit_collateral=10**19, deposit_debt=0, borrow_amount=5 * 10**18,
            swap=_swap(ETH, WSTETH), flashloan=funding, is_open=True,
        )
        actions = plan.actions()
        assert actions.index(ActionName.SET_EMODE) < actions.index(ActionName.BORROW)
        assert actions.index(ActionName.BORROW) < actions.index(ActionName.SWAP)
        assert actions.index(ActionName.SWAP) < actions.index(ActionName.DEPOSIT, 3)
        assert actions[-2:] == [ActionName.WITHDRAW, ActionName.REPAY_FLASHLOAN]

    def test_no_emode_on_v2(self) -> None:
        context = AaveV2Context(operation_executor="0xexec")
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = aave.build_increase(
            context, addresses, ETH, DAI, PROXY, USER,
            deposit_collateral=10**19, deposit_debt=0, borrow_amount=10**21,
            swap=_swap(DAI, ETH), flashloan=_funding(DAI), is_open=True,
        )
        assert ActionName.SET_EMODE not in plan.actions()
        assert plan.operation_name is OperationName.AAVE_OPEN

    def test_decrease_pays_back_before_withdrawing(self, context: AaveV3Context) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = aave.build_decrease(
            context, addresses, ETH, DAI, PROXY, USER,
            withdraw_amount=10**18, payback_amount=10**21, deposit_collateral=0, deposit_debt=0,
            swap=_swap(ETH, DAI), flashloan=_funding(DAI),
        )
        assert plan.index_of(ActionName.PAYBACK) < plan.index_of(ActionName.WITHDRAW)
        assert plan.index_of(ActionName.WITHDRAW) < plan.index_of(ActionName.SWAP)

    def test_payback_all_sentinel(self, context: AaveV3Context) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = aave.build_payback_withdraw(
            context, addresses, ETH, DAI, PROXY, USER,
            pull_amount=10**21, payback_amount=MAX_UINT, payback_all=True, withdraw_amount=MAX_UINT,
        )
        payback = plan.steps[plan.index_of(ActionName.PAYBACK)]
        assert payback.args["amount"] == MAX_UINT
        assert payback.args["payback_all"] is True
        # ETH is unwrapped before it is returned
        actions = plan.actions()
        assert actions[-2:] == [ActionName.UNWRAP_ETH, ActionName.RETURN_FUNDS]

    def test_close_without_debt_skips_flashloan(self, context: AaveV3Context) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = aave.build_close(context, addresses, ETH, DAI, USER, swap=_swap(ETH, DAI), flashloan=None)
        assert plan.flashloan is None
        assert plan.actions() == [ActionName.WITHDRAW, ActionName.SWAP, ActionName.RETURN_FUNDS]


class TestMakerAssembly:
    @pytest.fixture
    def context(self) -> MakerContext:
        return MakerContext(operation_executor="0xexec")

    def test_open_with_flashloan(self, context: MakerContext) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        funding = _funding(DAI)
        plan = maker.build_increase(
            context, addresses, ETH, DAI, PROXY, USER,
            deposit_collateral=10**19, deposit_dai=0, generate_amount=funding.amount,
            swap=_swap(DAI, ETH), flashloan=funding, is_open=True,
        )
        assert plan.operation_name is OperationName.MAKER_OPEN_MULTIPLY
        assert plan.actions() == [
            ActionName.OPEN_VAULT,
            ActionName.WRAP_ETH,
            ActionName.TAKE_FLASHLOAN,
            ActionName.SWAP,
            ActionName.DEPOSIT,
            ActionName.GENERATE,
            ActionName.REPAY_FLASHLOAN,
        ]

    def test_increase_from_headroom(self, context: MakerContext) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = maker.build_increase(
            context, addresses, ETH, DAI, PROXY, USER,
            deposit_collateral=0, deposit_dai=2 * 10**22, generate_amount=10**22,
            swap=_swap(DAI, ETH), flashloan=None,
        )
        assert plan.operation_name is OperationName.MAKER_INCREASE_MULTIPLE
        assert plan.actions() == [
            ActionName.PULL_TOKEN,
            ActionName.GENERATE,
            ActionName.SWAP,
            ActionName.DEPOSIT,
        ]

    def test_close_to_collateral_returns_both(self, context: MakerContext) -> None:
        addresses = resolve_token_addresses(context, "ETH", "DAI")
        plan = maker.build_close(
            context, addresses, ETH, DAI, USER,
            swap=_swap(ETH, DAI), flashloan=_funding(DAI), to_collateral=True,
        )
        assert plan.operation_name is OperationName.MAKER_CLOSE_TO_COLLATERAL
        assert plan.actions()[1:4] == [ActionName.PAYBACK, ActionName.WITHDRAW, ActionName.SWAP]
        assert plan.actions().count(ActionName.RETURN_FUNDS) == 2

"""Tests for the immutable position model and risk ratios."""

from decimal import Decimal

import pytest

from multiply.errors import InfeasibleTarget, InsufficientCollateral
from multiply.position.amounts import Token, TokenAmount
from multiply.position.position import Position
from multiply.position.risk_ratio import RiskRatio, RiskRatioType
from multiply.protocol.category import PositionCategory

ETH = Token.of("ETH")
DAI = Token.of("DAI")
CATEGORY = PositionCategory(Decimal("0.8"), Decimal("0.825"), Decimal("0.05"))


@pytest.fixture
def position() -> Position:
    # 10 ETH at 2000 DAI, 10_000 DAI debt: LTV 0.5, multiple 2
    return Position(
        debt=TokenAmount.from_human(10_000, DAI),
        collateral=TokenAmount.from_human(10, ETH),
        oracle_price=Decimal(2000),
        category=CATEGORY,
    )


class TestRiskRatio:
    def test_views(self) -> None:
        ratio = RiskRatio(Decimal("0.5"))
        assert ratio.multiple == Decimal(2)
        assert ratio.collateralization_ratio == Decimal(2)

    def test_from_multiple(self) -> None:
        assert RiskRatio.from_multiple(4).loan_to_value == Decimal("0.75")

    def test_from_collateralization_ratio(self) -> None:
        assert RiskRatio.from_collateralization_ratio(5).loan_to_value == Decimal("0.2")

    def test_multiple_below_one_rejected(self) -> None:
        with pytest.raises(InfeasibleTarget):
            RiskRatio.of(Decimal("0.9"), RiskRatioType.MULTIPLE)

    def test_insolvent_multiple_is_infinite(self) -> None:
        assert RiskRatio(Decimal(1)).multiple == Decimal("Infinity")
        assert not RiskRatio(Decimal(1)).is_solvent


class TestDerivedViews:
    def test_risk_ratio(self, position: Position) -> None:
        assert position.risk_ratio.loan_to_value == Decimal("0.5")
        assert position.risk_ratio.multiple == Decimal(2)

    def test_empty_position(self) -> None:
        empty = Position(TokenAmount.zero(DAI), TokenAmount.zero(ETH), Decimal(2000), CATEGORY)
        assert empty.risk_ratio.multiple == Decimal(1)

    def test_health_factor(self, position: Position) -> None:
        assert position.health_factor == Decimal("1.65")

    def test_liquidation_price(self, position: Position) -> None:
        # 10_000 / (10 * 0.825)
        assert float(position.liquidation_price) == pytest.approx(1212.1212, rel=1e-6)

    def test_max_debt_to_borrow(self, position: Position) -> None:
        assert position.max_debt_to_borrow == Decimal(6_000 * 10**18)


class TestTransformations:
    def test_deposit_withdraw_identity(self, position: Position) -> None:
        amount = Decimal(3 * 10**18)
        assert position.deposit(amount).withdraw(amount) == position

    def test_borrow_payback_identity(self, position: Position) -> None:
        amount = Decimal(4_000 * 10**18)
        assert position.borrow(amount).payback(amount) == position

    def test_immutable(self, position: Position) -> None:
        position.deposit(Decimal(10**18))
        assert position.collateral.amount == Decimal(10 * 10**18)

    def test_withdraw_too_much(self, position: Position) -> None:
        with pytest.raises(InsufficientCollateral):
            position.withdraw(Decimal(11 * 10**18))

    def test_payback_clamps(self, position: Position) -> None:
        repaid = position.payback(Decimal(20_000 * 10**18))
        assert repaid.debt.amount == 0
        assert position.is_full_payback(Decimal(20_000 * 10**18))

    def test_equality_covers_category(self, position: Position) -> None:
        other = Position(position.debt, position.collateral, position.oracle_price, PositionCategory(
            Decimal("0.7"), Decimal("0.75")
        ))
        assert other != position

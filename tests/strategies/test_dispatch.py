"""Tests for protocol dispatch."""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from multiply.data.static_params import StaticPositionReader
from multiply.data.swap_quotes import FixedPriceQuoteProvider
from multiply.errors import UnsupportedProtocol
from multiply.operations.names import OperationName
from multiply.position.amounts import Token
from multiply.position.risk_ratio import RiskRatio
from multiply.protocol.context import AAVE_V2, AAVE_V3, MAKER, AaveV2Context, AaveV3Context, MakerContext
from multiply.strategies.dispatch import STRATEGIES, plan
from multiply.strategies.types import OpenRequest, StrategyDependencies

ETH = Token.of("ETH")
DAI = Token.of("DAI")
PRICES = {"ETH": Decimal(1600), "DAI": Decimal(1)}


def _dependencies(protocol: str) -> StrategyDependencies:
    return StrategyDependencies(
        position_reader=StaticPositionReader(protocol),
        swap_quotes=FixedPriceQuoteProvider(PRICES),
        proxy="0x00000000000000000000000000000000000000aa",
        user="0x00000000000000000000000000000000000000bb",
    )


@pytest.fixture
def request_() -> OpenRequest:
    return OpenRequest(
        ETH, DAI, RiskRatio.from_multiple(2), Decimal("0.005"), deposit_collateral=10 * 10**18
    )


@pytest.mark.parametrize(
    "context, protocol, operation",
    [
        (AaveV2Context("0xexec"), AAVE_V2, OperationName.AAVE_OPEN),
        (AaveV3Context("0xexec"), AAVE_V3, OperationName.AAVE_V3_OPEN),
        (MakerContext("0xexec"), MAKER, OperationName.MAKER_OPEN_MULTIPLY),
    ],
)
def test_dispatch_by_protocol(context, protocol: str, operation: OperationName, request_: OpenRequest) -> None:
    transition = plan(request_, context, _dependencies(protocol))
    assert transition.plan.operation_name is operation


def test_every_protocol_has_every_request() -> None:
    for strategies in STRATEGIES.values():
        assert len(strategies) == 4


def test_unknown_request_type() -> None:
    @dataclass(frozen=True)
    class MigrateRequest:
        collateral_token: Token

    with pytest.raises(UnsupportedProtocol):
        plan(MigrateRequest(ETH), AaveV3Context("0xexec"), _dependencies(AAVE_V3))


def test_unknown_protocol(request_: OpenRequest) -> None:
    @dataclass(frozen=True)
    class CompoundContext:
        operation_executor: str
        protocol: str = "COMPOUND"

    with pytest.raises(UnsupportedProtocol):
        plan(request_, CompoundContext("0xexec"), _dependencies(AAVE_V3))

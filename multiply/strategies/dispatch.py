"""Single planning entry point over the tagged protocol variant."""

from __future__ import annotations

import logging
from typing import Callable

from multiply.errors import UnsupportedProtocol
from multiply.protocol.context import AAVE_V2, AAVE_V3, MAKER, ProtocolContext
from multiply.strategies import aave, maker
from multiply.strategies.types import (
    AdjustRequest,
    CloseRequest,
    OpenRequest,
    PaybackWithdrawRequest,
    PositionTransition,
    StrategyDependencies,
    StrategyRequest,
)

logger = logging.getLogger(__name__)

Strategy = Callable[..., PositionTransition]

_AAVE: dict[type, Strategy] = {
    OpenRequest: aave.open_position,
    AdjustRequest: aave.adjust,
    PaybackWithdrawRequest: aave.payback_withdraw,
    CloseRequest: aave.close,
}

STRATEGIES: dict[str, dict[type, Strategy]] = {
    AAVE_V2: _AAVE,
    AAVE_V3: _AAVE,
    MAKER: {
        OpenRequest: maker.open_position,
        AdjustRequest: maker.adjust,
        PaybackWithdrawRequest: maker.payback_withdraw,
        CloseRequest: maker.close,
    },
}


def plan(
    request: StrategyRequest,
    context: ProtocolContext,
    dependencies: StrategyDependencies,
) -> PositionTransition:
    """Plan ``request`` on the protocol named by ``context.protocol``.

    Raises:
        UnsupportedProtocol: no strategy for this protocol/request pair.
    """
    strategy = STRATEGIES.get(context.protocol, {}).get(type(request))
    if strategy is None:
        raise UnsupportedProtocol(context.protocol, type(request).__name__)
    logger.debug("Dispatching %s to %s", type(request).__name__, context.protocol)
    return strategy(request, context, dependencies)

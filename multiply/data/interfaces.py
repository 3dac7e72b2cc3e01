"""Collaborator interfaces the planning engine consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from multiply.position.amounts import Token
from multiply.position.position import Position


@dataclass(frozen=True)
class SwapQuote:
    """Aggregator quote for swapping ``from_amount`` of ``from_token``.

    Amounts are in base units of their own token.  ``calldata`` is passed
    through to the plan untouched.
    """

    from_token: str
    to_token: str
    from_amount: Decimal
    to_amount: Decimal
    calldata: str
    exchange_address: str = ""
    source: str = ""


class PositionReader(ABC):
    """Reads the live state of a position owned by a proxy."""

    @abstractmethod
    def get_current_position(
        self, proxy: str, collateral_token: Token, debt_token: Token
    ) -> Position:
        """Current debt, collateral, oracle price and category."""

    @abstractmethod
    def get_oracle_price(self, base_token: Token, quote_token: Token) -> Decimal:
        """Protocol oracle price of ``base_token`` in ``quote_token`` terms."""


class SwapQuoteProvider(ABC):
    """External swap aggregator."""

    @abstractmethod
    def get_swap_quote(
        self,
        from_token: Token,
        to_token: Token,
        amount: Decimal,
        slippage: Decimal,
    ) -> SwapQuote:
        """Quote for selling ``amount`` base units of ``from_token``."""

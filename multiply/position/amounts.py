"""Token amounts, base-unit conversion and fee arithmetic.

All amounts are held as ``Decimal`` in base units (wei-style integers for an
18-decimal token).  Human-scale values only appear at the API boundary and
inside the solvers, which normalise by each token's precision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Context, Decimal, localcontext
from typing import Literal, Union

from multiply.config import PlanningConfig
from multiply.data.constants import TOKEN_PRECISIONS
from multiply.errors import InvalidAmount

logger = logging.getLogger(__name__)

# Enough digits for any uint256 amount times a ratio
DECIMAL_CONTEXT = Context(prec=80)

Numeric = Union[Decimal, int, str, float]
Unit = Literal["human", "base"]


def to_decimal(value: Numeric) -> Decimal:
    """Coerce to ``Decimal``; floats go through ``str`` to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def floor_int(value: Numeric) -> int:
    """Round down to an integer base-unit amount."""
    return int(to_decimal(value).to_integral_value(rounding=ROUND_FLOOR))


def to_base_units(amount: Numeric, precision: int = 18) -> int:
    """Scale a human-scale amount to integer base units, rounding down.

    Exact for inputs with at most ``precision`` fractional digits.
    """
    with localcontext(DECIMAL_CONTEXT):
        return floor_int(to_decimal(amount).scaleb(precision))


def from_base_units(amount: Numeric, precision: int = 18) -> Decimal:
    """Scale an integer base-unit amount back to human scale."""
    with localcontext(DECIMAL_CONTEXT):
        return to_decimal(amount).scaleb(-precision)


def calculate_fee(gross_amount: Numeric, fee_bips: int, fee_base: int) -> int:
    """Fee embedded in ``gross_amount`` (fee + net == gross), rounded down.

    ``fee = floor(gross * fee_bips / (fee_bips + fee_base))``
    """
    if fee_bips < 0 or fee_base <= 0:
        raise InvalidAmount(f"Invalid fee {fee_bips}/{fee_base}")
    with localcontext(DECIMAL_CONTEXT):
        gross = to_decimal(gross_amount)
        return floor_int(gross * fee_bips / (fee_bips + fee_base))


def net_amount(gross_amount: Numeric, fee_bips: int, fee_base: int) -> Decimal:
    """What is left of ``gross_amount`` once the embedded fee is taken."""
    return to_decimal(gross_amount) - calculate_fee(gross_amount, fee_bips, fee_base)


def ensure_base_units(
    value: Numeric,
    precision: int,
    unit: Unit | None = None,
    config: PlanningConfig | None = None,
) -> int:
    """Normalise an input amount to integer base units.

    Callers should tag amounts with ``unit``.  An untagged amount is only
    accepted when ``config.allow_magnitude_heuristic`` is set; then anything
    below ``config.human_amount_threshold`` is treated as human scale, which
    misreads small base-unit amounts (e.g. 6-decimal dust).
    """
    config = config or PlanningConfig()
    amount = to_decimal(value)
    if amount < 0:
        raise InvalidAmount(f"Amount must be non-negative, got {amount}")

    if unit == "human":
        return to_base_units(amount, precision)
    if unit == "base":
        if amount != amount.to_integral_value():
            raise InvalidAmount(f"Base-unit amount must be an integer, got {amount}")
        return int(amount)
    if unit is not None:
        raise InvalidAmount(f"Unknown unit tag {unit!r}")

    if not config.allow_magnitude_heuristic:
        raise InvalidAmount(
            f"Amount {amount} has no unit tag; pass unit='human' or unit='base'"
        )
    if amount < config.human_amount_threshold:
        logger.warning(
            "Untagged amount %s below %s read as human scale", amount, config.human_amount_threshold
        )
        return to_base_units(amount, precision)
    return floor_int(amount)


@dataclass(frozen=True)
class PercentageValue:
    """A value together with its fractional reading against ``base``."""

    value: Decimal
    as_decimal: Decimal


def as_percentage_value(value: Numeric, base: Numeric) -> PercentageValue:
    """``as_percentage_value(8, 100).as_decimal == Decimal("0.08")``."""
    val = to_decimal(value)
    return PercentageValue(value=val, as_decimal=val / to_decimal(base))


@dataclass(frozen=True)
class Token:
    """Asset symbol with its decimal precision."""

    symbol: str
    precision: int = 18

    @classmethod
    def of(cls, symbol: str, precision: int | None = None, default: int = 18) -> Token:
        """Build a token, looking up known precisions when none is given."""
        if precision is None:
            precision = TOKEN_PRECISIONS.get(symbol, default)
        return cls(symbol=symbol, precision=precision)

    @property
    def is_eth(self) -> bool:
        return self.symbol == "ETH"


@dataclass(frozen=True)
class TokenAmount:
    """A quantity of an asset in base units."""

    amount: Decimal
    symbol: str
    precision: int = 18

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount)
        if amount < 0:
            raise InvalidAmount(f"{self.symbol} amount must be non-negative, got {amount}")
        object.__setattr__(self, "amount", amount)

    @classmethod
    def zero(cls, token: Token) -> TokenAmount:
        return cls(Decimal(0), token.symbol, token.precision)

    @classmethod
    def from_human(cls, amount: Numeric, token: Token) -> TokenAmount:
        return cls(Decimal(to_base_units(amount, token.precision)), token.symbol, token.precision)

    @property
    def token(self) -> Token:
        return Token(self.symbol, self.precision)

    @property
    def normalized(self) -> Decimal:
        """Human-scale amount."""
        return from_base_units(self.amount, self.precision)

    def with_amount(self, amount: Numeric) -> TokenAmount:
        return TokenAmount(to_decimal(amount), self.symbol, self.precision)

"""Leverage state of a position, viewable as LTV, collateralization ratio or multiple."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext
from enum import Enum

from multiply.errors import InfeasibleTarget
from multiply.position.amounts import DECIMAL_CONTEXT, Numeric, to_decimal

_INFINITY = Decimal("Infinity")


class RiskRatioType(Enum):
    LTV = "LTV"
    COL_RATIO = "COL_RATIO"
    MULTIPLE = "MULTIPLE"


@dataclass(frozen=True)
class RiskRatio:
    """Risk state stored as loan-to-value.

    ``multiple = 1 / (1 - ltv)`` and ``collateralization_ratio = 1 / ltv``.
    """

    loan_to_value: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "loan_to_value", to_decimal(self.loan_to_value))

    @classmethod
    def of(cls, value: Numeric, kind: RiskRatioType) -> RiskRatio:
        value = to_decimal(value)
        with localcontext(DECIMAL_CONTEXT):
            if kind is RiskRatioType.LTV:
                return cls(value)
            if kind is RiskRatioType.MULTIPLE:
                if value < 1:
                    raise InfeasibleTarget("Multiple must be at least 1", value, Decimal(1))
                return cls(1 - 1 / value)
            if value <= 0:
                raise InfeasibleTarget(
                    "Collateralization ratio must be positive", value, Decimal(0)
                )
            return cls(1 / value)

    @classmethod
    def from_multiple(cls, multiple: Numeric) -> RiskRatio:
        return cls.of(multiple, RiskRatioType.MULTIPLE)

    @classmethod
    def from_collateralization_ratio(cls, ratio: Numeric) -> RiskRatio:
        return cls.of(ratio, RiskRatioType.COL_RATIO)

    @property
    def multiple(self) -> Decimal:
        if self.loan_to_value >= 1:
            return _INFINITY
        with localcontext(DECIMAL_CONTEXT):
            return 1 / (1 - self.loan_to_value)

    @property
    def collateralization_ratio(self) -> Decimal:
        if self.loan_to_value <= 0:
            return _INFINITY
        with localcontext(DECIMAL_CONTEXT):
            return 1 / self.loan_to_value

    @property
    def is_solvent(self) -> bool:
        return 0 <= self.loan_to_value < 1

"""Planning defaults, passed explicitly into solvers and strategies."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Literal

from multiply.data.constants import DEFAULT_FEE, FEE_BASE, TYPICAL_PRECISION

logger = logging.getLogger(__name__)

FeeSource = Literal["sourceToken", "targetToken"]


@dataclass(frozen=True)
class PlanningConfig:
    """Defaults the planning engine would otherwise hardcode.

    Attributes:
        default_precision: Decimal places assumed for tokens with no known precision.
        fee_bips: Swap fee charged by the proxy, in units of ``fee_base``.
        fee_base: Denominator of ``fee_bips`` (10_000 => bips).
        flashloan_fee: Fractional fee charged by the flashloan lender.
        flashloan_safety_margin: Extra fraction flashloaned on top of the
            computed need, to absorb interest accrued before execution.
        human_amount_threshold: Magnitude below which an untagged amount is
            read as human-scale (only with ``allow_magnitude_heuristic``).
        allow_magnitude_heuristic: Permit untagged amounts at all.
        collect_fee_from: Default swap fee side.
    """

    default_precision: int = TYPICAL_PRECISION
    fee_bips: int = DEFAULT_FEE
    fee_base: int = FEE_BASE
    flashloan_fee: Decimal = Decimal("0")
    flashloan_safety_margin: Decimal = Decimal("0.002")
    human_amount_threshold: int = 10**9
    allow_magnitude_heuristic: bool = False
    collect_fee_from: FeeSource = "sourceToken"

    @property
    def fee_rate(self) -> Decimal:
        """Fee as a fraction of the gross swap amount (fee embedded in gross)."""
        return Decimal(self.fee_bips) / Decimal(self.fee_bips + self.fee_base)

    @classmethod
    def from_env(cls, base: PlanningConfig | None = None) -> PlanningConfig:
        """Overlay ``MULTIPLY_*`` environment variables on ``base`` (or the defaults)."""
        config = base or cls()
        overrides: dict[str, object] = {}

        if "MULTIPLY_FEE_BIPS" in os.environ:
            overrides["fee_bips"] = int(os.environ["MULTIPLY_FEE_BIPS"])
        if "MULTIPLY_FEE_BASE" in os.environ:
            overrides["fee_base"] = int(os.environ["MULTIPLY_FEE_BASE"])
        if "MULTIPLY_FLASHLOAN_FEE" in os.environ:
            overrides["flashloan_fee"] = Decimal(os.environ["MULTIPLY_FLASHLOAN_FEE"])
        if "MULTIPLY_FLASHLOAN_SAFETY_MARGIN" in os.environ:
            overrides["flashloan_safety_margin"] = Decimal(
                os.environ["MULTIPLY_FLASHLOAN_SAFETY_MARGIN"]
            )
        if "MULTIPLY_DEFAULT_PRECISION" in os.environ:
            overrides["default_precision"] = int(os.environ["MULTIPLY_DEFAULT_PRECISION"])
        if "MULTIPLY_ALLOW_MAGNITUDE_HEURISTIC" in os.environ:
            overrides["allow_magnitude_heuristic"] = os.environ[
                "MULTIPLY_ALLOW_MAGNITUDE_HEURISTIC"
            ].strip().lower() in ("1", "true", "yes")

        if overrides:
            logger.debug("Planning config overrides from environment: %s", sorted(overrides))
        return replace(config, **overrides)

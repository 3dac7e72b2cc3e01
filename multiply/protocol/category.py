"""Protocol risk bucket a position belongs to."""

from dataclasses import dataclass
from decimal import Decimal, localcontext

from multiply.position.amounts import DECIMAL_CONTEXT


@dataclass(frozen=True)
class PositionCategory:
    """Risk parameters of the market (Aave reserve or e-mode, Maker ilk).

    Maker vaults express their limit as a liquidation ratio (e.g. 1.5); it is
    stored here as ``max_loan_to_value = 1 / liquidation_ratio``.
    """

    max_loan_to_value: Decimal  # e.g. 0.8 (80%)
    liquidation_threshold: Decimal  # e.g. 0.825
    liquidation_bonus: Decimal = Decimal("0")
    dust_limit: Decimal = Decimal("0")  # minimum non-zero debt, base units
    category_id: int = 0  # Aave V3 e-mode id, 0 = none
    label: str = ""

    @property
    def min_collateralization_ratio(self) -> Decimal:
        with localcontext(DECIMAL_CONTEXT):
            return 1 / self.max_loan_to_value

    @classmethod
    def from_liquidation_ratio(
        cls,
        liquidation_ratio: Decimal,
        dust_limit: Decimal = Decimal("0"),
        label: str = "",
    ) -> "PositionCategory":
        """Maker-style category: borrow and liquidation limits coincide."""
        with localcontext(DECIMAL_CONTEXT):
            ltv = 1 / Decimal(liquidation_ratio)
        return cls(
            max_loan_to_value=ltv,
            liquidation_threshold=ltv,
            dust_limit=dust_limit,
            label=label,
        )

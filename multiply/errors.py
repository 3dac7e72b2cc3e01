"""Exception taxonomy for position-transition planning."""

from __future__ import annotations

from typing import Any


class PlanningError(Exception):
    """Base class for every error raised by the planning engine."""


class ValidationError(PlanningError, ValueError):
    """Bad or unsupported input, raised before any solver work."""


class UnsupportedAsset(ValidationError):
    def __init__(self, protocol: str, symbol: str) -> None:
        self.protocol = protocol
        self.symbol = symbol
        super().__init__(f"{protocol} has no market for {symbol}")


class UnsupportedNetwork(ValidationError):
    def __init__(self, network: str) -> None:
        self.network = network
        super().__init__(f"Unsupported network {network}")


class UnsupportedProtocol(ValidationError):
    def __init__(self, protocol: str, operation: str) -> None:
        self.protocol = protocol
        self.operation = operation
        super().__init__(f"No {operation} strategy registered for {protocol}")


class InsufficientCollateral(ValidationError):
    def __init__(self, requested: Any, available: Any) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot withdraw {requested}: only {available} collateral in position"
        )


class InsufficientDebt(ValidationError):
    def __init__(self, requested: Any, available: Any) -> None:
        self.requested = requested
        self.available = available
        super().__init__(f"Cannot pay back {requested}: position debt is {available}")


class InvalidAmount(ValidationError):
    """Negative, empty or ambiguously scaled amount."""


class InfeasibleTarget(PlanningError):
    """The solver cannot reach the requested risk ratio.

    ``requested`` and ``limit`` are expressed in the same unit so the caller
    can adjust its input.
    """

    def __init__(self, reason: str, requested: Any = None, limit: Any = None) -> None:
        self.reason = reason
        self.requested = requested
        self.limit = limit
        detail = reason
        if requested is not None and limit is not None:
            detail = f"{reason} (requested {requested}, limit {limit})"
        super().__init__(detail)


class ConfigurationError(PlanningError):
    """A collaborator was requested without the settings it needs."""

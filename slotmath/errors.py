from __future__ import annotations

from typing import Optional


class SlotMathError(Exception):
    """Base class for every error raised by the math model engine."""


class ValidationError(SlotMathError, ValueError):
    """Input was rejected. The stored state is unchanged."""


class PaytableOrderError(ValidationError):
    def __init__(self, symbol_id: str, count: int, value: float, lower: Optional[float], upper: Optional[float]) -> None:
        self.symbol_id = symbol_id
        self.count = count
        self.value = value
        self.lower = lower
        self.upper = upper
        bounds = []
        if lower is not None:
            bounds.append(f">= {lower:g} ({count - 1}-of-kind)")
        if upper is not None:
            bounds.append(f"<= {upper:g} ({count + 1}-of-kind)")
        super().__init__(
            f"Invalid {count}-of-kind pay {value:g} for {symbol_id!r}: must be " + " and ".join(bounds or ["non-negative"])
        )


class GridShapeError(ValidationError):
    def __init__(self, expected: tuple, actual: tuple) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Grid is {actual[0]}x{actual[1]} (reels x rows), expected {expected[0]}x{expected[1]}")


class UnknownSymbolError(ValidationError):
    def __init__(self, symbol_id: str, where: str = "paytable") -> None:
        self.symbol_id = symbol_id
        self.where = where
        super().__init__(f"Symbol {symbol_id!r} is not in the {where}")


class InvalidBetError(ValidationError):
    def __init__(self, bet: float) -> None:
        self.bet = bet
        super().__init__(f"Bet must be >= 0, got {bet!r}")


class CatalogError(ValidationError):
    """Symbol catalog is malformed (duplicate ids, unknown rarity or role)."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import PaytableOrderError, UnknownSymbolError
from .spec import SymbolDefinition

logger = logging.getLogger("slotmath.paytable")

# 3-of-kind pay per rarity, and the growth applied for every extra reel matched.
BASE_PAY_BY_RARITY: Dict[str, float] = {"common": 5.0, "uncommon": 10.0, "rare": 20.0, "epic": 50.0}
COUNT_GROWTH: List[float] = [1.0, 3.0, 10.0, 25.0, 50.0]

PayKey = Union[int, str]


def _count_from_key(key: PayKey) -> int:
    if isinstance(key, int):
        return key
    text = str(key).strip().lower()
    if text.startswith("pay"):
        text = text[3:]
    return int(text)


def _neighbours(pays: Mapping[int, float], count: int) -> Tuple[Optional[float], Optional[float]]:
    lower = [c for c in pays if c < count]
    upper = [c for c in pays if c > count]
    return (pays[max(lower)] if lower else None, pays[min(upper)] if upper else None)


def validate_pays(symbol_id: str, pays: Mapping[int, float]) -> None:
    """Pays must be non-negative and never decrease as the match count grows."""
    prev_count: Optional[int] = None
    for count in sorted(pays):
        value = float(pays[count])
        lower = float(pays[prev_count]) if prev_count is not None else None
        if value < 0 or (lower is not None and value < lower):
            _, upper = _neighbours(pays, count)
            raise PaytableOrderError(symbol_id, count, value, lower if lower is not None else 0.0, upper)
        prev_count = count


class Paytable:
    """Per-symbol pays keyed by match count (min_match..reel_count).

    A count with no explicit pay uses the pay of the nearest smaller count
    that has one, so `{3: 5}` pays 5 for 3, 4 or 5 of a kind.
    """

    def __init__(
        self,
        reel_count: int,
        pays: Optional[Mapping[str, Mapping[PayKey, float]]] = None,
        *,
        min_match: int = 3,
    ) -> None:
        self.reel_count = int(reel_count)
        self.min_match = int(min_match)
        self._pays: Dict[str, Dict[int, float]] = {}
        for symbol_id, entry in (pays or {}).items():
            self.set_pays(symbol_id, entry)

    @property
    def counts(self) -> List[int]:
        return list(range(self.min_match, self.reel_count + 1))

    @property
    def symbol_ids(self) -> List[str]:
        return list(self._pays)

    def __contains__(self, symbol_id: object) -> bool:
        return symbol_id in self._pays

    def __iter__(self) -> Iterator[str]:
        return iter(self._pays)

    def _check_count(self, count: int) -> None:
        if count not in self.counts:
            raise ValueError(f"Match count {count} outside {self.min_match}..{self.reel_count}")

    def set_pays(self, symbol_id: str, pays: Mapping[PayKey, float]) -> Dict[int, float]:
        """Replace a symbol's whole row. Rejected rows leave the table unchanged."""
        entry = {_count_from_key(k): float(v) for k, v in pays.items()}
        for count in entry:
            self._check_count(count)
        validate_pays(symbol_id, entry)
        self._pays[symbol_id] = dict(sorted(entry.items()))
        return dict(self._pays[symbol_id])

    def set_pay(self, symbol_id: str, count: int, value: float) -> Dict[int, float]:
        self._check_count(count)
        value = float(value)
        current = self._pays.get(symbol_id, {})
        lower, upper = _neighbours(current, count)
        if value < 0 or (lower is not None and value < lower) or (upper is not None and value > upper):
            logger.warning(f"Rejected {count}-of-kind pay {value:g} for {symbol_id!r}")
            raise PaytableOrderError(symbol_id, count, value, lower if lower is not None else 0.0, upper)
        updated = dict(current)
        updated[count] = value
        self._pays[symbol_id] = dict(sorted(updated.items()))
        return dict(self._pays[symbol_id])

    def pays_for(self, symbol_id: str) -> Dict[int, float]:
        if symbol_id not in self._pays:
            raise UnknownSymbolError(symbol_id)
        return dict(self._pays[symbol_id])

    def pay(self, symbol_id: str, count: int) -> float:
        entry = self.pays_for(symbol_id)
        defined = [c for c in entry if c <= count]
        return entry[max(defined)] if defined else 0.0

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {sym: {f"pay{c}": v for c, v in entry.items()} for sym, entry in self._pays.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[PayKey, float]], reel_count: int, *, min_match: int = 3) -> "Paytable":
        return cls(reel_count, data, min_match=min_match)


def default_paytable(symbols: List[SymbolDefinition], reel_count: int, *, min_match: int = 3) -> Paytable:
    """Monotonic starter paytable for the regular symbols, scaled by rarity."""
    table = Paytable(reel_count, min_match=min_match)
    for s in symbols:
        if s.role != "regular":
            continue
        base = BASE_PAY_BY_RARITY[s.rarity]
        row: Dict[int, float] = {}
        for i, count in enumerate(table.counts):
            growth = COUNT_GROWTH[min(i, len(COUNT_GROWTH) - 1)]
            row[count] = base * growth
        table.set_pays(s.id, row)
    return table

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Optional

from .errors import CatalogError

Rarity = Literal["common", "uncommon", "rare", "epic"]
SymbolRole = Literal["regular", "wild", "scatter"]
WinTier = Literal["none", "small", "big", "mega", "jackpot"]
BudgetState = Literal["under", "balanced", "over"]

RARITIES: List[str] = ["common", "uncommon", "rare", "epic"]
ROLES: List[str] = ["regular", "wild", "scatter"]
WIN_TIERS: List[str] = ["none", "small", "big", "mega", "jackpot"]


@dataclass(frozen=True)
class SymbolDefinition:
    """Symbol definition used by the engine."""
    id: str                   # e.g., "ace", "wild", "scatter"
    name: str                 # display name
    rarity: Rarity = "common"
    role: SymbolRole = "regular"
    high_tier: bool = False   # counts towards reel hit rate

    @property
    def is_wild(self) -> bool:
        return self.role == "wild"

    @property
    def is_scatter(self) -> bool:
        return self.role == "scatter"

    @property
    def is_high_value(self) -> bool:
        return self.role != "regular" or self.high_tier

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SymbolDefinition":
        sym_id = str(data.get("id", "")).strip()
        return cls(
            id=sym_id,
            name=str(data.get("name") or sym_id),
            rarity=str(data.get("rarity", "common")),  # type: ignore[arg-type]
            role=str(data.get("role", "regular")),  # type: ignore[arg-type]
            high_tier=bool(data.get("high_tier", False)),
        )


@dataclass
class ReelStrip:
    """Ordered symbol ids one reel samples from. Owned by the caller."""
    reel_index: int
    symbols: List[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.symbols)

    def to_dict(self) -> Dict[str, object]:
        return {"reelIndex": self.reel_index, "symbols": list(self.symbols), "length": self.length}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "ReelStrip":
        return cls(reel_index=int(data.get("reelIndex", 0)), symbols=[str(s) for s in data.get("symbols", [])])


class FeatureKind(str, Enum):
    """Closed set of bonus mechanisms that draw on the feature RTP budget."""
    FREE_SPINS = "free_spins"
    PICK_AND_CLICK = "pick_and_click"
    WHEEL = "wheel"
    HOLD_AND_SPIN = "hold_and_spin"
    RESPIN = "respin"


@dataclass
class FeatureSlot:
    kind: FeatureKind
    pct: float = 0.0
    enabled: bool = False


@dataclass(frozen=True)
class GridConfig:
    reel_count: int = 5
    row_count: int = 3


@dataclass(frozen=True)
class BudgetStatus:
    """Derived over/under budget indicator for the feature RTP split."""
    state: BudgetState
    available: float
    enabled_total: float

    @property
    def remaining(self) -> float:
        return max(0.0, self.available - self.enabled_total)

    @property
    def excess(self) -> float:
        return max(0.0, self.enabled_total - self.available)

    @property
    def over_budget(self) -> bool:
        return self.state == "over"


@dataclass(frozen=True)
class SpinOutcome:
    """Resolved grid, indexed reels[reel][row]."""
    reels: List[List[str]]

    @property
    def reel_count(self) -> int:
        return len(self.reels)

    @property
    def row_count(self) -> int:
        return len(self.reels[0]) if self.reels else 0

    def row(self, row_index: int) -> List[str]:
        return [reel[row_index] for reel in self.reels]

    def cells(self) -> List[str]:
        return [sym for reel in self.reels for sym in reel]

    @classmethod
    def from_rows(cls, rows: List[List[str]]) -> "SpinOutcome":
        """Build from row-major input, the way grids are usually written down."""
        if not rows:
            return cls(reels=[])
        width = max(len(r) for r in rows)
        return cls(reels=[[r[c] for r in rows if c < len(r)] for c in range(width)])


@dataclass(frozen=True)
class LineWin:
    line: int
    symbol: str
    count: int
    payout: float
    amount: float


@dataclass(frozen=True)
class WinResult:
    total_win: float
    winning_lines: List[int]
    tier: WinTier
    multiplier: float
    bonus_triggered: bool = False
    trigger_count: int = 0
    line_wins: List[LineWin] = field(default_factory=list)
    bonus_win: float = 0.0
    free_spins_awarded: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalWin": self.total_win,
            "winningLines": list(self.winning_lines),
            "tier": self.tier,
            "multiplier": self.multiplier,
            "bonusTriggered": self.bonus_triggered,
            "triggerCount": self.trigger_count,
            "bonusWin": self.bonus_win,
            "freeSpinsAwarded": self.free_spins_awarded,
            "lineWins": [
                {"line": w.line, "symbol": w.symbol, "count": w.count, "payout": w.payout, "amount": w.amount}
                for w in self.line_wins
            ],
        }


def find_symbol(symbols: List[SymbolDefinition], symbol_id: str) -> Optional[SymbolDefinition]:
    for s in symbols:
        if s.id == symbol_id:
            return s
    return None


def validate_catalog(symbols: List[SymbolDefinition]) -> None:
    """Reject duplicate ids and unknown rarity/role values."""
    seen = set()
    for s in symbols:
        if not s.id:
            raise CatalogError("Symbol id must not be empty")
        if s.id in seen:
            raise CatalogError(f"Duplicate symbol id {s.id!r}")
        if s.rarity not in RARITIES:
            raise CatalogError(f"Symbol {s.id!r} has unknown rarity {s.rarity!r} (expected one of {RARITIES})")
        if s.role not in ROLES:
            raise CatalogError(f"Symbol {s.id!r} has unknown role {s.role!r} (expected one of {ROLES})")
        seen.add(s.id)

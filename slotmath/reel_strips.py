from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Optional, Tuple

from .config import DEFAULT_POLICY, EnginePolicy, make_rng
from .spec import RARITIES, ReelStrip, SymbolDefinition, find_symbol, validate_catalog

logger = logging.getLogger("slotmath.reels")

SortBy = Literal["position", "symbol", "frequency", "value"]

# Stand-in catalog used before any symbols exist: (id, share of strip).
PLACEHOLDER_WEIGHTS: List[Tuple[str, float]] = [
    ("wild", 0.03),
    ("scatter", 0.05),
    ("pharaoh", 0.07),
    ("cleopatra", 0.08),
    ("anubis", 0.12),
    ("eye", 0.13),
    ("ankh", 0.14),
    ("ace", 0.10),
    ("king", 0.10),
    ("queen", 0.09),
    ("jack", 0.09),
]
PLACEHOLDER_HIGH_VALUE = {"wild", "scatter", "pharaoh", "cleopatra"}
PLACEHOLDER_FILLERS = ["queen", "jack", "king"]

_RARITY_RANK = {r: i for i, r in enumerate(RARITIES)}


@dataclass(frozen=True)
class ReelMetrics:
    total_positions: int
    symbol_counts: Dict[str, int]
    hit_rate: float            # % of positions holding high-value symbols
    volatility_factor: float   # |hit_rate - baseline|


@dataclass(frozen=True)
class PositionEntry:
    position: int
    symbol_id: str
    symbol: Optional[SymbolDefinition]
    display_name: str


def _rng(rng: Optional[random.Random], policy: EnginePolicy) -> random.Random:
    return rng if rng is not None else make_rng(policy.seed)


def rarity_counts(
    symbols: List[SymbolDefinition], strip_length: int, policy: EnginePolicy = DEFAULT_POLICY
) -> List[Tuple[str, int]]:
    """Copies of each symbol per strip, in catalog order."""
    out: List[Tuple[str, int]] = []
    for s in symbols:
        fraction, minimum = policy.rarity_weights[s.rarity]
        out.append((s.id, max(minimum, int(math.floor(strip_length * fraction)))))
    return out


def _fit_counts(
    symbols: List[SymbolDefinition], counts: Dict[str, int], strip_length: int, policy: EnginePolicy
) -> Dict[str, int]:
    """Trim copies round-robin, lowest rarity first, until the counts fit the strip.

    Copies above each rarity minimum go first, then copies above one; a
    symbol is only lost when the catalog itself is longer than the strip.
    """
    excess = sum(counts.values()) - strip_length
    if excess <= 0:
        return counts
    ordered = sorted(symbols, key=lambda s: _RARITY_RANK[s.rarity])
    for floor_of in (lambda s: max(1, policy.rarity_weights[s.rarity][1]), lambda s: 1):
        while excess > 0:
            trimmed = False
            for s in ordered:
                if excess > 0 and counts[s.id] > floor_of(s):
                    counts[s.id] -= 1
                    excess -= 1
                    trimmed = True
            if not trimmed:
                break
    if excess > 0:
        logger.warning(f"{len(symbols)} symbols do not fit a {strip_length}-position strip; some are left out")
    return counts


def _weighted_strip(
    symbols: List[SymbolDefinition], strip_length: int, rng: random.Random, policy: EnginePolicy
) -> List[str]:
    counts = _fit_counts(symbols, dict(rarity_counts(symbols, strip_length, policy)), strip_length, policy)
    ids: List[str] = []
    for s in symbols:
        ids.extend([s.id] * counts[s.id])

    commons = [s for s in symbols if s.rarity == "common"]
    pool = commons or symbols
    while len(ids) < strip_length:
        ids.append(rng.choice(pool).id)

    rng.shuffle(ids)  # Fisher-Yates, before any cut
    del ids[strip_length:]
    return ids


def _stride_for(length: int) -> int:
    stride = 5
    while length > 1 and math.gcd(stride, length) != 1:
        stride += 2
    return stride


def placeholder_strip(reel_index: int, strip_length: int) -> List[str]:
    """Deterministic strip built from PLACEHOLDER_WEIGHTS.

    Blocks sized by share are interleaved with a fixed stride and rotated by
    reel index, so every reel differs but no randomness is involved.
    """
    if strip_length <= 0:
        return []
    blocks: List[str] = []
    cumulative = 0.0
    for sym_id, share in PLACEHOLDER_WEIGHTS:
        cumulative += share
        target = int(round(cumulative * strip_length))
        blocks.extend([sym_id] * max(0, target - len(blocks)))
    last = PLACEHOLDER_WEIGHTS[-1][0]
    while len(blocks) < strip_length:
        blocks.append(last)
    del blocks[strip_length:]

    stride = _stride_for(strip_length)
    interleaved = [blocks[(i * stride) % strip_length] for i in range(strip_length)]
    offset = reel_index % strip_length
    return interleaved[offset:] + interleaved[:offset]


def generate(
    symbols: List[SymbolDefinition],
    reel_count: int,
    strip_length: Optional[int] = None,
    *,
    policy: EnginePolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> List[ReelStrip]:
    """Build one rarity-weighted strip per reel."""
    length = policy.strip_length if strip_length is None else int(strip_length)
    if reel_count <= 0:
        return []

    if not symbols:
        logger.warning(f"Empty symbol catalog: using placeholder strips ({reel_count} reels x {length})")
        return [ReelStrip(reel_index=i, symbols=placeholder_strip(i, length)) for i in range(reel_count)]

    validate_catalog(symbols)
    r = _rng(rng, policy)
    strips = [ReelStrip(reel_index=i, symbols=_weighted_strip(symbols, length, r, policy)) for i in range(reel_count)]
    logger.info(f"Generated {reel_count} reel strips x {length} from {len(symbols)} symbols")
    return strips


def reset_strips(
    symbols: List[SymbolDefinition],
    reel_count: int,
    *,
    policy: EnginePolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> List[ReelStrip]:
    return generate(symbols, reel_count, policy=policy, rng=rng)


def auto_balance(
    strips: List[ReelStrip],
    symbols: List[SymbolDefinition],
    *,
    policy: EnginePolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> List[ReelStrip]:
    """Refill every strip in place with the rarity weighting; reel count is kept."""
    if not symbols:
        logger.warning("Auto-balance skipped: symbol catalog is empty")
        return strips

    validate_catalog(symbols)
    r = _rng(rng, policy)
    for strip in strips:
        strip.symbols = _weighted_strip(symbols, policy.strip_length, r, policy)
    logger.info(f"Auto-balanced {len(strips)} reel strips to {policy.strip_length} positions")
    return strips


def shuffle_strips(
    strips: List[ReelStrip], *, policy: EnginePolicy = DEFAULT_POLICY, rng: Optional[random.Random] = None
) -> List[ReelStrip]:
    r = _rng(rng, policy)
    for strip in strips:
        r.shuffle(strip.symbols)
    return strips


def _filler_ids(symbols: List[SymbolDefinition], exclude: str) -> List[str]:
    """Low-tier ids used to pad a strip: common regulars first."""
    candidates = [s for s in symbols if s.id != exclude]
    for pick in (
        lambda s: s.role == "regular" and s.rarity == "common",
        lambda s: s.role == "regular",
        lambda s: True,
    ):
        ids = [s.id for s in candidates if pick(s)]
        if ids:
            return ids
    if symbols:
        return [exclude]
    return [f for f in PLACEHOLDER_FILLERS if f != exclude] or [exclude]


def normalize_length(
    strip: ReelStrip,
    symbols: List[SymbolDefinition],
    *,
    exclude: str = "",
    policy: EnginePolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> ReelStrip:
    """Pad with filler or drop random positions until the configured length; `exclude` is dropped last."""
    r = _rng(rng, policy)
    fillers = _filler_ids(symbols, exclude)
    target = policy.strip_length
    while len(strip.symbols) < target:
        strip.symbols.insert(r.randrange(len(strip.symbols) + 1), r.choice(fillers))
    while len(strip.symbols) > target:
        # drop `exclude` only once nothing else is left
        candidates = [i for i, s in enumerate(strip.symbols) if s != exclude] or list(range(len(strip.symbols)))
        strip.symbols.pop(r.choice(candidates))
    return strip


def update_symbol_count(
    strip: ReelStrip,
    symbol_id: str,
    new_count: int,
    symbols: List[SymbolDefinition],
    *,
    policy: EnginePolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> ReelStrip:
    r = _rng(rng, policy)
    kept = [s for s in strip.symbols if s != symbol_id]
    for _ in range(max(0, int(new_count))):
        kept.insert(r.randrange(len(kept) + 1), symbol_id)
    strip.symbols = kept
    return normalize_length(strip, symbols, exclude=symbol_id, policy=policy, rng=r)


def _check_position(strip: ReelStrip, position: int) -> None:
    if not 0 <= position < len(strip.symbols):
        raise IndexError(f"Position {position} out of range for reel {strip.reel_index} (length {strip.length})")


def insert_at(strip: ReelStrip, position: int, symbol_id: str) -> ReelStrip:
    """Insert one symbol; the strip grows by one until the caller normalizes it."""
    position = max(0, min(int(position), len(strip.symbols)))
    strip.symbols.insert(position, symbol_id)
    return strip


def remove_at(strip: ReelStrip, position: int, *, policy: EnginePolicy = DEFAULT_POLICY) -> bool:
    """Remove one symbol. Returns False (strip untouched) at the length floor."""
    _check_position(strip, position)
    if len(strip.symbols) <= policy.min_strip_length:
        logger.warning(
            f"Reel {strip.reel_index}: removal refused, length {strip.length} is at the floor {policy.min_strip_length}"
        )
        return False
    del strip.symbols[position]
    return True


def replace_at(strip: ReelStrip, position: int, symbol_id: str) -> ReelStrip:
    _check_position(strip, position)
    strip.symbols[position] = symbol_id
    return strip


def move_symbol(strip: ReelStrip, from_position: int, to_position: int) -> bool:
    if from_position == to_position:
        return False
    _check_position(strip, from_position)
    _check_position(strip, to_position)
    moved = strip.symbols.pop(from_position)
    strip.symbols.insert(to_position, moved)
    return True


def metrics(
    strip: ReelStrip, symbols: List[SymbolDefinition], *, policy: EnginePolicy = DEFAULT_POLICY
) -> ReelMetrics:
    counts: Dict[str, int] = {}
    for sym_id in strip.symbols:
        counts[sym_id] = counts.get(sym_id, 0) + 1

    if symbols:
        high_value = {s.id for s in symbols if s.is_high_value}
    else:
        high_value = set(PLACEHOLDER_HIGH_VALUE)

    total = len(strip.symbols)
    high_count = sum(c for sym_id, c in counts.items() if sym_id in high_value)
    hit_rate = (high_count / total) * 100 if total else 0.0
    return ReelMetrics(
        total_positions=total,
        symbol_counts=counts,
        hit_rate=hit_rate,
        volatility_factor=abs(hit_rate - policy.volatility_baseline_pct),
    )


_BUMP = {"common": "uncommon", "uncommon": "rare", "rare": "epic", "epic": "epic"}


def free_spin_symbols(symbols: List[SymbolDefinition], allow_retriggers: bool = True) -> List[SymbolDefinition]:
    """Free-spin reel catalog: ids suffixed `_fs`, rarity raised one tier."""
    return [
        replace(s, id=f"{s.id}_fs", rarity=_BUMP[s.rarity])
        for s in symbols
        if allow_retriggers or not s.is_scatter
    ]


def positions_view(
    strip: ReelStrip,
    symbols: List[SymbolDefinition],
    filter_symbol: str = "all",
    sort_by: SortBy = "position",
) -> List[PositionEntry]:
    entries: List[PositionEntry] = []
    for pos, sym_id in enumerate(strip.symbols):
        sym = find_symbol(symbols, sym_id)
        entries.append(PositionEntry(position=pos, symbol_id=sym_id, symbol=sym, display_name=sym.name if sym else sym_id.upper()))

    if filter_symbol != "all":
        entries = [e for e in entries if e.symbol_id == filter_symbol]

    if sort_by == "symbol":
        entries.sort(key=lambda e: e.display_name)
    elif sort_by == "frequency":
        freq: Dict[str, int] = {}
        for sym_id in strip.symbols:
            freq[sym_id] = freq.get(sym_id, 0) + 1
        entries.sort(key=lambda e: -freq[e.symbol_id])
    elif sort_by == "value":
        entries.sort(key=lambda e: -_RARITY_RANK.get(e.symbol.rarity if e.symbol else "common", 0))
    return entries

from __future__ import annotations

import os
import random
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

DEFAULT_RARITY_WEIGHTS: Mapping[str, Tuple[float, int]] = MappingProxyType({
    # rarity -> (fraction of strip length, minimum count)
    "epic": (0.03, 1),
    "rare": (0.06, 2),
    "uncommon": (0.12, 3),
    "common": (0.25, 6),
})

# scatter count -> free spins awarded
DEFAULT_FREE_SPINS_AWARD: Mapping[int, int] = MappingProxyType({3: 8, 4: 12, 5: 20})


@dataclass(frozen=True)
class EnginePolicy:
    """Numeric policy shared by the allocator, generator and evaluator.

    Table-valued fields are copied into read-only mappings, so policies
    derived with `replace()` never share mutable state.
    """
    strip_length: int = 32
    min_strip_length: int = 16
    base_pct_range: Tuple[float, float] = (50.0, 80.0)

    min_match: int = 3
    scatter_trigger_count: int = 3
    scatter_bonus_multiplier: float = 50.0
    free_spins_award: Mapping[int, int] = field(default_factory=lambda: DEFAULT_FREE_SPINS_AWARD, hash=False)

    # win tier bands on multiplier = total win / bet
    small_below: float = 10.0
    big_below: float = 50.0
    mega_below: float = 100.0

    volatility_baseline_pct: float = 25.0
    rarity_weights: Mapping[str, Tuple[float, int]] = field(default_factory=lambda: DEFAULT_RARITY_WEIGHTS, hash=False)

    seed: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rarity_weights", MappingProxyType(dict(self.rarity_weights)))
        object.__setattr__(self, "free_spins_award", MappingProxyType({int(k): int(v) for k, v in self.free_spins_award.items()}))

    def free_spins_for(self, scatter_count: int) -> int:
        """Award for the largest configured count <= scatter_count (0 below the smallest)."""
        reached = [c for c in self.free_spins_award if c <= scatter_count]
        return self.free_spins_award[max(reached)] if reached else 0


DEFAULT_POLICY = EnginePolicy()


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(env: Mapping[str, str], name: str) -> Optional[float]:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_policy(env: Optional[Mapping[str, str]] = None, base: EnginePolicy = DEFAULT_POLICY) -> EnginePolicy:
    """Return the engine policy.

    1) Env vars SLOTMATH_* override individual fields
    2) Everything else falls back to `base` (defaults)
    """
    env = os.environ if env is None else env
    overrides: Dict[str, object] = {}

    strip_length = _env_int(env, "SLOTMATH_STRIP_LENGTH")
    if strip_length is not None:
        overrides["strip_length"] = strip_length
    min_len = _env_int(env, "SLOTMATH_MIN_STRIP_LENGTH")
    if min_len is not None:
        overrides["min_strip_length"] = min_len

    lo = _env_float(env, "SLOTMATH_BASE_MIN")
    hi = _env_float(env, "SLOTMATH_BASE_MAX")
    if lo is not None or hi is not None:
        cur_lo, cur_hi = base.base_pct_range
        overrides["base_pct_range"] = (cur_lo if lo is None else lo, cur_hi if hi is None else hi)

    scatter_mult = _env_float(env, "SLOTMATH_SCATTER_MULTIPLIER")
    if scatter_mult is not None:
        overrides["scatter_bonus_multiplier"] = scatter_mult
    seed = _env_int(env, "SLOTMATH_SEED")
    if seed is not None:
        overrides["seed"] = seed

    return replace(base, **overrides) if overrides else base


def policy_health_report(policy: EnginePolicy) -> Tuple[bool, str]:
    problems = []
    lo, hi = policy.base_pct_range
    if not (0 <= lo <= hi <= 100):
        problems.append(f"base_pct_range {policy.base_pct_range} must satisfy 0 <= min <= max <= 100")
    if policy.strip_length <= 0:
        problems.append(f"strip_length must be > 0 (got {policy.strip_length})")
    if not (0 < policy.min_strip_length <= policy.strip_length):
        problems.append(
            f"min_strip_length {policy.min_strip_length} must be between 1 and strip_length {policy.strip_length}"
        )
    if policy.min_match < 2:
        problems.append(f"min_match must be >= 2 (got {policy.min_match})")
    if not (0 < policy.small_below <= policy.big_below <= policy.mega_below):
        problems.append(
            f"tier thresholds must ascend: small<{policy.small_below}, big<{policy.big_below}, mega<{policy.mega_below}"
        )
    for rarity, (fraction, minimum) in policy.rarity_weights.items():
        if fraction < 0 or minimum < 0:
            problems.append(f"rarity weight for {rarity!r} must be non-negative (got {fraction}, {minimum})")
    if any(spins < 0 for spins in policy.free_spins_award.values()):
        problems.append(f"free_spins_award values must be non-negative (got {dict(policy.free_spins_award)})")

    if problems:
        msg = "Engine policy not usable:\n" + "\n".join(f"- {p}" for p in problems)
        msg += "\n\nFix options:\n"
        msg += "1) Unset the SLOTMATH_* env vars to fall back to defaults.\n"
        msg += "2) Or pass an explicit EnginePolicy to the engine calls."
        return False, msg
    return True, f"Policy OK: strip {policy.strip_length} (floor {policy.min_strip_length}), base RTP {lo:g}-{hi:g}%"


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Random source for strip generation and spins; a fixed seed reproduces a run."""
    return random.Random(int(seed) if seed is not None else random.getrandbits(64))

from __future__ import annotations

import csv
import io
import json
import logging
import random
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_POLICY, EnginePolicy, make_rng
from .paytable import Paytable
from .spec import WIN_TIERS, GridConfig, ReelStrip, SpinOutcome, SymbolDefinition
from .win_evaluator import evaluate

logger = logging.getLogger("slotmath.sim")


@dataclass(frozen=True)
class SpinRecord:
    spin_id: int
    stops: List[int]
    reels: List[List[str]]
    bet: float
    total_win: float
    multiplier: float
    tier: str
    winning_lines: List[int]
    bonus_triggered: bool
    trigger_count: int


@dataclass
class SimulationReport:
    spins: int
    seed: int
    bet: float
    total_wagered: float = 0.0
    total_won: float = 0.0
    line_won: float = 0.0
    bonus_won: float = 0.0
    hits: int = 0
    bonus_triggers: int = 0
    free_spins_awarded: int = 0
    max_multiplier: float = 0.0
    tier_counts: Dict[str, int] = field(default_factory=lambda: {t: 0 for t in WIN_TIERS})
    target_base_pct: Optional[float] = None
    records: List[SpinRecord] = field(default_factory=list)

    @property
    def rtp_percent(self) -> float:
        return (self.total_won / self.total_wagered) * 100 if self.total_wagered else 0.0

    @property
    def base_rtp_percent(self) -> float:
        return (self.line_won / self.total_wagered) * 100 if self.total_wagered else 0.0

    @property
    def hit_rate_percent(self) -> float:
        return (self.hits / self.spins) * 100 if self.spins else 0.0

    @property
    def bonus_rate_percent(self) -> float:
        return (self.bonus_triggers / self.spins) * 100 if self.spins else 0.0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "spins": self.spins,
            "seed": str(self.seed),
            "bet": self.bet,
            "observed": {
                "rtp_total_percent": self.rtp_percent,
                "rtp_base_lines_percent": self.base_rtp_percent,
                "hit_rate_any_win_percent": self.hit_rate_percent,
                "bonus_trigger_rate_percent": self.bonus_rate_percent,
                "max_multiplier": self.max_multiplier,
                "free_spins_awarded": self.free_spins_awarded,
            },
            "tiers": dict(self.tier_counts),
        }
        if self.target_base_pct is not None:
            out["targets"] = {
                "base_pct": self.target_base_pct,
                "base_gap_percent": self.base_rtp_percent - self.target_base_pct,
            }
        return out


def spin(strips: List[ReelStrip], row_count: int, rng: random.Random) -> Tuple[List[int], SpinOutcome]:
    """Pick a stop per reel and read `row_count` consecutive positions (wrapping)."""
    stops: List[int] = []
    reels: List[List[str]] = []
    for strip in strips:
        n = len(strip.symbols)
        if n == 0:
            raise ValueError(f"Reel {strip.reel_index} has an empty strip")
        stop = rng.randrange(n)
        stops.append(stop)
        reels.append([strip.symbols[(stop + r) % n] for r in range(row_count)])
    return stops, SpinOutcome(reels=reels)


def simulate(
    strips: List[ReelStrip],
    paytable: Paytable,
    symbols: List[SymbolDefinition],
    *,
    bet: float = 1.0,
    spins: int = 10_000,
    row_count: int = 3,
    seed: Optional[int] = None,
    paylines: Optional[List[List[int]]] = None,
    target_base_pct: Optional[float] = None,
    keep_records: bool = False,
    policy: EnginePolicy = DEFAULT_POLICY,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> SimulationReport:
    """Monte Carlo run over the reel strips; the bet is wagered once per spin.

    Without an explicit `seed` the policy seed is used, then a fresh 64-bit one.
    """
    if spins <= 0:
        raise ValueError("spins must be > 0")
    if not strips:
        raise ValueError("at least one reel strip is required")

    if seed is None:
        seed = policy.seed
    seed_u64 = int(seed) if seed is not None else random.getrandbits(64)
    rng = make_rng(seed_u64)
    grid = GridConfig(reel_count=len(strips), row_count=row_count)

    report = SimulationReport(spins=spins, seed=seed_u64, bet=float(bet), target_base_pct=target_base_pct)
    for i in range(1, spins + 1):
        stops, outcome = spin(strips, row_count, rng)
        result = evaluate(outcome, paytable, bet, symbols, grid_config=grid, paylines=paylines, policy=policy)

        report.total_wagered += float(bet)
        report.total_won += result.total_win
        report.bonus_won += result.bonus_win
        report.line_won += result.total_win - result.bonus_win
        report.tier_counts[result.tier] += 1
        report.max_multiplier = max(report.max_multiplier, result.multiplier)
        if result.total_win > 0:
            report.hits += 1
        if result.bonus_triggered:
            report.bonus_triggers += 1
            report.free_spins_awarded += result.free_spins_awarded
        if keep_records:
            report.records.append(
                SpinRecord(
                    spin_id=i,
                    stops=stops,
                    reels=outcome.reels,
                    bet=float(bet),
                    total_win=result.total_win,
                    multiplier=result.multiplier,
                    tier=result.tier,
                    winning_lines=list(result.winning_lines),
                    bonus_triggered=result.bonus_triggered,
                    trigger_count=result.trigger_count,
                )
            )
        if progress_callback and (i % 10_000 == 0 or i == spins):
            progress_callback(i, spins)

    logger.info(
        f"Simulated {spins} spins | RTP {report.rtp_percent:.2f}% | hit rate {report.hit_rate_percent:.2f}% "
        f"| bonus {report.bonus_rate_percent:.2f}%"
    )
    return report


def records_to_csv_bytes(records: Iterable[SpinRecord]) -> bytes:
    out = io.StringIO()
    writer: Optional[csv.DictWriter] = None
    for r in records:
        row = asdict(r)
        for key in ("stops", "reels", "winning_lines"):
            row[key] = json.dumps(row[key], separators=(",", ":"))
        if writer is None:
            writer = csv.DictWriter(out, fieldnames=list(row.keys()))
            writer.writeheader()
        writer.writerow(row)
    return out.getvalue().encode("utf-8")


def report_to_csv_bytes(report: SimulationReport) -> bytes:
    return records_to_csv_bytes(report.records)

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from .config import load_policy, make_rng, policy_health_report
from .errors import ValidationError
from .paytable import Paytable, default_paytable
from .reel_strips import free_spin_symbols, generate, metrics
from .rtp_allocator import RTPAllocator
from .simulation import report_to_csv_bytes, simulate
from .spec import FeatureKind, ReelStrip, SpinOutcome
from .util_fs import load_catalog, read_json, write_bytes, write_json
from .win_evaluator import evaluate

logger = logging.getLogger("slotmath.cli")


def _emit(data: object, out: Optional[Path]) -> None:
    if out:
        write_json(out, data)
        print(f"Wrote {out}")
    else:
        print(json.dumps(data, indent=2))


def _load_paytable(path: Optional[Path], symbols, reel_count: int) -> Paytable:
    if path is None:
        return default_paytable(symbols, reel_count)
    return Paytable.from_dict(read_json(path), reel_count)


def _load_strips(path: Path) -> List[ReelStrip]:
    raw = read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("reelStrips", [])
    return [ReelStrip.from_dict(item) for item in raw]


def cmd_generate(args: argparse.Namespace) -> int:
    policy = load_policy()
    symbols = load_catalog(args.catalog) if args.catalog else []
    if args.free_spins:
        symbols = free_spin_symbols(symbols, allow_retriggers=not args.no_retriggers)
    rng = make_rng(args.seed if args.seed is not None else policy.seed)
    strips = generate(symbols, args.reels, args.strip_length, policy=policy, rng=rng)
    _emit(
        {
            "reelStrips": [s.to_dict() for s in strips],
            "metrics": [asdict(metrics(s, symbols, policy=policy)) for s in strips],
        },
        args.out,
    )
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    policy = load_policy()
    allocator = RTPAllocator(policy, base_pct=args.start_base)
    for name in args.enable:
        allocator.set_feature_enabled(FeatureKind(name), True)
    for item in args.feature:
        name, _, value = item.partition("=")
        allocator.set_feature_pct(FeatureKind(name.strip()), float(value))
    if args.base is not None:
        allocator.set_base_pct(args.base)
    status = allocator.budget_status()
    _emit(
        {
            "allocation": allocator.to_dict(),
            "split": allocator.split(),
            "budget": {"state": status.state, "remaining": status.remaining, "excess": status.excess},
        },
        args.out,
    )
    return 0


def cmd_evaluate(args: argparse.Namespace) -> int:
    policy = load_policy()
    symbols = load_catalog(args.catalog)
    raw = read_json(args.grid)
    outcome = SpinOutcome.from_rows(raw["rows"]) if isinstance(raw, dict) and "rows" in raw else SpinOutcome(reels=raw)
    paytable = _load_paytable(args.paytable, symbols, outcome.reel_count)
    result = evaluate(outcome, paytable, args.bet, symbols, policy=policy)
    _emit(result.to_dict(), args.out)
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    policy = load_policy()
    symbols = load_catalog(args.catalog)
    seed = args.seed if args.seed is not None else policy.seed
    if args.strips:
        strips = _load_strips(args.strips)
    else:
        strips = generate(symbols, args.reels, policy=policy, rng=make_rng(seed))
    paytable = _load_paytable(args.paytable, symbols, len(strips))

    def progress(i: int, total: int) -> None:
        logger.info(f"{i}/{total} spins")

    report = simulate(
        strips,
        paytable,
        symbols,
        bet=args.bet,
        spins=args.spins,
        row_count=args.rows,
        seed=seed,
        target_base_pct=args.target_base,
        keep_records=bool(args.csv),
        policy=policy,
        progress_callback=progress,
    )
    if args.csv:
        write_bytes(args.csv, report_to_csv_bytes(report))
    _emit(report.to_dict(), args.out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="slotmath", description="Slot math model tools: RTP split, reel strips, win evaluation.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = ap.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="Generate rarity-weighted reel strips from a symbol catalog")
    g.add_argument("--catalog", type=Path, help="Symbol catalog JSON (omit for placeholder strips)")
    g.add_argument("--reels", type=int, default=5)
    g.add_argument("--strip-length", type=int, default=None)
    g.add_argument("--seed", type=int, default=None)
    g.add_argument("--free-spins", action="store_true", help="Build the free-spin symbol set first")
    g.add_argument("--no-retriggers", action="store_true", help="Drop scatters from free-spin strips")
    g.add_argument("--out", type=Path)
    g.set_defaults(func=cmd_generate)

    b = sub.add_parser("balance", help="Apply feature/base RTP changes and report the split")
    b.add_argument("--start-base", type=float, default=68.0)
    b.add_argument("--enable", action="append", default=[], choices=[k.value for k in FeatureKind])
    b.add_argument("--feature", action="append", default=[], help="kind=pct, e.g. free_spins=15")
    b.add_argument("--base", type=float, default=None, help="New base RTP %% applied last")
    b.add_argument("--out", type=Path)
    b.set_defaults(func=cmd_balance)

    e = sub.add_parser("evaluate", help="Evaluate one resolved grid")
    e.add_argument("--catalog", type=Path, required=True)
    e.add_argument("--grid", type=Path, required=True, help='JSON reels[reel][row] or {"rows": [[...], ...]}')
    e.add_argument("--paytable", type=Path)
    e.add_argument("--bet", type=float, default=1.0)
    e.add_argument("--out", type=Path)
    e.set_defaults(func=cmd_evaluate)

    s = sub.add_parser("simulate", help="Monte Carlo RTP / hit-rate estimate")
    s.add_argument("--catalog", type=Path, required=True)
    s.add_argument("--strips", type=Path, help="Reel strips JSON from `generate` (default: generate now)")
    s.add_argument("--reels", type=int, default=5)
    s.add_argument("--rows", type=int, default=3)
    s.add_argument("--paytable", type=Path)
    s.add_argument("--bet", type=float, default=1.0)
    s.add_argument("--spins", type=int, default=10_000)
    s.add_argument("--seed", type=int, default=None)
    s.add_argument("--target-base", type=float, default=None, help="Base RTP %% to compare against")
    s.add_argument("--csv", type=Path, help="Also write every spin to this CSV")
    s.add_argument("--out", type=Path)
    s.set_defaults(func=cmd_simulate)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    ok, msg = policy_health_report(load_policy())
    if not ok:
        print(msg, file=sys.stderr)
        return 2
    try:
        return args.func(args)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

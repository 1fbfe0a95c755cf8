from __future__ import annotations

from typing import List, Optional, Sequence, Set, Tuple, Union

from .config import DEFAULT_POLICY, EnginePolicy
from .errors import GridShapeError, InvalidBetError, UnknownSymbolError
from .paylines import read_line, straight_lines
from .paytable import Paytable
from .spec import WIN_TIERS, GridConfig, LineWin, SpinOutcome, SymbolDefinition, WinResult, WinTier

GridInput = Union[SpinOutcome, Sequence[Sequence[str]]]


def classify_tier(multiplier: float, policy: EnginePolicy = DEFAULT_POLICY) -> WinTier:
    if multiplier <= 0:
        return "none"
    if multiplier < policy.small_below:
        return "small"
    if multiplier < policy.big_below:
        return "big"
    if multiplier < policy.mega_below:
        return "mega"
    return "jackpot"


def count_line(line_symbols: Sequence[str], wild_ids: Set[str]) -> Tuple[str, int]:
    """Candidate is the first symbol; extend while the next equals it or is wild."""
    if not line_symbols:
        return "", 0
    candidate = line_symbols[0]
    count = 1
    for sym in line_symbols[1:]:
        if sym == candidate or sym in wild_ids:
            count += 1
        else:
            break
    return candidate, count


def _as_outcome(grid: GridInput) -> SpinOutcome:
    if isinstance(grid, SpinOutcome):
        return grid
    return SpinOutcome(reels=[list(reel) for reel in grid])


def _check_shape(outcome: SpinOutcome, expected: Tuple[int, int]) -> None:
    reel_count, row_count = expected
    if outcome.reel_count != reel_count:
        raise GridShapeError(expected, (outcome.reel_count, outcome.row_count))
    for reel in outcome.reels:
        if len(reel) != row_count:
            raise GridShapeError(expected, (outcome.reel_count, len(reel)))


def _check_symbols(outcome: SpinOutcome, paytable: Paytable, symbols: List[SymbolDefinition]) -> None:
    catalog = {s.id: s for s in symbols}
    for sym_id in outcome.cells():
        if catalog:
            sym = catalog.get(sym_id)
            if sym is None:
                raise UnknownSymbolError(sym_id, where="symbol catalog")
            if sym.role == "regular" and sym_id not in paytable:
                raise UnknownSymbolError(sym_id)
        elif sym_id not in paytable:
            raise UnknownSymbolError(sym_id)


def evaluate(
    grid: GridInput,
    paytable: Paytable,
    bet: float,
    symbols: Optional[List[SymbolDefinition]] = None,
    *,
    grid_config: Optional[GridConfig] = None,
    paylines: Optional[List[List[int]]] = None,
    policy: EnginePolicy = DEFAULT_POLICY,
) -> WinResult:
    """Score a resolved grid.

    Lines are the straight rows unless `paylines` is given. Wild and scatter
    roles come from `symbols`; scatters pay anywhere on the grid. A grid of
    the wrong size, or a regular symbol missing from the paytable, raises a
    ValidationError instead of paying zero. A triggered bonus also awards
    free spins from `policy.free_spins_award`.
    """
    bet = float(bet)
    if bet < 0:
        raise InvalidBetError(bet)

    outcome = _as_outcome(grid)
    symbols = symbols or []
    if grid_config is not None:
        expected = (grid_config.reel_count, grid_config.row_count)
    else:
        expected = (paytable.reel_count, outcome.row_count)
    _check_shape(outcome, expected)
    if outcome.row_count == 0:
        raise GridShapeError(expected, (outcome.reel_count, 0))
    _check_symbols(outcome, paytable, symbols)

    wild_ids = {s.id for s in symbols if s.is_wild}
    scatter_ids = {s.id for s in symbols if s.is_scatter}
    lines = paylines if paylines is not None else straight_lines(outcome.row_count, outcome.reel_count)

    total = 0.0
    line_wins: List[LineWin] = []
    for idx, line in enumerate(lines):
        candidate, count = count_line(read_line(outcome, line), wild_ids)
        if count < policy.min_match or candidate not in paytable:
            continue
        payout = paytable.pay(candidate, count)
        amount = payout * bet
        total += amount
        line_wins.append(LineWin(line=idx, symbol=candidate, count=count, payout=payout, amount=amount))

    scatter_count = sum(1 for sym_id in outcome.cells() if sym_id in scatter_ids)
    bonus_triggered = scatter_count >= policy.scatter_trigger_count
    bonus_win = bet * policy.scatter_bonus_multiplier * scatter_count if bonus_triggered else 0.0
    total += bonus_win

    multiplier = total / bet if bet > 0 else 0.0
    tier = classify_tier(multiplier, policy)
    if bonus_triggered and WIN_TIERS.index(tier) < WIN_TIERS.index("mega"):
        tier = "mega"

    return WinResult(
        total_win=total,
        winning_lines=[w.line for w in line_wins],
        tier=tier,
        multiplier=multiplier,
        bonus_triggered=bonus_triggered,
        trigger_count=scatter_count if bonus_triggered else 0,
        line_wins=line_wins,
        bonus_win=bonus_win,
        free_spins_awarded=policy.free_spins_for(scatter_count) if bonus_triggered else 0,
    )

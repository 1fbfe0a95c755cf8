from __future__ import annotations

from typing import List

from .spec import SpinOutcome


def straight_lines(row_count: int, reel_count: int) -> List[List[int]]:
    """One horizontal line per row; line index == row index."""
    return [[row] * reel_count for row in range(row_count)]


def generate_paylines(payline_count: int, reel_count: int, row_count: int) -> List[List[int]]:
    """Deterministic paylines, each a row index per reel.

    The first lines are the straight rows (top to bottom) so a game with
    `payline_count == row_count` scores exactly like row evaluation. V shapes
    and zigzags follow when the grid allows them.
    """
    if payline_count <= 0 or reel_count <= 0 or row_count <= 0:
        return []

    patterns: List[List[int]] = straight_lines(row_count, reel_count)
    bottom = row_count - 1
    if row_count >= 3:
        half = reel_count // 2
        v_shape = [min(c, reel_count - 1 - c, bottom) for c in range(reel_count)]
        patterns.append(v_shape)
        patterns.append([bottom - r for r in v_shape])
        patterns.append([0 if c < half else bottom for c in range(reel_count)])
        patterns.append([bottom if c < half else 0 for c in range(reel_count)])

    mid = row_count // 2
    i = 0
    while len(patterns) < payline_count:
        mode = i % 4
        line: List[int] = []
        for col in range(reel_count):
            if mode == 0:
                row = col % row_count
            elif mode == 1:
                row = (bottom - col) % row_count
            elif mode == 2:
                row = (mid + (1 if col % 2 else -1)) % row_count
            else:
                row = (mid + (1 if col % 3 == 0 else -1)) % row_count
            line.append(row)
        patterns.append(line)
        i += 1
    return patterns[:payline_count]


def read_line(outcome: SpinOutcome, line: List[int]) -> List[str]:
    return [outcome.reels[c][row] for c, row in enumerate(line)]

from __future__ import annotations

from slotmath.paylines import generate_paylines, read_line, straight_lines
from slotmath.spec import SpinOutcome


class TestPaylines:
    def test_straight_lines(self):
        assert straight_lines(3, 5) == [[0] * 5, [1] * 5, [2] * 5]

    def test_rows_come_first(self):
        lines = generate_paylines(3, 5, 3)
        assert lines == straight_lines(3, 5)

    def test_shapes_after_rows(self):
        lines = generate_paylines(5, 5, 3)
        assert lines[3] == [0, 1, 2, 1, 0]
        assert lines[4] == [2, 1, 0, 1, 2]

    def test_count_and_bounds(self):
        lines = generate_paylines(20, 5, 4)
        assert len(lines) == 20
        for line in lines:
            assert len(line) == 5
            assert all(0 <= row < 4 for row in line)

    def test_is_deterministic(self):
        assert generate_paylines(25, 6, 4) == generate_paylines(25, 6, 4)

    def test_degenerate_inputs(self):
        assert generate_paylines(0, 5, 3) == []
        assert generate_paylines(5, 0, 3) == []

    def test_read_line(self):
        outcome = SpinOutcome.from_rows([["a", "b", "c"], ["d", "e", "f"]])
        assert read_line(outcome, [0, 1, 0]) == ["a", "e", "c"]

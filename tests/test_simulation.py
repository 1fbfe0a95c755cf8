"""Tests for spinning strips and the Monte Carlo report."""

from __future__ import annotations

import random

import pytest

from slotmath.config import EnginePolicy
from slotmath.paytable import default_paytable
from slotmath.reel_strips import generate
from slotmath.simulation import records_to_csv_bytes, report_to_csv_bytes, simulate, spin
from slotmath.spec import ReelStrip


class _LastStopRng:
    def randrange(self, n):
        return n - 1


@pytest.fixture
def machine(catalog):
    strips = generate(catalog, 5, rng=random.Random(3))
    return strips, default_paytable(catalog, 5)


class TestSpin:
    def test_window_wraps_around_strip(self):
        strips = [ReelStrip(reel_index=0, symbols=["a", "b", "c"]), ReelStrip(reel_index=1, symbols=["x", "y"])]
        stops, outcome = spin(strips, 3, _LastStopRng())
        assert stops == [2, 1]
        assert outcome.reels == [["c", "a", "b"], ["y", "x", "y"]]

    def test_empty_strip_rejected(self):
        with pytest.raises(ValueError):
            spin([ReelStrip(reel_index=0)], 3, random.Random(1))


class TestSimulate:
    def test_fixed_seed_is_reproducible(self, machine, catalog):
        strips, table = machine
        first = simulate(strips, table, catalog, spins=500, seed=42)
        second = simulate(strips, table, catalog, spins=500, seed=42)
        assert first.total_won == second.total_won
        assert first.hits == second.hits
        assert first.tier_counts == second.tier_counts

    def test_policy_seed_used_when_no_seed_given(self, machine, catalog):
        strips, table = machine
        policy = EnginePolicy(seed=99)
        first = simulate(strips, table, catalog, spins=300, policy=policy)
        second = simulate(strips, table, catalog, spins=300, policy=policy)
        assert first.seed == second.seed == 99
        assert first.total_won == second.total_won

    def test_explicit_seed_beats_policy_seed(self, machine, catalog):
        strips, table = machine
        report = simulate(strips, table, catalog, spins=10, seed=7, policy=EnginePolicy(seed=99))
        assert report.seed == 7

    def test_free_spins_are_totalled(self, machine, catalog):
        strips, table = machine
        report = simulate(strips, table, catalog, spins=2000, seed=11, keep_records=True)
        triggers = [r.trigger_count for r in report.records if r.bonus_triggered]
        assert report.free_spins_awarded == sum(EnginePolicy().free_spins_for(c) for c in triggers)
        assert report.to_dict()["observed"]["free_spins_awarded"] == report.free_spins_awarded

    def test_totals_add_up(self, machine, catalog):
        strips, table = machine
        report = simulate(strips, table, catalog, bet=2, spins=300, seed=1)
        assert report.total_wagered == 600
        assert sum(report.tier_counts.values()) == 300
        assert report.total_won == pytest.approx(report.line_won + report.bonus_won)
        assert 0 <= report.hit_rate_percent <= 100
        assert report.records == []

    def test_keep_records_and_csv(self, machine, catalog):
        strips, table = machine
        report = simulate(strips, table, catalog, spins=20, seed=5, keep_records=True)
        assert len(report.records) == 20
        assert [r.spin_id for r in report.records] == list(range(1, 21))
        lines = report_to_csv_bytes(report).decode("utf-8").splitlines()
        assert lines[0].startswith("spin_id,stops,reels")
        assert len(lines) == 21

    def test_csv_of_no_records_is_empty(self):
        assert records_to_csv_bytes([]) == b""

    def test_report_dict(self, machine, catalog):
        strips, table = machine
        data = simulate(strips, table, catalog, spins=50, seed=9, target_base_pct=68).to_dict()
        assert data["spins"] == 50
        assert data["seed"] == "9"
        assert set(data["tiers"]) == {"none", "small", "big", "mega", "jackpot"}
        assert data["targets"]["base_pct"] == 68

    def test_progress_callback(self, machine, catalog):
        strips, table = machine
        calls = []
        simulate(strips, table, catalog, spins=25, seed=2, progress_callback=lambda done, total: calls.append((done, total)))
        assert calls == [(25, 25)]

    def test_invalid_arguments(self, machine, catalog):
        strips, table = machine
        with pytest.raises(ValueError):
            simulate(strips, table, catalog, spins=0)
        with pytest.raises(ValueError):
            simulate([], table, catalog, spins=10)

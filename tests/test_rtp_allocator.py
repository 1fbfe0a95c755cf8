"""Tests for the base/feature RTP split."""

from __future__ import annotations

import random

import pytest

from slotmath.config import EnginePolicy
from slotmath.rtp_allocator import RTPAllocator
from slotmath.spec import FeatureKind, FeatureSlot


def _allocator(base, **pcts):
    slots = [FeatureSlot(kind=FeatureKind(k), pct=v, enabled=True) for k, v in pcts.items()]
    return RTPAllocator(base_pct=base, slots=slots)


class TestBasePct:
    def test_scale_down_when_base_rises(self):
        alloc = _allocator(60, free_spins=15, pick_and_click=15)
        status = alloc.budget_status()
        assert alloc.available_for_features() == 40
        assert alloc.enabled_total() == 30
        assert status.state == "under"
        assert status.remaining == pytest.approx(10)

        assert alloc.set_base_pct(75) == 75
        assert alloc.slot(FeatureKind.FREE_SPINS).pct == pytest.approx(12.5)
        assert alloc.slot(FeatureKind.PICK_AND_CLICK).pct == pytest.approx(12.5)
        assert alloc.budget_status().state == "balanced"

    def test_scaling_skips_disabled_slots(self):
        slots = [
            FeatureSlot(kind=FeatureKind.FREE_SPINS, pct=20, enabled=True),
            FeatureSlot(kind=FeatureKind.RESPIN, pct=20, enabled=True),
            FeatureSlot(kind=FeatureKind.WHEEL, pct=10, enabled=False),
        ]
        alloc = RTPAllocator(base_pct=60, slots=slots)
        alloc.set_base_pct(80)

        # 20 available, 40 enabled -> ratio 0.5
        assert alloc.slot(FeatureKind.FREE_SPINS).pct == pytest.approx(10)
        assert alloc.slot(FeatureKind.RESPIN).pct == pytest.approx(10)
        assert alloc.slot(FeatureKind.WHEEL).pct == 10
        assert alloc.enabled_total() == pytest.approx(20)

    def test_no_scaling_when_room_remains(self):
        alloc = _allocator(60, free_spins=15, pick_and_click=15)
        alloc.set_base_pct(65)
        assert alloc.slot(FeatureKind.FREE_SPINS).pct == 15
        assert alloc.slot(FeatureKind.PICK_AND_CLICK).pct == 15

    def test_no_scaling_when_enabled_total_is_zero(self):
        alloc = _allocator(60, free_spins=0, wheel=0)
        alloc.set_base_pct(80)
        assert alloc.enabled_total() == 0
        assert alloc.budget_status().state == "under"

    @pytest.mark.parametrize("value,expected", [(95, 80), (10, 50), (62.5, 62.5)])
    def test_base_is_clamped_into_range(self, value, expected):
        alloc = RTPAllocator()
        assert alloc.set_base_pct(value) == expected
        assert alloc.base_pct == expected

    def test_custom_range_from_policy(self):
        alloc = RTPAllocator(EnginePolicy(base_pct_range=(40.0, 90.0)), base_pct=30)
        assert alloc.base_pct == 40
        assert alloc.set_base_pct(99) == 90


class TestFeaturePct:
    def test_clamped_to_remaining_budget(self):
        alloc = _allocator(70, free_spins=20, pick_and_click=0)
        assert alloc.max_for(FeatureKind.PICK_AND_CLICK) == pytest.approx(10)
        assert alloc.set_feature_pct(FeatureKind.PICK_AND_CLICK, 25) == pytest.approx(10)
        assert alloc.enabled_total() == pytest.approx(30)

    def test_negative_request_becomes_zero(self):
        alloc = _allocator(70, free_spins=20)
        assert alloc.set_feature_pct(FeatureKind.FREE_SPINS, -5) == 0

    def test_disabled_slots_do_not_count(self):
        slots = [
            FeatureSlot(kind=FeatureKind.FREE_SPINS, pct=0, enabled=True),
            FeatureSlot(kind=FeatureKind.WHEEL, pct=25, enabled=False),
        ]
        alloc = RTPAllocator(base_pct=70, slots=slots)
        assert alloc.set_feature_pct(FeatureKind.FREE_SPINS, 30) == 30
        assert alloc.budget_status().state == "balanced"

    def test_accepts_string_kind(self):
        alloc = _allocator(70, free_spins=0)
        assert alloc.set_feature_pct("free_spins", 5) == 5


class TestBudgetStatus:
    def test_reenabling_a_slot_is_flagged_not_corrected(self):
        slots = [
            FeatureSlot(kind=FeatureKind.FREE_SPINS, pct=20, enabled=True),
            FeatureSlot(kind=FeatureKind.PICK_AND_CLICK, pct=10, enabled=True),
            FeatureSlot(kind=FeatureKind.WHEEL, pct=5, enabled=False),
        ]
        alloc = RTPAllocator(base_pct=70, slots=slots)
        status = alloc.set_feature_enabled(FeatureKind.WHEEL, True)

        assert status.over_budget
        assert status.excess == pytest.approx(5)
        assert alloc.slot(FeatureKind.FREE_SPINS).pct == 20
        assert alloc.slot(FeatureKind.WHEEL).pct == 5

    def test_invariant_holds_over_random_edits(self):
        r = random.Random(7)
        alloc = RTPAllocator.with_enabled([FeatureKind.FREE_SPINS, FeatureKind.WHEEL, FeatureKind.RESPIN])
        lo, hi = alloc.policy.base_pct_range
        kinds = list(FeatureKind)
        for _ in range(500):
            if r.random() < 0.3:
                alloc.set_base_pct(r.uniform(0, 100))
            else:
                alloc.set_feature_pct(r.choice(kinds), r.uniform(-10, 60))
            assert lo <= alloc.base_pct <= hi
            status = alloc.budget_status()
            assert alloc.enabled_total() <= alloc.available_for_features() + 1e-9 or status.over_budget


class TestDefaultsAndTemplates:
    def test_with_enabled_uses_default_shares(self):
        alloc = RTPAllocator.with_enabled([FeatureKind.FREE_SPINS, FeatureKind.WHEEL])
        assert alloc.base_pct == 68
        assert alloc.slot(FeatureKind.FREE_SPINS).pct == 18
        assert alloc.slot(FeatureKind.WHEEL).pct == 4
        assert alloc.slot(FeatureKind.RESPIN).enabled is False
        assert alloc.slot(FeatureKind.RESPIN).pct == 0
        assert alloc.enabled_total() == 22

    def test_template_that_overflows_is_reported(self):
        alloc = RTPAllocator.with_enabled(list(FeatureKind))
        status = alloc.apply_template("big_win_chase")
        assert alloc.base_pct == 50
        assert status.state == "over"
        assert status.excess == pytest.approx(2)

    def test_template_sets_base_to_remainder(self):
        alloc = RTPAllocator.with_enabled(list(FeatureKind))
        status = alloc.apply_template("high_retrigger")
        assert alloc.base_pct == 63
        assert status.state == "balanced"

    def test_split_and_serialization(self):
        alloc = _allocator(60, free_spins=15, pick_and_click=15)
        split = alloc.split()
        assert split["base"] == 60
        assert split["features"] == 40
        assert split["enabled"] == {"free_spins": 15, "pick_and_click": 15}
        assert split["status"] == "under"

        restored = RTPAllocator.from_dict(alloc.to_dict())
        assert restored.base_pct == 60
        assert restored.enabled_total() == 30
        assert restored.slot(FeatureKind.WHEEL).enabled is False

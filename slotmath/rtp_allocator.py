from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .config import DEFAULT_POLICY, EnginePolicy
from .spec import BudgetStatus, FeatureKind, FeatureSlot

logger = logging.getLogger("slotmath.rtp")

# Shares handed to each enabled feature on a fresh allocation (base 68%).
DEFAULT_BASE_PCT = 68.0
DEFAULT_FEATURE_PCT: Dict[FeatureKind, float] = {
    FeatureKind.FREE_SPINS: 18.0,
    FeatureKind.PICK_AND_CLICK: 8.0,
    FeatureKind.WHEEL: 4.0,
    FeatureKind.HOLD_AND_SPIN: 2.0,
    FeatureKind.RESPIN: 4.0,
}

_EPS = 1e-9


@dataclass(frozen=True)
class FeatureTemplate:
    key: str
    name: str
    description: str
    settings: Dict[FeatureKind, float]


FEATURE_TEMPLATES: Dict[str, FeatureTemplate] = {
    "high_retrigger": FeatureTemplate(
        key="high_retrigger",
        name="High Retrigger Build",
        description="Focus on frequent feature triggers",
        settings={
            FeatureKind.FREE_SPINS: 25.0,
            FeatureKind.PICK_AND_CLICK: 5.0,
            FeatureKind.WHEEL: 2.0,
            FeatureKind.HOLD_AND_SPIN: 0.0,
            FeatureKind.RESPIN: 5.0,
        },
    ),
    "big_win_chase": FeatureTemplate(
        key="big_win_chase",
        name="Big Win Chase",
        description="Lower frequency, higher power features",
        settings={
            FeatureKind.FREE_SPINS: 15.0,
            FeatureKind.PICK_AND_CLICK: 12.0,
            FeatureKind.WHEEL: 8.0,
            FeatureKind.HOLD_AND_SPIN: 15.0,
            FeatureKind.RESPIN: 2.0,
        },
    ),
    "balanced_appeal": FeatureTemplate(
        key="balanced_appeal",
        name="Balanced Appeal",
        description="Optimal balance for broad market",
        settings={
            FeatureKind.FREE_SPINS: 18.0,
            FeatureKind.PICK_AND_CLICK: 8.0,
            FeatureKind.WHEEL: 4.0,
            FeatureKind.HOLD_AND_SPIN: 2.0,
            FeatureKind.RESPIN: 5.0,
        },
    ),
}


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class RTPAllocator:
    """Split of total RTP between the base game and the feature slots.

    Every operation clamps instead of raising. An enabled feature total that
    no longer fits the budget (e.g. after re-enabling a slot) is left as is
    and reported through `budget_status()`; only a base change rescales.
    """

    def __init__(
        self,
        policy: EnginePolicy = DEFAULT_POLICY,
        *,
        base_pct: float = DEFAULT_BASE_PCT,
        slots: Optional[Iterable[FeatureSlot]] = None,
    ) -> None:
        self.policy = policy
        self._slots: Dict[FeatureKind, FeatureSlot] = {kind: FeatureSlot(kind=kind) for kind in FeatureKind}
        for slot in slots or []:
            self._slots[slot.kind] = FeatureSlot(kind=slot.kind, pct=max(0.0, float(slot.pct)), enabled=bool(slot.enabled))
        lo, hi = policy.base_pct_range
        self._base_pct = _clamp(float(base_pct), lo, hi)

    @classmethod
    def with_enabled(cls, enabled: Iterable[FeatureKind], policy: EnginePolicy = DEFAULT_POLICY) -> "RTPAllocator":
        """Fresh allocation with the default shares for the enabled features."""
        enabled = set(enabled)
        slots = [
            FeatureSlot(kind=k, pct=DEFAULT_FEATURE_PCT[k] if k in enabled else 0.0, enabled=k in enabled)
            for k in FeatureKind
        ]
        return cls(policy, base_pct=DEFAULT_BASE_PCT, slots=slots)

    @property
    def base_pct(self) -> float:
        return self._base_pct

    @property
    def slots(self) -> List[FeatureSlot]:
        return [self._slots[k] for k in FeatureKind]

    def slot(self, kind: FeatureKind) -> FeatureSlot:
        return self._slots[FeatureKind(kind)]

    def available_for_features(self) -> float:
        return 100.0 - self._base_pct

    def enabled_total(self) -> float:
        return sum(s.pct for s in self._slots.values() if s.enabled)

    def _other_enabled_total(self, kind: FeatureKind) -> float:
        return sum(s.pct for k, s in self._slots.items() if s.enabled and k != kind)

    def max_for(self, kind: FeatureKind) -> float:
        """Largest share `kind` may take given the other enabled slots."""
        return max(0.0, self.available_for_features() - self._other_enabled_total(FeatureKind(kind)))

    def set_base_pct(self, value: float) -> float:
        lo, hi = self.policy.base_pct_range
        new_base = _clamp(float(value), lo, hi)
        current_total = self.enabled_total()
        self._base_pct = new_base

        available = self.available_for_features()
        if current_total > 0 and available < current_total:
            scale = available / current_total
            for s in self._slots.values():
                if s.enabled:
                    s.pct = s.pct * scale
            logger.info(f"Base RTP {new_base:g}% -> scaled enabled features by {scale:.4f}")
        return new_base

    def set_feature_pct(self, kind: FeatureKind, value: float) -> float:
        kind = FeatureKind(kind)
        clamped = _clamp(float(value), 0.0, self.max_for(kind))
        self._slots[kind].pct = clamped
        return clamped

    def set_feature_enabled(self, kind: FeatureKind, enabled: bool) -> BudgetStatus:
        kind = FeatureKind(kind)
        self._slots[kind].enabled = bool(enabled)
        status = self.budget_status()
        if status.over_budget:
            logger.warning(
                f"Enabling {kind.value} puts features at {status.enabled_total:.2f}% "
                f"(available {status.available:.2f}%)"
            )
        return status

    def budget_status(self) -> BudgetStatus:
        available = self.available_for_features()
        total = self.enabled_total()
        if total > available + _EPS:
            state = "over"
        elif total < available - _EPS:
            state = "under"
        else:
            state = "balanced"
        return BudgetStatus(state=state, available=available, enabled_total=total)

    def apply_template(self, key: str) -> BudgetStatus:
        """Apply a named feature template; base becomes 100 - template total (clamped)."""
        template = FEATURE_TEMPLATES[key]
        for kind, pct in template.settings.items():
            self._slots[kind].pct = float(pct)
        lo, hi = self.policy.base_pct_range
        self._base_pct = _clamp(100.0 - sum(template.settings.values()), lo, hi)
        return self.budget_status()

    def split(self) -> Dict[str, object]:
        return {
            "base": self._base_pct,
            "features": self.available_for_features(),
            "enabled": {s.kind.value: s.pct for s in self.slots if s.enabled},
            "status": self.budget_status().state,
        }

    def to_dict(self) -> Dict[str, object]:
        return {
            "basePct": self._base_pct,
            "basePctRange": list(self.policy.base_pct_range),
            "features": [{"kind": s.kind.value, "pct": s.pct, "enabled": s.enabled} for s in self.slots],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], policy: EnginePolicy = DEFAULT_POLICY) -> "RTPAllocator":
        slots = [
            FeatureSlot(kind=FeatureKind(f["kind"]), pct=float(f.get("pct", 0.0)), enabled=bool(f.get("enabled", False)))
            for f in data.get("features", [])  # type: ignore[union-attr]
        ]
        return cls(policy, base_pct=float(data.get("basePct", DEFAULT_BASE_PCT)), slots=slots)

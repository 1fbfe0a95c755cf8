from __future__ import annotations

import json
from dataclasses import asdict
from typing import Dict, List

import streamlit as st

from .config import load_policy, make_rng, policy_health_report
from .errors import PaytableOrderError, ValidationError
from .paytable import Paytable, default_paytable
from .reel_strips import (
    auto_balance,
    free_spin_symbols,
    generate,
    insert_at,
    metrics,
    move_symbol,
    normalize_length,
    positions_view,
    remove_at,
    replace_at,
    reset_strips,
    shuffle_strips,
    update_symbol_count,
)
from .rtp_allocator import FEATURE_TEMPLATES, RTPAllocator
from .simulation import report_to_csv_bytes, simulate, spin
from .spec import RARITIES, ROLES, FeatureKind, GridConfig, ReelStrip, SymbolDefinition
from .win_evaluator import evaluate

FEATURE_LABELS = {
    FeatureKind.FREE_SPINS: "Free Spins",
    FeatureKind.PICK_AND_CLICK: "Pick Bonus",
    FeatureKind.WHEEL: "Wheel Feature",
    FeatureKind.HOLD_AND_SPIN: "Hold & Win",
    FeatureKind.RESPIN: "Respin Feature",
}

DEFAULT_SYMBOLS: List[Dict[str, object]] = [
    {"id": "wild", "name": "Wild", "rarity": "epic", "role": "wild"},
    {"id": "scatter", "name": "Scatter", "rarity": "rare", "role": "scatter"},
    {"id": "pharaoh", "name": "Pharaoh", "rarity": "rare", "high_tier": True},
    {"id": "cleopatra", "name": "Cleopatra", "rarity": "uncommon", "high_tier": True},
    {"id": "anubis", "name": "Anubis", "rarity": "uncommon"},
    {"id": "ace", "name": "Ace", "rarity": "common"},
    {"id": "king", "name": "King", "rarity": "common"},
    {"id": "queen", "name": "Queen", "rarity": "common"},
]


def _step_header(title: str, step: int, total: int) -> None:
    st.progress((step + 1) / total)
    st.subheader(f"Step {step+1}/{total}: {title}")
    st.markdown("---")


def _nav(step: int, total: int) -> None:
    c1, c2, c3 = st.columns([1, 1, 3])
    with c1:
        if st.button("Back", disabled=(step <= 0)):
            st.session_state.mm_step = max(0, step - 1)
            st.rerun()
    with c2:
        if st.button("Next", disabled=(step >= total - 1)):
            st.session_state.mm_step = min(total - 1, step + 1)
            st.rerun()


def _symbols() -> List[SymbolDefinition]:
    raw = json.loads(st.session_state.get("mm_symbols_json", "[]"))
    return [SymbolDefinition.from_dict(s) for s in raw]


def _grid() -> GridConfig:
    return GridConfig(
        reel_count=int(st.session_state.get("mm_reel_count", 5)),
        row_count=int(st.session_state.get("mm_row_count", 3)),
    )


def _allocator() -> RTPAllocator:
    if "mm_allocator" not in st.session_state:
        st.session_state.mm_allocator = RTPAllocator.with_enabled([FeatureKind.FREE_SPINS], load_policy())
    return st.session_state.mm_allocator


def _strips() -> List[ReelStrip]:
    grid = _grid()
    strips = st.session_state.get("mm_strips")
    # grid width change supersedes the strips wholesale
    if not strips or len(strips) != grid.reel_count:
        policy = load_policy()
        strips = generate(_symbols(), grid.reel_count, policy=policy, rng=make_rng(policy.seed))
        st.session_state.mm_strips = strips
    return strips


def _paytable() -> Paytable:
    grid = _grid()
    table = st.session_state.get("mm_paytable")
    if table is None or table.reel_count != grid.reel_count:
        table = default_paytable(_symbols(), grid.reel_count)
        st.session_state.mm_paytable = table
    return table


def show_math_workbench() -> None:
    st.title("Math Model Workbench")
    st.caption("RTP split, reel strips, paytable and test spins for one slot configuration.")
    st.markdown("")

    st.session_state.setdefault("mm_step", 0)
    st.session_state.setdefault("mm_symbols_json", json.dumps(DEFAULT_SYMBOLS))

    ok, msg = policy_health_report(load_policy())
    if not ok:
        st.error(msg)
        st.stop()

    steps = [
        ("Grid + Symbols", _step_symbols),
        ("RTP Balancing", _step_rtp),
        ("Reel Strips", _step_reels),
        ("Paytable", _step_paytable),
        ("Test Spin + Simulation", _step_simulation),
    ]

    step = int(st.session_state.mm_step)
    total = len(steps)

    title, fn = steps[step]
    _step_header(title, step, total)
    fn()

    _nav(step, total)


def _step_symbols() -> None:
    c1, c2 = st.columns(2)
    with c1:
        st.number_input("Reels", min_value=3, max_value=7, value=5, step=1, key="mm_reel_count")
    with c2:
        st.number_input("Rows", min_value=1, max_value=6, value=3, step=1, key="mm_row_count")

    current = json.loads(st.session_state["mm_symbols_json"])
    st.number_input("How many symbols?", min_value=0, max_value=40, value=len(current), step=1, key="mm_symbol_count")

    symbols: List[Dict[str, object]] = []
    for idx in range(int(st.session_state["mm_symbol_count"])):
        seed = current[idx] if idx < len(current) else {"id": f"S{idx+1}"}
        with st.expander(f"Symbol {idx+1}", expanded=(idx < 4)):
            sym_id = st.text_input("Symbol ID", value=str(seed.get("id", "")), key=f"mm_sym_id_{idx}").strip()
            name = st.text_input("Display name", value=str(seed.get("name", sym_id)), key=f"mm_sym_name_{idx}").strip()
            rarity = st.selectbox("Rarity", RARITIES, index=RARITIES.index(str(seed.get("rarity", "common"))), key=f"mm_sym_rarity_{idx}")
            role = st.selectbox("Role", ROLES, index=ROLES.index(str(seed.get("role", "regular"))), key=f"mm_sym_role_{idx}")
            high = st.checkbox("High tier", value=bool(seed.get("high_tier", False)), key=f"mm_sym_high_{idx}")
            if sym_id:
                symbols.append({"id": sym_id, "name": name or sym_id, "rarity": rarity, "role": role, "high_tier": high})

    new_json = json.dumps(symbols)
    if new_json != st.session_state["mm_symbols_json"]:
        st.session_state["mm_symbols_json"] = new_json
        st.session_state.pop("mm_strips", None)
        st.session_state.pop("mm_paytable", None)
    if not symbols:
        st.info("No symbols yet: reel strips use the placeholder set until symbols are added.")


def _step_rtp() -> None:
    allocator = _allocator()
    lo, hi = allocator.policy.base_pct_range

    st.markdown("### Enabled features")
    cols = st.columns(len(FeatureKind))
    for col, kind in zip(cols, FeatureKind):
        with col:
            enabled = st.checkbox(FEATURE_LABELS[kind], value=allocator.slot(kind).enabled, key=f"mm_en_{kind.value}")
            if enabled != allocator.slot(kind).enabled:
                allocator.set_feature_enabled(kind, enabled)

    template = st.selectbox("Apply template", ["(none)"] + list(FEATURE_TEMPLATES), index=0, key="mm_template")
    if template != "(none)" and st.button("Apply"):
        allocator.apply_template(template)
        st.rerun()

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("### Base Game RTP")
        base = st.slider("Base game %", min_value=float(lo), max_value=float(hi), value=float(allocator.base_pct), step=1.0)
        if base != allocator.base_pct:
            allocator.set_base_pct(base)
    with c2:
        st.markdown("### Feature RTP")
        for kind in FeatureKind:
            slot = allocator.slot(kind)
            if not slot.enabled:
                continue
            cap = max(allocator.max_for(kind), slot.pct)
            value = st.slider(FEATURE_LABELS[kind], min_value=0.0, max_value=float(cap) or 0.5, value=float(slot.pct), step=0.5, key=f"mm_pct_{kind.value}")
            if value != slot.pct:
                allocator.set_feature_pct(kind, value)

    status = allocator.budget_status()
    st.markdown("---")
    st.write(f"Available for features: **{status.available:.1f}%**, current total: **{status.enabled_total:.1f}%**")
    if status.state == "over":
        st.error(f"Exceeds available by {status.excess:.1f}%")
    elif status.state == "under":
        st.warning(f"{status.remaining:.1f}% remaining")
    else:
        st.success("Feature RTP fully allocated.")


def _step_reels() -> None:
    policy = load_policy()
    symbols = _symbols()
    strips = _strips()

    st.checkbox("Free-spin reels", value=False, key="mm_fs_mode")
    st.checkbox("Allow free-spin retriggers", value=True, key="mm_fs_retrigger")
    active_symbols = free_spin_symbols(symbols, st.session_state["mm_fs_retrigger"]) if st.session_state["mm_fs_mode"] else symbols

    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Auto Balance"):
            auto_balance(strips, active_symbols, policy=policy, rng=make_rng(policy.seed))
    with c2:
        if st.button("Shuffle Reels"):
            shuffle_strips(strips, policy=policy, rng=make_rng(policy.seed))
    with c3:
        if st.button("Reset"):
            st.session_state.mm_strips = strips = reset_strips(active_symbols, _grid().reel_count, policy=policy, rng=make_rng(policy.seed))

    reel_index = st.selectbox("Reel", list(range(len(strips))), format_func=lambda i: f"Reel {i+1}", key="mm_reel_idx")
    strip = strips[reel_index]
    m = metrics(strip, active_symbols, policy=policy)
    st.caption(f"Positions: {m.total_positions} | hit rate {m.hit_rate:.1f}% | volatility factor {m.volatility_factor:.1f}")
    st.bar_chart(m.symbol_counts)

    ids = [s.id for s in active_symbols] or sorted(m.symbol_counts)
    e1, e2 = st.columns(2)
    with e1:
        target = st.selectbox("Symbol", ids, key="mm_count_sym")
        count = st.number_input("Count on reel", min_value=0, max_value=policy.strip_length, value=m.symbol_counts.get(target, 0), key="mm_count_val")
        if st.button("Set count"):
            update_symbol_count(strip, target, int(count), active_symbols, policy=policy, rng=make_rng(policy.seed))
            st.rerun()
    with e2:
        pos = st.number_input("Position", min_value=0, max_value=max(0, strip.length - 1), value=0, key="mm_pos")
        to = st.number_input("Move to", min_value=0, max_value=max(0, strip.length - 1), value=0, key="mm_pos_to")
        b1, b2, b3, b4 = st.columns(4)
        if b1.button("Replace"):
            replace_at(strip, int(pos), target)
        if b2.button("Insert"):
            insert_at(strip, int(pos), target)
        if b3.button("Remove") and not remove_at(strip, int(pos), policy=policy):
            st.warning(f"Reel is at the minimum length ({policy.min_strip_length}).")
        if b4.button("Move"):
            move_symbol(strip, int(pos), int(to))
    if strip.length != policy.strip_length and st.button(f"Normalize to {policy.strip_length}"):
        normalize_length(strip, active_symbols, policy=policy, rng=make_rng(policy.seed))
        st.rerun()

    sort_by = st.selectbox("Sort", ["position", "symbol", "frequency", "value"], key="mm_sort")
    view = positions_view(strip, active_symbols, st.selectbox("Filter", ["all"] + ids, key="mm_filter"), sort_by)
    st.dataframe([{"position": e.position, "symbol": e.display_name} for e in view])


def _step_paytable() -> None:
    table = _paytable()
    symbols = [s for s in _symbols() if s.role == "regular"]
    st.caption("Pays must not decrease with the match count (3-of-kind <= 4-of-kind <= ...).")
    for s in symbols:
        with st.expander(s.name, expanded=False):
            cols = st.columns(len(table.counts))
            current = table.pays_for(s.id) if s.id in table else {}
            for col, count in zip(cols, table.counts):
                with col:
                    value = st.number_input(f"Pay {count}", min_value=0.0, value=float(current.get(count, 0.0)), key=f"mm_pay_{s.id}_{count}")
                    if value != current.get(count, 0.0):
                        try:
                            table.set_pay(s.id, count, value)
                        except PaytableOrderError as e:
                            st.error(str(e))
    st.download_button("Download paytable JSON", data=json.dumps(table.to_dict(), indent=2), file_name="paytable.json", mime="application/json")


def _step_simulation() -> None:
    symbols = _symbols()
    strips = _strips()
    table = _paytable()
    grid = _grid()
    allocator = _allocator()
    policy = load_policy()

    st.number_input("Bet", min_value=0.0, value=1.0, step=0.5, key="mm_bet")
    if st.button("Spin"):
        try:
            _stops, outcome = spin(strips, grid.row_count, make_rng(policy.seed))
            result = evaluate(outcome, table, float(st.session_state["mm_bet"]), symbols, grid_config=grid, policy=policy)
            st.table([outcome.row(r) for r in range(grid.row_count)])
            st.json(result.to_dict())
        except ValidationError as e:
            st.error(str(e))

    st.number_input("Simulated spins", min_value=100, value=10_000, step=100, key="mm_spins")
    if st.button("Run simulation"):
        bar = st.progress(0.0)
        try:
            report = simulate(
                strips,
                table,
                symbols,
                bet=float(st.session_state["mm_bet"]) or 1.0,
                spins=int(st.session_state["mm_spins"]),
                row_count=grid.row_count,
                target_base_pct=allocator.base_pct,
                keep_records=True,
                policy=policy,
                progress_callback=lambda i, n: bar.progress(i / n),
            )
        except ValidationError as e:
            st.exception(e)
            return
        st.json(report.to_dict())
        st.download_button("Download spins CSV", data=report_to_csv_bytes(report), file_name="spins.csv", mime="text/csv")
        st.caption(f"Allocation: {json.dumps(allocator.split())}")
        st.caption(f"Reel metrics: {[asdict(metrics(s, symbols)) for s in strips]}")

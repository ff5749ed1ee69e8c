"""Invariant checkers for the `distribution` engine.

Each function returns True when the invariant holds. ``check_all()`` returns
the list of violated invariant IDs for a state (empty = all pass).

Checks stay O(1) per step: singleton accounts are checked in full, user
records only for the holder an instruction touched (``check_user``), and
accumulator monotonicity against the pre-state (``check_transition``).
"""

from __future__ import annotations

from typing import Callable

from ..routing import MAX_VENUES
from .math import BPS_SCALE, U64_MAX, U128_MAX
from .types import EngineState, UserInfo


def _u64(v: int) -> bool:
    return 0 <= v <= U64_MAX


def inv_rate_in_range(s: EngineState) -> bool:
    if s.config is None:
        return True
    return 0 <= s.config.tax_rate_bps <= BPS_SCALE


def inv_venue_list_bounded(s: EngineState) -> bool:
    if s.config is None:
        return True
    ids = s.config.venue_ids
    return 1 <= len(ids) <= MAX_VENUES and len(set(ids)) == len(ids)


def inv_total_supply_u64(s: EngineState) -> bool:
    return _u64(s.global_state.total_supply)


def inv_cum_u128(s: EngineState) -> bool:
    return 0 <= s.global_state.cum_reward_per_unit <= U128_MAX


def inv_token_vault_u64(s: EngineState) -> bool:
    return _u64(s.token_vault.balance)


def inv_reward_vault_u64(s: EngineState) -> bool:
    return _u64(s.reward_vault.balance)


def inv_snapshots_within_supply(s: EngineState) -> bool:
    # With zero supply nothing is distributed; the bound is re-established by
    # update_total_supply before distribution can resume.
    gs = s.global_state
    if gs.snapshot_total < 0:
        return False
    return gs.total_supply == 0 or gs.snapshot_total <= gs.total_supply


def inv_uninitialized_zeroed(s: EngineState) -> bool:
    if s.config is not None:
        return True
    gs = s.global_state
    return (
        gs.total_supply == 0
        and gs.cum_reward_per_unit == 0
        and gs.snapshot_total == 0
        and s.token_vault.balance == 0
        and s.reward_vault.balance == 0
        and not s.users
    )


INVARIANT_REGISTRY: dict[str, Callable[[EngineState], bool]] = {
    "inv_rate_in_range": inv_rate_in_range,
    "inv_venue_list_bounded": inv_venue_list_bounded,
    "inv_total_supply_u64": inv_total_supply_u64,
    "inv_cum_u128": inv_cum_u128,
    "inv_token_vault_u64": inv_token_vault_u64,
    "inv_reward_vault_u64": inv_reward_vault_u64,
    "inv_snapshots_within_supply": inv_snapshots_within_supply,
    "inv_uninitialized_zeroed": inv_uninitialized_zeroed,
}


def check_all(state: EngineState) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(state)
    ]


# ---------------------------------------------------------------------------
# Per-record and transition checks
# ---------------------------------------------------------------------------

def check_user(state: EngineState, user: UserInfo) -> list[str]:
    out: list[str] = []
    if user.last_cum > state.global_state.cum_reward_per_unit:
        out.append("inv_last_cum_not_ahead")
    if not _u64(user.snapshot):
        out.append("inv_snapshot_u64")
    if not _u64(user.total_claimed):
        out.append("inv_total_claimed_u64")
    if user.deposit < 0:
        out.append("inv_deposit_nonneg")
    return out


def check_transition(pre: EngineState, post: EngineState) -> list[str]:
    out: list[str] = []
    if post.global_state.cum_reward_per_unit < pre.global_state.cum_reward_per_unit:
        out.append("inv_cum_monotone")
    if pre.config is not None:
        if post.config is None or post.config.owner != pre.config.owner:
            out.append("inv_owner_fixed")
        elif post.config.mint != pre.config.mint or post.config.venue_ids != pre.config.venue_ids:
            out.append("inv_config_identity_fixed")
    return out

"""Guard functions for the `distribution` engine.

One pure function per instruction. Each inspects the PRE-state and returns a
``Rejection`` when the instruction must not run, or ``None`` when it may.
Guards never mutate anything; every validation and authorization failure is
decided here, before an update starts.
"""

from __future__ import annotations

from ..errors import ErrorCode, Rejection
from ..routing import MAX_VENUES
from .math import BPS_SCALE, U64_MAX, compute_tax, owed_rewards
from .types import EngineState, InstructionParams


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _in_u64(v: object, lo: int = 0) -> bool:
    return _is_int(v) and lo <= v <= U64_MAX  # type: ignore[operator]


def _rate_ok(rate: object) -> bool:
    return _is_int(rate) and 0 <= rate <= BPS_SCALE  # type: ignore[operator]


def _require_initialized(state: EngineState) -> Rejection | None:
    if state.config is None:
        return Rejection(ErrorCode.NOT_INITIALIZED)
    return None


def _require_active(state: EngineState) -> Rejection | None:
    rej = _require_initialized(state)
    if rej is not None:
        return rej
    if state.paused:
        return Rejection(ErrorCode.PAUSED)
    return None


def _require_owner(state: EngineState, params: InstructionParams) -> Rejection | None:
    assert state.config is not None
    if not params.signer or params.signer != state.config.owner:
        return Rejection(ErrorCode.UNAUTHORIZED, "signer is not the config owner")
    return None


def _require_holder_signer(params: InstructionParams) -> Rejection | None:
    if not isinstance(params.signer, str) or not params.signer:
        return Rejection(ErrorCode.UNAUTHORIZED, "missing signer")
    return None


def _deposit_due(state: EngineState, holder: str) -> int:
    """Storage deposit charged when ``holder`` has no record yet."""
    assert state.config is not None
    if holder in state.users:
        return 0
    return state.config.account_deposit


def guard_initialize(state: EngineState, params: InstructionParams) -> Rejection | None:
    if state.config is not None:
        return Rejection(ErrorCode.ALREADY_INITIALIZED)
    rej = _require_holder_signer(params)
    if rej is not None:
        return rej
    if not _rate_ok(params.tax_rate_bps):
        return Rejection(ErrorCode.INVALID_RATE, f"tax_rate_bps={params.tax_rate_bps}")
    if not isinstance(params.mint, str) or not params.mint:
        return Rejection(ErrorCode.INVALID_MINT, "mint must be a non-empty id")

    venue_ids = [v.venue_id for v in params.venues]
    if not (1 <= len(venue_ids) <= MAX_VENUES):
        return Rejection(ErrorCode.INVALID_VENUE_LIST, f"expected 1..{MAX_VENUES} venues, got {len(venue_ids)}")
    if len(set(venue_ids)) != len(venue_ids) or not all(venue_ids):
        return Rejection(ErrorCode.INVALID_VENUE_LIST, "venue ids must be unique and non-empty")
    wrong_asset = [v.venue_id for v in params.venues if v.token_in != params.mint]
    if wrong_asset:
        return Rejection(ErrorCode.INVALID_VENUE_LIST, f"venues do not trade {params.mint}: {wrong_asset}")

    if not _in_u64(params.total_supply):
        return Rejection(ErrorCode.INVALID_SUPPLY, f"total_supply={params.total_supply}")
    if not _in_u64(params.account_deposit):
        return Rejection(ErrorCode.INVALID_AMOUNT, f"account_deposit={params.account_deposit}")
    return None


def guard_taxed_operation(state: EngineState, params: InstructionParams) -> Rejection | None:
    rej = _require_active(state) or _require_holder_signer(params)
    if rej is not None:
        return rej
    assert state.config is not None
    if not _in_u64(params.amount_in, lo=1):
        return Rejection(ErrorCode.INVALID_AMOUNT, f"amount_in={params.amount_in}")
    if not _in_u64(params.min_amount_out):
        return Rejection(ErrorCode.INVALID_AMOUNT, f"min_amount_out={params.min_amount_out}")

    wallet = state.wallet(params.signer)
    tax = compute_tax(params.amount_in, state.config.tax_rate_bps)
    if tax > wallet.tokens:
        return Rejection(ErrorCode.INSUFFICIENT_FUNDS, f"tax {tax} > token balance {wallet.tokens}")
    deposit = _deposit_due(state, params.signer)
    if deposit > wallet.currency:
        return Rejection(ErrorCode.INSUFFICIENT_FUNDS, f"account deposit {deposit} > currency {wallet.currency}")
    return None


def guard_claim_rewards(state: EngineState, params: InstructionParams) -> Rejection | None:
    # Records are opened by a taxed operation; a claim never creates one.
    rej = _require_active(state) or _require_holder_signer(params)
    if rej is not None:
        return rej
    if params.signer not in state.users:
        return Rejection(ErrorCode.ACCOUNT_NOT_FOUND, "no user record for signer")
    return None


def guard_update_config(state: EngineState, params: InstructionParams) -> Rejection | None:
    # Config stays writable while paused.
    rej = _require_initialized(state)
    if rej is not None:
        return rej
    rej = _require_owner(state, params)
    if rej is not None:
        return rej
    if not _rate_ok(params.tax_rate_bps):
        return Rejection(ErrorCode.INVALID_RATE, f"tax_rate_bps={params.tax_rate_bps}")
    if not isinstance(params.paused, bool):
        return Rejection(ErrorCode.INVALID_AMOUNT, "paused must be a bool")
    return None


def guard_update_total_supply(state: EngineState, params: InstructionParams) -> Rejection | None:
    rej = _require_initialized(state)
    if rej is not None:
        return rej
    rej = _require_owner(state, params)
    if rej is not None:
        return rej
    if not _in_u64(params.total_supply):
        return Rejection(ErrorCode.INVALID_SUPPLY, f"total_supply={params.total_supply}")
    if params.total_supply < state.global_state.snapshot_total:
        return Rejection(
            ErrorCode.INVALID_SUPPLY,
            f"total_supply {params.total_supply} < tracked snapshots {state.global_state.snapshot_total}",
        )
    return None


def guard_close_user_info(state: EngineState, params: InstructionParams) -> Rejection | None:
    rej = _require_initialized(state) or _require_holder_signer(params)
    if rej is not None:
        return rej
    user = state.users.get(params.signer)
    if user is None:
        return Rejection(ErrorCode.ACCOUNT_NOT_FOUND, "no user record for signer")
    owed = owed_rewards(user.snapshot, state.global_state.cum_reward_per_unit, user.last_cum)
    if owed != 0 or user.snapshot != 0:
        return Rejection(ErrorCode.ACCOUNT_NOT_EMPTY, f"snapshot={user.snapshot} owed={owed}")
    return None

"""Pure arithmetic for the `distribution` engine.

Every function is stateless and operates on plain Python ints. Python ints do
not overflow, so the fixed-width domains of the ledger (u64 amounts, u128
accumulator) are enforced explicitly by the `checked_*` helpers.

Rounding is always floor (`//`). Truncation dust stays in the reward vault.
"""

from __future__ import annotations

from ..errors import ArithmeticOverflowError, InvariantViolationError

# Domain constants
SCALE: int = 1_000_000_000_000_000_000  # 1e18
BPS_SCALE: int = 10_000
U64_MAX: int = 2**64 - 1
U128_MAX: int = 2**128 - 1


# -- Checked integer helpers --------------------------------------------------

def checked_add(a: int, b: int, *, bound: int = U64_MAX, what: str = "add") -> int:
    out = a + b
    if out < 0 or out > bound:
        raise ArithmeticOverflowError(f"{what}: {a} + {b} out of range")
    return out


def checked_sub(a: int, b: int, *, what: str = "sub") -> int:
    out = a - b
    if out < 0:
        raise ArithmeticOverflowError(f"{what}: {a} - {b} underflows")
    return out


def checked_mul(a: int, b: int, *, bound: int = U128_MAX, what: str = "mul") -> int:
    out = a * b
    if out < 0 or out > bound:
        raise ArithmeticOverflowError(f"{what}: {a} * {b} out of range")
    return out


def checked_div(a: int, b: int, *, what: str = "div") -> int:
    if b == 0:
        raise ArithmeticOverflowError(f"{what}: division by zero")
    return a // b


# -- Tax -----------------------------------------------------------------------

def compute_tax(amount_in: int, rate_bps: int) -> int:
    """``floor(amount_in * rate_bps / 10000)``; never exceeds ``amount_in``."""
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative: {amount_in}")
    if not (0 <= rate_bps <= BPS_SCALE):
        raise ValueError(f"rate_bps must be in [0, {BPS_SCALE}]: {rate_bps}")
    product = checked_mul(amount_in, rate_bps, what="tax")
    return product // BPS_SCALE


# -- Accumulator -------------------------------------------------------------

def reward_per_unit_delta(delta: int, total_supply: int) -> int:
    """``floor(delta * SCALE / total_supply)``.

    Callers must skip distribution when ``total_supply == 0``; a zero divisor
    here is reported as an arithmetic failure rather than silently ignored.
    """
    scaled = checked_mul(delta, SCALE, what="delta_cum")
    return checked_div(scaled, total_supply, what="delta_cum")


def advance_accumulator(cum_reward_per_unit: int, delta_cum: int) -> int:
    return checked_add(cum_reward_per_unit, delta_cum, bound=U128_MAX, what="cum_reward_per_unit")


# -- Lazy settlement -------------------------------------------------------------

def owed_rewards(snapshot: int, cum_reward_per_unit: int, last_cum: int) -> int:
    """Reward owed to a holder since their last touch.

    ``snapshot * (cum_reward_per_unit - last_cum) / SCALE``

    The accumulator never decreases, so ``last_cum <= cum_reward_per_unit`` for
    any record the engine wrote. A record ahead of the accumulator is a defect
    and is reported, never clamped to zero.
    """
    if last_cum > cum_reward_per_unit:
        raise InvariantViolationError(
            ["inv_last_cum_not_ahead"],
            detail=f"last_cum {last_cum} > cum_reward_per_unit {cum_reward_per_unit}",
        )
    if snapshot < 0:
        raise InvariantViolationError(["inv_snapshot_nonneg"], detail=f"snapshot {snapshot}")
    growth = cum_reward_per_unit - last_cum
    accrued = checked_mul(snapshot, growth, what="owed")
    owed = accrued // SCALE
    if owed > U64_MAX:
        raise ArithmeticOverflowError(f"owed: {owed} exceeds u64")
    return owed

"""State transition functions for the `distribution` engine.

One pure function per instruction. Each returns ``(new_state, trace)`` where
``trace`` records the amounts the effect builders report.

Semantics:
- updates evaluate against the PRE-state, which is never mutated,
- maps are copied before being changed (copy-on-write),
- checked arithmetic raises ``ArithmeticOverflowError``; a broken invariant
  raises ``InvariantViolationError``; venue exhaustion raises
  ``ExternalCallError``. The engine turns any of these into a rejection, so
  no partial update survives.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from .. import routing
from ..errors import InsufficientVaultError, InvariantViolationError, RewardEngineError
from .math import (
    advance_accumulator,
    checked_add,
    checked_sub,
    compute_tax,
    owed_rewards,
    reward_per_unit_delta,
)
from .types import (
    Config,
    EngineState,
    GlobalState,
    InstructionParams,
    RewardVault,
    StepTrace,
    TokenVault,
    UserInfo,
    Wallet,
)


def apply_initialize(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    config = Config(
        owner=params.signer,
        mint=params.mint,
        tax_rate_bps=params.tax_rate_bps,
        venue_ids=tuple(v.venue_id for v in params.venues),
        paused=False,
        account_deposit=params.account_deposit,
    )
    new_state = replace(
        state,
        config=config,
        global_state=GlobalState(total_supply=params.total_supply),
        token_vault=TokenVault(),
        reward_vault=RewardVault(),
        users={},
        venues={v.venue_id: v for v in params.venues},
    )
    return new_state, StepTrace()


# -- Holder touch --------------------------------------------------------------

def _open_user(state: EngineState, holder: str, wallet: Wallet) -> tuple[UserInfo, Wallet]:
    """Existing record, or a fresh one starting at the current accumulator.

    A fresh record pays the configured storage deposit from the holder's
    currency balance.
    """
    assert state.config is not None
    user = state.users.get(holder)
    if user is not None:
        return user, wallet
    deposit = state.config.account_deposit
    wallet = replace(wallet, currency=checked_sub(wallet.currency, deposit, what="account deposit"))
    user = UserInfo(
        owner=holder,
        last_cum=state.global_state.cum_reward_per_unit,
        snapshot=0,
        deposit=deposit,
    )
    return user, wallet


def _settle(
    user: UserInfo,
    wallet: Wallet,
    global_state: GlobalState,
    reward_balance: int,
    *,
    shortfall: Callable[[str], RewardEngineError],
) -> tuple[UserInfo, Wallet, GlobalState, int, int]:
    """Pay what ``user`` is owed at the current accumulator and re-snapshot.

    Returns ``(user, wallet, global_state, reward_balance, owed)``. The new
    snapshot is the holder's post-operation token balance, capped at the
    supply not already held by other live snapshots. Stale snapshots of holders
    who have not acted since their tokens moved keep their share until they
    are touched again.
    """
    cum = global_state.cum_reward_per_unit
    owed = owed_rewards(user.snapshot, cum, user.last_cum)
    if owed > reward_balance:
        raise shortfall(f"owed {owed} > reward vault {reward_balance}")
    reward_balance -= owed
    wallet = replace(wallet, currency=checked_add(wallet.currency, owed, what="holder currency"))

    others = checked_sub(global_state.snapshot_total, user.snapshot, what="snapshot_total")
    new_snapshot = wallet.tokens
    if global_state.total_supply > 0:
        new_snapshot = min(new_snapshot, max(0, global_state.total_supply - others))
    snapshot_total = checked_add(
        others,
        new_snapshot,
        what="snapshot_total",
    )
    user = replace(
        user,
        last_cum=cum,
        snapshot=new_snapshot,
        total_claimed=checked_add(user.total_claimed, owed, what="total_claimed"),
    )
    return user, wallet, replace(global_state, snapshot_total=snapshot_total), reward_balance, owed


def _solvency_violation(detail: str) -> RewardEngineError:
    return InvariantViolationError(["inv_reward_vault_solvent"], detail=detail)


def _with_holder(state: EngineState, holder: str, user: UserInfo, wallet: Wallet) -> tuple[dict, dict]:
    users = dict(state.users)
    users[holder] = user
    wallets = dict(state.wallets)
    wallets[holder] = wallet
    return users, wallets


# -- Instructions --------------------------------------------------------------

def apply_taxed_operation(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    """Withhold tax, convert the token vault, advance the accumulator, settle the holder.

    The conversion is skipped when ``total_supply == 0`` or the vault is empty
    after withholding. ``min_amount_out`` then has nothing to bound and is not
    enforced: the step is accepted with ``amount_out == 0``.
    """
    assert state.config is not None
    config = state.config
    holder = params.signer

    wallet = state.wallet(holder)
    user, wallet = _open_user(state, holder, wallet)

    # 1. Withhold tax into the token vault.
    tax = compute_tax(params.amount_in, config.tax_rate_bps)
    wallet = replace(wallet, tokens=checked_sub(wallet.tokens, tax, what="holder tokens"))
    token_balance = checked_add(state.token_vault.balance, tax, what="token vault")

    # 2-5. Convert the vault and advance the accumulator (only with positive supply).
    global_state = state.global_state
    reward_balance = state.reward_vault.balance
    venues = state.venues
    amount_out = 0
    reward_delta = 0
    venue_id = None
    failures: tuple[tuple[str, str], ...] = ()
    if global_state.total_supply > 0 and token_balance > 0:
        receipt = routing.attempt(
            venue_ids=config.venue_ids,
            venues=state.venues,
            token_in=config.mint,
            amount_in=token_balance,
            min_amount_out=params.min_amount_out,
        )
        amount_out = receipt.amount_out
        venue_id = receipt.venue_id
        failures = receipt.failures
        reward_delta = reward_per_unit_delta(amount_out, global_state.total_supply)
        global_state = replace(
            global_state,
            cum_reward_per_unit=advance_accumulator(global_state.cum_reward_per_unit, reward_delta),
        )
        reward_balance = checked_add(reward_balance, amount_out, what="reward vault")
        token_balance = 0
        venues = dict(state.venues)
        venues[receipt.venue_id] = receipt.venue_after

    # 6. Settle the initiating holder against the now-current accumulator.
    user, wallet, global_state, reward_balance, paid = _settle(
        user, wallet, global_state, reward_balance, shortfall=_solvency_violation,
    )

    users, wallets = _with_holder(state, holder, user, wallet)
    new_state = replace(
        state,
        global_state=global_state,
        token_vault=TokenVault(balance=token_balance),
        reward_vault=RewardVault(balance=reward_balance),
        users=users,
        wallets=wallets,
        venues=venues,
    )
    trace = StepTrace(
        amount_out=amount_out,
        tax=tax,
        reward_delta=reward_delta,
        amount_paid=paid,
        venue_id=venue_id,
        venue_failures=failures,
    )
    return new_state, trace


def apply_claim_rewards(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    holder = params.signer
    user, wallet, global_state, reward_balance, paid = _settle(
        state.users[holder], state.wallet(holder), state.global_state, state.reward_vault.balance,
        shortfall=InsufficientVaultError,
    )

    users, wallets = _with_holder(state, holder, user, wallet)
    new_state = replace(
        state,
        global_state=global_state,
        reward_vault=RewardVault(balance=reward_balance),
        users=users,
        wallets=wallets,
    )
    return new_state, StepTrace(amount_paid=paid)


def apply_update_config(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    assert state.config is not None
    config = replace(state.config, tax_rate_bps=params.tax_rate_bps, paused=params.paused)
    return replace(state, config=config), StepTrace()


def apply_update_total_supply(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    global_state = replace(state.global_state, total_supply=params.total_supply)
    return replace(state, global_state=global_state), StepTrace()


def apply_close_user_info(state: EngineState, params: InstructionParams) -> tuple[EngineState, StepTrace]:
    holder = params.signer
    user = state.users[holder]
    if user.snapshot != 0:
        raise InvariantViolationError(["inv_closed_record_empty"], detail=f"snapshot={user.snapshot}")

    users = dict(state.users)
    del users[holder]
    wallet = state.wallet(holder)
    wallets = dict(state.wallets)
    wallets[holder] = replace(
        wallet,
        currency=checked_add(wallet.currency, user.deposit, what="reclaimed deposit"),
    )
    return replace(state, users=users, wallets=wallets), StepTrace(rent_reclaimed=user.deposit)

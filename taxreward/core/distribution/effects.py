"""Effect functions for the `distribution` engine.

One pure function per instruction. Each builds the ``Effect`` from the
POST-state plus the amounts recorded in the update's ``StepTrace``.
"""

from __future__ import annotations

from ...state.accounts import AccountKind, derive_address, user_info_address
from .types import Effect, EngineState, Event, InstructionParams, StepTrace


def _common_effects(state: EngineState) -> dict[str, bool | int]:
    return dict(
        paused=state.paused,
        cum_reward_per_unit_after=state.global_state.cum_reward_per_unit,
        token_vault_after=state.token_vault.balance,
        reward_vault_after=state.reward_vault.balance,
    )


def _config_address(state: EngineState) -> str:
    assert state.config is not None
    return derive_address(AccountKind.CONFIG, state.config.mint)


def _user_address(state: EngineState, holder: str) -> str:
    assert state.config is not None
    return user_info_address(state.config.mint, holder)


def effect_initialize(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(event=Event.INITIALIZED, account=_config_address(state), **_common_effects(state))


def effect_taxed_operation(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(
        event=Event.TAXED_OPERATION,
        account=_user_address(state, params.signer),
        amount_out=trace.amount_out,
        tax=trace.tax,
        reward_delta=trace.reward_delta,
        amount_paid=trace.amount_paid,
        venue_id=trace.venue_id,
        venue_failures=trace.venue_failures,
        **_common_effects(state),
    )


def effect_claim_rewards(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(
        event=Event.REWARDS_CLAIMED,
        account=_user_address(state, params.signer),
        amount_paid=trace.amount_paid,
        **_common_effects(state),
    )


def effect_update_config(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(event=Event.CONFIG_UPDATED, account=_config_address(state), **_common_effects(state))


def effect_update_total_supply(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(
        event=Event.TOTAL_SUPPLY_UPDATED,
        account=derive_address(AccountKind.GLOBAL, state.config.mint),  # type: ignore[union-attr]
        **_common_effects(state),
    )


def effect_close_user_info(state: EngineState, params: InstructionParams, trace: StepTrace) -> Effect:
    return Effect(
        event=Event.USER_INFO_CLOSED,
        account=_user_address(state, params.signer),
        rent_reclaimed=trace.rent_reclaimed,
        **_common_effects(state),
    )

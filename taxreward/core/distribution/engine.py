"""Dispatch-table engine for `distribution`.

``step(state, params)`` is the single entry point. It:

1. Runs the instruction's guard on the pre-state (validation, authorization,
   pause gate).
2. Applies the update, producing a new state; checked arithmetic, venue
   exhaustion and broken invariants raise and are converted to rejections.
3. Checks invariants on the post-state (singletons, the touched user record,
   and the pre/post transition).
4. Returns a ``StepResult``; effects are built only after every check passed.

The pre-state is never mutated, so a rejected step leaves nothing behind.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..errors import ErrorCode, Rejection, RewardEngineError, exception_for
from .effects import (
    effect_claim_rewards,
    effect_close_user_info,
    effect_initialize,
    effect_taxed_operation,
    effect_update_config,
    effect_update_total_supply,
)
from .guards import (
    guard_claim_rewards,
    guard_close_user_info,
    guard_initialize,
    guard_taxed_operation,
    guard_update_config,
    guard_update_total_supply,
)
from .invariants import check_all, check_transition, check_user
from .types import Effect, EngineState, Instruction, InstructionParams, StepResult, StepTrace
from .updates import (
    apply_claim_rewards,
    apply_close_user_info,
    apply_initialize,
    apply_taxed_operation,
    apply_update_config,
    apply_update_total_supply,
)

_log = logging.getLogger(__name__)

GuardFn = Callable[[EngineState, InstructionParams], "Rejection | None"]
UpdateFn = Callable[[EngineState, InstructionParams], "tuple[EngineState, StepTrace]"]
EffectFn = Callable[[EngineState, InstructionParams, StepTrace], Effect]

_DISPATCH: dict[Instruction, tuple[GuardFn, UpdateFn, EffectFn]] = {
    Instruction.INITIALIZE: (
        guard_initialize, apply_initialize, effect_initialize,
    ),
    Instruction.TAXED_OPERATION_AND_DISTRIBUTE: (
        guard_taxed_operation, apply_taxed_operation, effect_taxed_operation,
    ),
    Instruction.CLAIM_REWARDS: (
        guard_claim_rewards, apply_claim_rewards, effect_claim_rewards,
    ),
    Instruction.UPDATE_CONFIG: (
        guard_update_config, apply_update_config, effect_update_config,
    ),
    Instruction.UPDATE_TOTAL_SUPPLY: (
        guard_update_total_supply, apply_update_total_supply, effect_update_total_supply,
    ),
    Instruction.CLOSE_USER_INFO: (
        guard_close_user_info, apply_close_user_info, effect_close_user_info,
    ),
}


def _reject(params: InstructionParams, rejection: Rejection) -> StepResult:
    if rejection.code is ErrorCode.INVARIANT_VIOLATION:
        _log.error("invariant violation in %s by %s: %s", params.instruction.value, params.signer, rejection.detail)
    else:
        _log.debug("rejected %s by %s: %s", params.instruction.value, params.signer, rejection)
    return StepResult(accepted=False, rejection=rejection)


def _post_violations(pre: EngineState, post: EngineState, params: InstructionParams) -> list[str]:
    violations = check_all(post) + check_transition(pre, post)
    user = post.users.get(params.signer)
    if user is not None:
        violations += check_user(post, user)
    return violations


def step(state: EngineState, params: InstructionParams) -> StepResult:
    """Execute one instruction against the given state.

    Returns ``StepResult`` with ``accepted=True`` and the new state on success,
    or ``accepted=False`` with a typed ``rejection``.
    """
    entry = _DISPATCH.get(params.instruction)
    if entry is None:
        return StepResult(
            accepted=False,
            rejection=Rejection(ErrorCode.INVALID_INSTRUCTION, f"unknown instruction {params.instruction!r}"),
        )
    guard_fn, update_fn, effect_fn = entry

    try:
        rejection = guard_fn(state, params)
        if rejection is not None:
            return _reject(params, rejection)
        new_state, trace = update_fn(state, params)
    except RewardEngineError as exc:
        return _reject(params, exc.to_rejection())

    violations = _post_violations(state, new_state, params)
    if violations:
        return _reject(params, Rejection(ErrorCode.INVARIANT_VIOLATION, ",".join(violations)))

    effect = effect_fn(new_state, params, trace)
    _log.debug(
        "accepted %s by %s: cum=%d reward_vault=%d",
        params.instruction.value, params.signer,
        new_state.global_state.cum_reward_per_unit, new_state.reward_vault.balance,
    )
    return StepResult(accepted=True, state=new_state, effect=effect)


def step_or_raise(state: EngineState, params: InstructionParams) -> StepResult:
    """Like ``step()`` but raises on rejection instead of returning a result.

    Raises:
        ValidationError: malformed input, missing account, or wrong lifecycle state.
        AuthorizationError: signer is not allowed to run the instruction.
        PausedError: swap/claim while paused.
        ExternalCallError: every venue failed (SwapFailed).
        ArithmeticOverflowError: checked arithmetic left its domain.
        InvariantViolationError: post-state broke an invariant.
        InsufficientVaultError: reward vault cannot cover a claim.
        AccountNotEmptyError: close requested with a live balance or reward.
    """
    result = step(state, params)
    if result.accepted:
        return result
    assert result.rejection is not None
    raise exception_for(result.rejection)

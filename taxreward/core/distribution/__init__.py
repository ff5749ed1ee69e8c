"""`distribution`: pure-Python tax collection and lazy reward distribution engine.

The engine taxes transfers of a managed asset, converts the collected tax into
a reference currency through a fixed-priority list of venues, and distributes
it to holders with a cumulative reward-per-unit accumulator (scale 1e18):

- deterministic, integer-only transitions with checked u64/u128 arithmetic,
- immutable state (frozen dataclasses, copy-on-write maps),
- fail-closed guards and invariant checks; a rejected step changes nothing,
- O(1) work per instruction regardless of the number of holders.

Public API:
- `initial_state() -> EngineState`
- `step(state, params) -> StepResult`
- `step_or_raise(state, params) -> StepResult` (raises on rejection)
"""

from .engine import step, step_or_raise
from .math import SCALE, compute_tax, owed_rewards
from .state import fund_wallet, initial_state, set_venue, state_from_dict, state_to_dict
from .types import (
    Config,
    Effect,
    EngineState,
    Event,
    GlobalState,
    Instruction,
    InstructionParams,
    RewardVault,
    StepResult,
    TokenVault,
    UserInfo,
    Wallet,
)

__all__ = [
    "step",
    "step_or_raise",
    "SCALE",
    "compute_tax",
    "owed_rewards",
    "initial_state",
    "fund_wallet",
    "set_venue",
    "state_from_dict",
    "state_to_dict",
    "Config",
    "Effect",
    "EngineState",
    "Event",
    "GlobalState",
    "Instruction",
    "InstructionParams",
    "RewardVault",
    "StepResult",
    "TokenVault",
    "UserInfo",
    "Wallet",
]

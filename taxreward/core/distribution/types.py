"""Data types for the `distribution` engine.

All types are frozen dataclasses (immutable). Maps inside ``EngineState`` are
never mutated in place: updates copy the map and swap it in, so a pre-state
handed to ``step()`` is always left intact.

Units/conventions:
- token and currency amounts are integer base units (u64 domain),
- ``*_bps`` rates are basis points (1/10_000),
- ``cum_reward_per_unit`` and ``last_cum`` are scaled by 1e18 (u128 domain).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Mapping

from ..errors import Rejection
from ..venues import Venue


@unique
class Instruction(Enum):
    """One member per dispatcher instruction."""
    INITIALIZE = "initialize"
    TAXED_OPERATION_AND_DISTRIBUTE = "taxed_operation_and_distribute"
    CLAIM_REWARDS = "claim_rewards"
    UPDATE_CONFIG = "update_config"
    UPDATE_TOTAL_SUPPLY = "update_total_supply"
    CLOSE_USER_INFO = "close_user_info"


@unique
class Event(Enum):
    INITIALIZED = "Initialized"
    TAXED_OPERATION = "TaxedOperation"
    REWARDS_CLAIMED = "RewardsClaimed"
    CONFIG_UPDATED = "ConfigUpdated"
    TOTAL_SUPPLY_UPDATED = "TotalSupplyUpdated"
    USER_INFO_CLOSED = "UserInfoClosed"


@dataclass(frozen=True)
class Config:
    owner: str
    mint: str
    tax_rate_bps: int
    venue_ids: tuple[str, ...]
    paused: bool = False
    account_deposit: int = 0


@dataclass(frozen=True)
class GlobalState:
    total_supply: int = 0
    cum_reward_per_unit: int = 0
    # Sum of every live UserInfo.snapshot; bounded by total_supply.
    snapshot_total: int = 0


@dataclass(frozen=True)
class TokenVault:
    balance: int = 0


@dataclass(frozen=True)
class RewardVault:
    balance: int = 0


@dataclass(frozen=True)
class UserInfo:
    owner: str
    last_cum: int
    snapshot: int
    total_claimed: int = 0
    deposit: int = 0


@dataclass(frozen=True)
class Wallet:
    """A holder's external balances: managed token and reference currency."""

    tokens: int = 0
    currency: int = 0


@dataclass(frozen=True)
class EngineState:
    """Complete state for one managed asset. ``config is None`` until initialized."""

    config: Config | None = None
    global_state: GlobalState = GlobalState()
    token_vault: TokenVault = TokenVault()
    reward_vault: RewardVault = RewardVault()
    users: Mapping[str, UserInfo] = field(default_factory=dict)
    wallets: Mapping[str, Wallet] = field(default_factory=dict)
    venues: Mapping[str, Venue] = field(default_factory=dict)

    @property
    def initialized(self) -> bool:
        return self.config is not None

    @property
    def paused(self) -> bool:
        return self.config is not None and self.config.paused

    def wallet(self, holder: str) -> Wallet:
        return self.wallets.get(holder, Wallet())


@dataclass(frozen=True)
class InstructionParams:
    """Parameters for an instruction. Unused fields keep their defaults.

    ``signer`` is the identity that authorized the instruction (owner for
    governance, holder for everything else).
    """

    instruction: Instruction
    signer: str
    tax_rate_bps: int = 0         # initialize / update_config (new rate)
    venues: tuple[Venue, ...] = ()  # initialize (priority order)
    mint: str = ""                # initialize
    total_supply: int = 0         # initialize / update_total_supply
    account_deposit: int = 0      # initialize
    amount_in: int = 0            # taxed_operation_and_distribute
    min_amount_out: int = 0       # taxed_operation_and_distribute
    paused: bool = False          # update_config


@dataclass(frozen=True)
class StepTrace:
    """Amounts computed while applying an instruction, consumed by effect builders."""

    amount_out: int = 0
    tax: int = 0
    reward_delta: int = 0
    amount_paid: int = 0
    rent_reclaimed: int = 0
    venue_id: str | None = None
    venue_failures: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class Effect:
    """Post-state observables emitted after a successful step."""

    event: Event
    account: str = ""
    amount_out: int = 0
    tax: int = 0
    reward_delta: int = 0
    amount_paid: int = 0
    rent_reclaimed: int = 0
    venue_id: str | None = None
    venue_failures: tuple[tuple[str, str], ...] = ()
    paused: bool = False
    cum_reward_per_unit_after: int = 0
    token_vault_after: int = 0
    reward_vault_after: int = 0


@dataclass(frozen=True)
class StepResult:
    accepted: bool
    state: EngineState | None = None
    effect: Effect | None = None
    rejection: Rejection | None = None

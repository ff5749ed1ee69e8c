"""Tests for taxreward/core/distribution/engine.py: dispatch table + step function.

Tests cover known instruction sequences end-to-end through the engine.
"""

import logging
from dataclasses import replace

import pytest

from taxreward.core.distribution import (
    EngineState,
    Event,
    Instruction,
    InstructionParams,
    UserInfo,
    fund_wallet,
    initial_state,
    step,
    step_or_raise,
)
from taxreward.core.distribution.math import U128_MAX
from taxreward.core.errors import (
    ErrorCode,
    ExternalCallError,
    InvariantViolationError,
    PausedError,
    ValidationError,
)
from taxreward.core.venues import ConstantProductVenue, FixedPriceVenue
from taxreward.state.accounts import AccountKind, derive_address, user_info_address
from taxreward.state.state_root import compute_state_root

OWNER = "governance"
MINT = "TAX"


def _book(**kwargs) -> FixedPriceVenue:
    # 0.2 currency per token: a 50-token vault converts to 10.
    defaults = dict(venue_id="book", token_in=MINT, price_e8=20_000_000, depth_out=1_000_000)
    defaults.update(kwargs)
    return FixedPriceVenue(**defaults)


def _pool(**kwargs) -> ConstantProductVenue:
    defaults = dict(venue_id="pool", token_in=MINT, reserve_in=1_000_000, reserve_out=1_000_000)
    defaults.update(kwargs)
    return ConstantProductVenue(**defaults)


def _init(*, supply: int = 1_000_000, rate: int = 500, venues=None, deposit: int = 0) -> EngineState:
    r = step(initial_state(), InstructionParams(
        instruction=Instruction.INITIALIZE,
        signer=OWNER,
        tax_rate_bps=rate,
        venues=tuple(venues) if venues is not None else (_book(),),
        mint=MINT,
        total_supply=supply,
        account_deposit=deposit,
    ))
    assert r.accepted, r.rejection
    return r.state


def _fund(state: EngineState, **holders) -> EngineState:
    for holder, amounts in holders.items():
        tokens, currency = amounts if isinstance(amounts, tuple) else (amounts, 0)
        state = fund_wallet(state, holder, tokens=tokens, currency=currency)
    return state


def _trade(holder: str, amount_in: int, min_amount_out: int = 0) -> InstructionParams:
    return InstructionParams(
        instruction=Instruction.TAXED_OPERATION_AND_DISTRIBUTE,
        signer=holder,
        amount_in=amount_in,
        min_amount_out=min_amount_out,
    )


def _claim(holder: str) -> InstructionParams:
    return InstructionParams(instruction=Instruction.CLAIM_REWARDS, signer=holder)


def _close(holder: str) -> InstructionParams:
    return InstructionParams(instruction=Instruction.CLOSE_USER_INFO, signer=holder)


def _config(rate: int = 500, paused: bool = False, signer: str = OWNER) -> InstructionParams:
    return InstructionParams(instruction=Instruction.UPDATE_CONFIG, signer=signer, tax_rate_bps=rate, paused=paused)


def _supply(total: int, signer: str = OWNER) -> InstructionParams:
    return InstructionParams(instruction=Instruction.UPDATE_TOTAL_SUPPLY, signer=signer, total_supply=total)


def _run(state: EngineState, *params: InstructionParams) -> EngineState:
    for p in params:
        r = step(state, p)
        assert r.accepted, r.rejection
        state = r.state
    return state


# ---------------------------------------------------------------------------
# initialize
# ---------------------------------------------------------------------------

class TestInitialize:
    def test_basic(self):
        r = step(initial_state(), InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=500,
            venues=(_pool(), _book()), mint=MINT, total_supply=1_000_000,
        ))
        assert r.accepted
        cfg = r.state.config
        assert cfg.owner == OWNER
        assert cfg.tax_rate_bps == 500
        assert cfg.venue_ids == ("pool", "book")
        assert cfg.paused is False
        assert r.state.global_state.total_supply == 1_000_000
        assert r.state.global_state.cum_reward_per_unit == 0
        assert r.state.token_vault.balance == 0
        assert r.state.reward_vault.balance == 0
        assert set(r.state.venues) == {"pool", "book"}
        assert r.effect.event == Event.INITIALIZED
        assert r.effect.account == derive_address(AccountKind.CONFIG, MINT)

    def test_twice_rejected(self):
        s = _init()
        r = step(s, InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=500, venues=(_book(),), mint=MINT,
        ))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.ALREADY_INITIALIZED

    def test_rate_bounds(self):
        assert _init(rate=10_000).config.tax_rate_bps == 10_000
        r = step(initial_state(), InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=10_001, venues=(_book(),), mint=MINT,
        ))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.INVALID_RATE

    @pytest.mark.parametrize("venues", [
        (),
        (_pool(), _book(), _book(venue_id="third")),
        (_book(), _book()),
        (_book(token_in="OTHER"),),
        (_pool(), _book(token_in="OTHER")),
    ])
    def test_bad_venue_lists(self, venues):
        r = step(initial_state(), InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=500, venues=venues, mint=MINT,
        ))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.INVALID_VENUE_LIST

    def test_missing_mint(self):
        r = step(initial_state(), InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=500, venues=(_book(),),
        ))
        assert r.rejection.code is ErrorCode.INVALID_MINT

    def test_negative_supply(self):
        r = step(initial_state(), InstructionParams(
            instruction=Instruction.INITIALIZE, signer=OWNER, tax_rate_bps=500, venues=(_book(),),
            mint=MINT, total_supply=-1,
        ))
        assert r.rejection.code is ErrorCode.INVALID_SUPPLY

    def test_unknown_instruction(self):
        r = step(_init(), InstructionParams(instruction="mint_more", signer=OWNER))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.INVALID_INSTRUCTION
        assert "mint_more" in r.rejection.detail

    @pytest.mark.parametrize("params", [_trade("alice", 1000), _claim("alice"), _close("alice"), _config(), _supply(5)])
    def test_uninitialized_rejects_everything_else(self, params):
        r = step(initial_state(), params)
        assert not r.accepted
        assert r.rejection.code is ErrorCode.NOT_INITIALIZED


# ---------------------------------------------------------------------------
# taxed_operation_and_distribute
# ---------------------------------------------------------------------------

class TestTaxedOperation:
    def test_reference_scenario(self):
        s = _fund(_init(), alice=600_000)
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        e = r.effect
        assert e.event == Event.TAXED_OPERATION
        assert e.tax == 50
        assert e.amount_out == 10
        assert e.reward_delta == 10**13
        assert e.amount_paid == 0
        assert e.venue_id == "book"
        assert e.venue_failures == ()
        assert e.account == user_info_address(MINT, "alice")

        post = r.state
        assert post.global_state.cum_reward_per_unit == 10**13
        assert post.token_vault.balance == 0
        assert post.reward_vault.balance == 10
        assert post.wallet("alice").tokens == 599_950
        user = post.users["alice"]
        assert user.snapshot == 599_950
        assert user.last_cum == 10**13
        assert post.global_state.snapshot_total == 599_950
        assert post.venues["book"].depth_out == 1_000_000 - 10

    def test_pre_state_untouched(self):
        s = _fund(_init(), alice=600_000)
        root = compute_state_root(s)
        step(s, _trade("alice", 1000))
        assert compute_state_root(s) == root
        assert "alice" not in s.users

    def test_earlier_holder_accrues(self):
        s = _run(_fund(_init(), alice=600_000, bob=400_000), _trade("alice", 1000), _trade("bob", 1000))
        assert s.global_state.cum_reward_per_unit == 2 * 10**13
        assert s.reward_vault.balance == 20
        # bob's record starts at the pre-operation accumulator and snapshot 0
        assert s.users["bob"].snapshot == 399_950

        r = step(s, _claim("alice"))
        assert r.accepted
        assert r.effect.amount_paid == 5  # floor(599_950 * 1e13 / 1e18)
        assert r.state.reward_vault.balance == 15
        assert r.state.wallet("alice").currency == 5
        assert r.state.users["alice"].total_claimed == 5

    def test_skipped_swap_does_not_enforce_min_out(self):
        s = _fund(_init(supply=0), alice=600_000)
        r = step(s, _trade("alice", 1000, min_amount_out=100))
        assert r.accepted
        assert r.effect.amount_out == 0

        s = _fund(_init(), alice=600_000)
        r = step(s, _trade("alice", 19, min_amount_out=100))
        assert r.accepted
        assert r.effect.amount_out == 0

    def test_zero_supply_accumulates_tax(self):
        s = _fund(_init(supply=0), alice=600_000)
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        assert r.effect.amount_out == 0
        assert r.effect.venue_id is None
        assert r.state.token_vault.balance == 50
        assert r.state.global_state.cum_reward_per_unit == 0
        assert r.state.reward_vault.balance == 0

        # once supply is positive the whole vault converts
        s = _run(r.state, _supply(1_000_000))
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        assert r.effect.amount_out == 20
        assert r.effect.reward_delta == 2 * 10**13
        assert r.effect.amount_paid == 11  # floor(599_950 * 2e13 / 1e18)
        assert r.state.token_vault.balance == 0
        assert r.state.reward_vault.balance == 9

    def test_zero_tax_skips_swap(self):
        s = _fund(_init(), alice=600_000)
        r = step(s, _trade("alice", 19))
        assert r.accepted
        assert r.effect.tax == 0
        assert r.effect.amount_out == 0
        assert r.state.global_state.cum_reward_per_unit == 0

    def test_fallback_venue(self):
        s = _fund(_init(venues=(_pool(online=False), _book())), alice=600_000)
        r = step(s, _trade("alice", 1000, min_amount_out=10))
        assert r.accepted
        assert r.effect.venue_id == "book"
        assert r.effect.venue_failures == (("pool", "offline"),)
        # unused primary keeps its market state
        assert r.state.venues["pool"] == s.venues["pool"]

    def test_primary_fills(self):
        s = _fund(_init(venues=(_pool(), _book())), alice=600_000)
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        assert r.effect.venue_id == "pool"
        assert r.effect.amount_out == 48
        assert r.state.venues["pool"].reserve_in == 1_000_050

    def test_all_venues_fail_rolls_back(self):
        s = _fund(_init(venues=(_pool(), _book())), alice=600_000)
        root = compute_state_root(s)
        r = step(s, _trade("alice", 1000, min_amount_out=49))
        assert not r.accepted
        assert r.state is None
        assert r.rejection.code is ErrorCode.SWAP_FAILED
        assert "pool=slippage" in r.rejection.detail
        assert "book=slippage" in r.rejection.detail
        assert compute_state_root(s) == root
        assert s.token_vault.balance == 0
        assert s.wallet("alice").tokens == 600_000

    def test_insufficient_tokens(self):
        s = _fund(_init(), alice=10)
        r = step(s, _trade("alice", 1000))
        assert r.rejection.code is ErrorCode.INSUFFICIENT_FUNDS

    @pytest.mark.parametrize("amount_in,min_out", [(0, 0), (-5, 0), (1000, -1), (2**64, 0)])
    def test_invalid_amounts(self, amount_in, min_out):
        s = _fund(_init(), alice=600_000)
        r = step(s, _trade("alice", amount_in, min_out))
        assert r.rejection.code is ErrorCode.INVALID_AMOUNT

    def test_missing_signer(self):
        r = step(_init(), _trade("", 1000))
        assert r.rejection.code is ErrorCode.UNAUTHORIZED

    def test_account_deposit_charged_once(self):
        s = _init(deposit=2)
        r = step(_fund(s, alice=(600_000, 0)), _trade("alice", 1000))
        assert r.rejection.code is ErrorCode.INSUFFICIENT_FUNDS

        s = _run(_fund(s, alice=(600_000, 5)), _trade("alice", 1000), _claim("alice"))
        assert s.wallet("alice").currency == 3
        assert s.users["alice"].deposit == 2

    def test_accumulator_overflow_aborts(self):
        s = _fund(_init(), alice=600_000)
        s = replace(s, global_state=replace(s.global_state, cum_reward_per_unit=U128_MAX - 1))
        r = step(s, _trade("alice", 1000))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.ARITHMETIC_ERROR

    def test_snapshot_capped_at_supply(self):
        s = _fund(_init(supply=1_000), alice=600_000)
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        assert r.state.users["alice"].snapshot == 1_000
        assert r.state.global_state.snapshot_total == 1_000


class TestStaleSnapshots:
    """Tokens moved outside the engine while the sender's snapshot is still live."""

    def _moved(self):
        s = _run(_fund(_init(), alice=600_000, bob=400_000), _trade("alice", 1000), _trade("bob", 1000))
        # the token program moves 300k from alice to bob; neither record is touched
        return _fund(s, alice=299_950, bob=699_950)

    def test_receiver_claim_succeeds(self):
        s = self._moved()
        r = step(s, _claim("bob"))
        assert r.accepted, r.rejection
        # headroom left by alice's stale 599_950 snapshot
        assert r.state.users["bob"].snapshot == 400_050
        assert r.state.global_state.snapshot_total == 1_000_000

    def test_receiver_trade_succeeds(self):
        r = step(self._moved(), _trade("bob", 1000))
        assert r.accepted, r.rejection
        assert r.state.global_state.snapshot_total <= 1_000_000

    def test_new_holder_gets_remaining_headroom(self):
        s = _fund(self._moved(), carol=10_000)
        s = _run(s, _claim("bob"))
        r = step(s, _trade("carol", 1000))
        assert r.accepted, r.rejection
        assert r.state.users["carol"].snapshot == 0

    def test_sender_touch_frees_headroom(self):
        s = _run(self._moved(), _claim("bob"), _claim("alice"), _claim("bob"))
        assert s.users["alice"].snapshot == 299_950
        assert s.users["bob"].snapshot == 699_950
        assert s.global_state.snapshot_total == 999_900


# ---------------------------------------------------------------------------
# pause / update_config
# ---------------------------------------------------------------------------

class TestPause:
    def test_pause_then_unpause(self):
        s = _run(_fund(_init(), alice=600_000), _config(paused=True))
        assert s.paused
        assert step(s, _trade("alice", 1000)).rejection.code is ErrorCode.PAUSED
        assert step(s, _claim("alice")).rejection.code is ErrorCode.PAUSED

        s = _run(s, _config(paused=False))
        r = step(s, _trade("alice", 1000))
        assert r.accepted
        assert r.effect.tax == 50

    def test_config_writable_while_paused(self):
        s = _run(_init(), _config(paused=True), _config(rate=700, paused=True))
        assert s.config.tax_rate_bps == 700
        assert s.paused

    def test_supply_update_while_paused(self):
        s = _run(_init(), _config(paused=True), _supply(2_000_000))
        assert s.global_state.total_supply == 2_000_000


class TestUpdateConfig:
    def test_new_rate_applies(self):
        s = _run(_fund(_init(), alice=600_000), _config(rate=1000))
        r = step(s, _trade("alice", 1000))
        assert r.effect.tax == 100
        assert r.effect.amount_out == 20

    def test_non_owner(self):
        r = step(_init(), _config(signer="mallory"))
        assert r.rejection.code is ErrorCode.UNAUTHORIZED

    def test_invalid_rate(self):
        r = step(_init(), _config(rate=10_001))
        assert r.rejection.code is ErrorCode.INVALID_RATE

    def test_effect(self):
        r = step(_init(), _config(paused=True))
        assert r.effect.event == Event.CONFIG_UPDATED
        assert r.effect.paused is True


class TestUpdateTotalSupply:
    def test_owner_sets_supply(self):
        r = step(_init(), _supply(5_000_000))
        assert r.accepted
        assert r.state.global_state.total_supply == 5_000_000
        assert r.effect.event == Event.TOTAL_SUPPLY_UPDATED

    def test_non_owner(self):
        assert step(_init(), _supply(5, signer="mallory")).rejection.code is ErrorCode.UNAUTHORIZED

    def test_below_tracked_snapshots(self):
        s = _run(_fund(_init(), alice=600_000), _trade("alice", 1000))
        r = step(s, _supply(599_949))
        assert r.rejection.code is ErrorCode.INVALID_SUPPLY
        assert step(s, _supply(599_950)).accepted


# ---------------------------------------------------------------------------
# claim_rewards
# ---------------------------------------------------------------------------

class TestClaimRewards:
    def test_second_claim_pays_nothing(self):
        s = _run(_fund(_init(), alice=600_000, bob=400_000), _trade("alice", 1000), _trade("bob", 1000))
        first = step(s, _claim("alice"))
        second = step(first.state, _claim("alice"))
        assert first.effect.amount_paid == 5
        assert second.accepted
        assert second.effect.amount_paid == 0
        assert second.state.reward_vault.balance == first.state.reward_vault.balance

    def test_requires_record(self):
        s = _fund(_init(deposit=5), carol=(1_000, 0))
        r = step(s, _claim("carol"))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.ACCOUNT_NOT_FOUND

    def test_claim_after_first_trade(self):
        s = _run(_fund(_init(), carol=1_000), _trade("carol", 19))
        assert s.users["carol"] == UserInfo(owner="carol", last_cum=0, snapshot=1_000)
        r = step(s, _claim("carol"))
        assert r.accepted
        assert r.effect.amount_paid == 0
        assert r.effect.event == Event.REWARDS_CLAIMED

    def test_insufficient_vault(self):
        s = _fund(_init(), alice=500_000)
        s = replace(
            s,
            global_state=replace(s.global_state, cum_reward_per_unit=10**13, snapshot_total=500_000),
            users={"alice": UserInfo(owner="alice", last_cum=0, snapshot=500_000)},
        )
        r = step(s, _claim("alice"))
        assert not r.accepted
        assert r.rejection.code is ErrorCode.INSUFFICIENT_VAULT

    def test_record_ahead_of_accumulator_is_fatal(self, caplog):
        s = replace(_init(), users={"alice": UserInfo(owner="alice", last_cum=10**20, snapshot=0)})
        with caplog.at_level(logging.ERROR, logger="taxreward.core.distribution.engine"):
            r = step(s, _claim("alice"))
        assert r.rejection.code is ErrorCode.INVARIANT_VIOLATION
        assert any("invariant violation" in rec.message for rec in caplog.records)


# ---------------------------------------------------------------------------
# close_user_info
# ---------------------------------------------------------------------------

class TestCloseUserInfo:
    def test_no_record(self):
        assert step(_init(), _close("alice")).rejection.code is ErrorCode.ACCOUNT_NOT_FOUND

    def test_live_snapshot(self):
        s = _run(_fund(_init(), alice=600_000), _trade("alice", 1000))
        assert step(s, _close("alice")).rejection.code is ErrorCode.ACCOUNT_NOT_EMPTY

    def test_empty_record_reclaims_deposit(self):
        s = _run(_fund(_init(deposit=2), dave=(0, 5)), _trade("dave", 19))
        assert s.wallet("dave").currency == 3
        r = step(s, _close("dave"))
        assert r.accepted
        assert r.effect.rent_reclaimed == 2
        assert r.effect.event == Event.USER_INFO_CLOSED
        assert "dave" not in r.state.users
        assert r.state.wallet("dave").currency == 5

    def test_allowed_while_paused(self):
        s = _run(_fund(_init(), dave=0), _trade("dave", 19), _config(paused=True))
        assert step(s, _close("dave")).accepted


# ---------------------------------------------------------------------------
# step_or_raise
# ---------------------------------------------------------------------------

class TestStepOrRaise:
    def test_accepted_returns_result(self):
        r = step_or_raise(_fund(_init(), alice=600_000), _trade("alice", 1000))
        assert r.accepted

    def test_paused(self):
        s = _run(_init(), _config(paused=True))
        with pytest.raises(PausedError):
            step_or_raise(s, _claim("alice"))

    def test_swap_failed(self):
        s = _fund(_init(venues=(_book(online=False),)), alice=600_000)
        with pytest.raises(ExternalCallError) as exc_info:
            step_or_raise(s, _trade("alice", 1000))
        assert "book=offline" in str(exc_info.value)

    def test_validation(self):
        with pytest.raises(ValidationError) as exc_info:
            step_or_raise(initial_state(), _claim("alice"))
        assert exc_info.value.code is ErrorCode.NOT_INITIALIZED

    def test_invariant(self):
        s = replace(_init(), users={"alice": UserInfo(owner="alice", last_cum=10**20, snapshot=0)})
        with pytest.raises(InvariantViolationError) as exc_info:
            step_or_raise(s, _claim("alice"))
        assert exc_info.value.violations[0].startswith("inv_last_cum_not_ahead")

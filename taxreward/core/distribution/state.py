"""State construction and serialization for `distribution`.

`initial_state()` returns the uninitialized engine (no config, zeroed
accounts). The `fund_wallet` / `set_venue` helpers are the hooks the
surrounding ledger uses for accounts the engine does not own: holder token
and currency balances, and external venue liquidity.

Round-trip property (tested): `state_from_dict(state_to_dict(s)) == s`.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from ..venues import Venue, venue_from_dict, venue_to_dict
from .math import U64_MAX
from .types import Config, EngineState, GlobalState, RewardVault, TokenVault, UserInfo, Wallet


def initial_state() -> EngineState:
    return EngineState()


def fund_wallet(state: EngineState, holder: str, *, tokens: int = 0, currency: int = 0) -> EngineState:
    """Set a holder's external balances (token program / system transfer stand-in)."""
    if not holder:
        raise ValueError("holder must be non-empty")
    for name, v in (("tokens", tokens), ("currency", currency)):
        if not isinstance(v, int) or isinstance(v, bool) or not (0 <= v <= U64_MAX):
            raise ValueError(f"{name} must be a u64 int, got {v!r}")
    wallets = dict(state.wallets)
    wallets[holder] = Wallet(tokens=tokens, currency=currency)
    return replace(state, wallets=wallets)


def set_venue(state: EngineState, venue: Venue) -> EngineState:
    """Replace the observed market state of a venue (external price/liquidity moves)."""
    venues = dict(state.venues)
    venues[venue.venue_id] = venue
    return replace(state, venues=venues)


def state_to_dict(state: EngineState) -> dict[str, Any]:
    """Serialize to plain JSON-compatible types (ints, strs, bools, lists, dicts)."""
    cfg = state.config
    return {
        "config": None if cfg is None else {
            "owner": cfg.owner,
            "mint": cfg.mint,
            "tax_rate_bps": cfg.tax_rate_bps,
            "venue_ids": list(cfg.venue_ids),
            "paused": cfg.paused,
            "account_deposit": cfg.account_deposit,
        },
        "global_state": {
            "total_supply": state.global_state.total_supply,
            "cum_reward_per_unit": state.global_state.cum_reward_per_unit,
            "snapshot_total": state.global_state.snapshot_total,
        },
        "token_vault": state.token_vault.balance,
        "reward_vault": state.reward_vault.balance,
        "users": {
            holder: {
                "owner": u.owner,
                "last_cum": u.last_cum,
                "snapshot": u.snapshot,
                "total_claimed": u.total_claimed,
                "deposit": u.deposit,
            }
            for holder, u in sorted(state.users.items())
        },
        "wallets": {
            holder: {"tokens": w.tokens, "currency": w.currency}
            for holder, w in sorted(state.wallets.items())
        },
        "venues": [venue_to_dict(v) for _, v in sorted(state.venues.items())],
    }


def state_from_dict(d: Mapping[str, Any]) -> EngineState:
    """Deserialize a dict produced by ``state_to_dict``. Raises KeyError on missing fields."""
    cfg_d = d["config"]
    config = None
    if cfg_d is not None:
        config = Config(
            owner=cfg_d["owner"],
            mint=cfg_d["mint"],
            tax_rate_bps=int(cfg_d["tax_rate_bps"]),
            venue_ids=tuple(cfg_d["venue_ids"]),
            paused=bool(cfg_d["paused"]),
            account_deposit=int(cfg_d["account_deposit"]),
        )
    gs = d["global_state"]
    venues = [venue_from_dict(v) for v in d["venues"]]
    return EngineState(
        config=config,
        global_state=GlobalState(
            total_supply=int(gs["total_supply"]),
            cum_reward_per_unit=int(gs["cum_reward_per_unit"]),
            snapshot_total=int(gs["snapshot_total"]),
        ),
        token_vault=TokenVault(balance=int(d["token_vault"])),
        reward_vault=RewardVault(balance=int(d["reward_vault"])),
        users={holder: UserInfo(**u) for holder, u in d["users"].items()},
        wallets={holder: Wallet(**w) for holder, w in d["wallets"].items()},
        venues={v.venue_id: v for v in venues},
    )

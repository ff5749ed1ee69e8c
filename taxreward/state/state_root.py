"""
Deterministic state root hashing (v1).

This is intended for:
- audit of committed states (stable hashes for the same logical state),
- proving rollback: a rejected instruction must leave the root unchanged.

Encoding: domain separator, then sections in fixed order. Maps are sorted by
key; every string is length-prefixed and every integer is an unsigned varint.
"""

from __future__ import annotations

from ..core.distribution.types import EngineState
from ..core.venues import venue_to_dict
from .canonical import domain_sep_bytes, encode_bool, encode_str, encode_uvarint, sha256_hex


STATE_ROOT_VERSION = 1


def _encode_config(state: EngineState) -> bytes:
    cfg = state.config
    if cfg is None:
        return b"\x00"
    out = bytearray(b"\x01")
    out += encode_str(cfg.owner)
    out += encode_str(cfg.mint)
    out += encode_uvarint(cfg.tax_rate_bps)
    out += encode_uvarint(len(cfg.venue_ids))
    for vid in cfg.venue_ids:
        out += encode_str(vid)
    out += encode_bool(cfg.paused)
    out += encode_uvarint(cfg.account_deposit)
    return bytes(out)


def _encode_accounting(state: EngineState) -> bytes:
    gs = state.global_state
    return (
        encode_uvarint(gs.total_supply)
        + encode_uvarint(gs.cum_reward_per_unit)
        + encode_uvarint(gs.snapshot_total)
        + encode_uvarint(state.token_vault.balance)
        + encode_uvarint(state.reward_vault.balance)
    )


def _encode_users(state: EngineState) -> bytes:
    out = bytearray(encode_uvarint(len(state.users)))
    for holder in sorted(state.users):
        u = state.users[holder]
        if u.owner != holder:
            raise ValueError(f"user record owner mismatch: key={holder} owner={u.owner}")
        out += encode_str(holder)
        out += encode_uvarint(u.last_cum)
        out += encode_uvarint(u.snapshot)
        out += encode_uvarint(u.total_claimed)
        out += encode_uvarint(u.deposit)
    return bytes(out)


def _encode_wallets(state: EngineState) -> bytes:
    out = bytearray(encode_uvarint(len(state.wallets)))
    for holder in sorted(state.wallets):
        w = state.wallets[holder]
        out += encode_str(holder)
        out += encode_uvarint(w.tokens)
        out += encode_uvarint(w.currency)
    return bytes(out)


def _encode_venues(state: EngineState) -> bytes:
    out = bytearray(encode_uvarint(len(state.venues)))
    for venue_id in sorted(state.venues):
        fields = venue_to_dict(state.venues[venue_id])
        out += encode_uvarint(len(fields))
        for name in sorted(fields):
            value = fields[name]
            out += encode_str(name)
            if isinstance(value, bool):
                out += b"b" + encode_bool(value)
            elif isinstance(value, int):
                out += b"i" + encode_uvarint(value)
            else:
                out += b"s" + encode_str(str(value))
    return bytes(out)


def encode_state(state: EngineState) -> bytes:
    return (
        domain_sep_bytes("engine_state", version=STATE_ROOT_VERSION)
        + _encode_config(state)
        + _encode_accounting(state)
        + _encode_users(state)
        + _encode_wallets(state)
        + _encode_venues(state)
    )


def compute_state_root(state: EngineState) -> str:
    """sha256 commitment (0x-hex) of the complete engine state."""
    return sha256_hex(encode_state(state))

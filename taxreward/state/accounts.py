"""
Deterministic account addresses.

Every singleton account of a managed asset (config, global state, token vault,
reward vault) and every per-holder record has a stable address:

    sha256(domain_sep("taxreward_account", v1) || enc(label) || enc(mint) [|| enc(holder)])

Addresses depend only on their seeds, so two engines managing different mints
never share an account.
"""

from __future__ import annotations

import hashlib
from enum import Enum, unique

from .canonical import domain_sep_bytes, encode_str


ACCOUNT_ADDRESS_VERSION = 1


@unique
class AccountKind(Enum):
    CONFIG = "config"
    GLOBAL = "global"
    TOKEN_VAULT = "token_vault"
    REWARD_VAULT = "reward_vault"
    USER = "user"


def derive_address(kind: AccountKind, mint: str, holder: str | None = None) -> str:
    if not mint:
        raise ValueError("mint must be non-empty")
    if kind is AccountKind.USER:
        if not holder:
            raise ValueError("user accounts require a holder")
    elif holder is not None:
        raise ValueError(f"{kind.value} accounts are not per-holder")

    data = bytearray(domain_sep_bytes("taxreward_account", version=ACCOUNT_ADDRESS_VERSION))
    data += encode_str(kind.value)
    data += encode_str(mint)
    if holder is not None:
        data += encode_str(holder)
    return "0x" + hashlib.sha256(bytes(data)).hexdigest()


def user_info_address(mint: str, holder: str) -> str:
    return derive_address(AccountKind.USER, mint, holder)


def singleton_addresses(mint: str) -> dict[str, str]:
    return {
        kind.value: derive_address(kind, mint)
        for kind in AccountKind
        if kind is not AccountKind.USER
    }

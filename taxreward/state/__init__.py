"""
Account addressing and canonical encoding for the tax/reward engine.

`state_root` is imported directly (``from taxreward.state.state_root import ...``)
because it depends on the engine types.
"""

from .accounts import AccountKind, derive_address, singleton_addresses, user_info_address
from .canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex

__all__ = [
    "AccountKind",
    "derive_address",
    "singleton_addresses",
    "user_info_address",
    "canonical_json_bytes",
    "domain_sep_bytes",
    "sha256_hex",
]

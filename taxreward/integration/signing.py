"""
Signed instruction envelopes (BLS12-381, py_ecc ``G2Basic``).

Signing spec:

    msg = sha256( domain_sep(f"taxreward_ix_sig:{chain_id}", v1) || canonical_json(payload) )

where ``payload`` is the instruction with its ``signer`` set to the 48-byte
public key (0x-hex). Verification returns the authenticated
``InstructionParams``; the engine then authorizes on ``params.signer``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from typing import Any

from py_ecc.bls import G2Basic

from ..core.distribution.types import InstructionParams
from ..core.errors import AuthorizationError
from ..core.venues import venue_to_dict
from ..state.canonical import canonical_json_bytes, domain_sep_bytes

PUBKEY_BYTES = 48
SIGNATURE_BYTES = 96


@dataclass(frozen=True)
class SignedInstruction:
    params: InstructionParams
    signature: str


def instruction_payload(params: InstructionParams) -> dict[str, Any]:
    """Canonical dict for ``params`` (JSON-safe; no floats)."""
    return {
        "instruction": params.instruction.value,
        "signer": params.signer,
        "tax_rate_bps": params.tax_rate_bps,
        "venues": [venue_to_dict(v) for v in params.venues],
        "mint": params.mint,
        "total_supply": params.total_supply,
        "account_deposit": params.account_deposit,
        "amount_in": params.amount_in,
        "min_amount_out": params.min_amount_out,
        "paused": params.paused,
    }


def signing_message(params: InstructionParams, *, chain_id: str) -> bytes:
    payload = canonical_json_bytes(instruction_payload(params))
    return hashlib.sha256(domain_sep_bytes(f"taxreward_ix_sig:{chain_id}", version=1) + payload).digest()


def pubkey_hex(secret_key: int) -> str:
    return "0x" + G2Basic.SkToPk(secret_key).hex()


def sign_instruction(params: InstructionParams, secret_key: int, *, chain_id: str) -> SignedInstruction:
    """Bind ``params`` to the key's public identity and sign it."""
    bound = replace(params, signer=pubkey_hex(secret_key))
    sig = G2Basic.Sign(secret_key, signing_message(bound, chain_id=chain_id))
    return SignedInstruction(params=bound, signature="0x" + sig.hex())


def _hex_bytes(value: str, *, name: str, nbytes: int) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x") or len(value) != 2 + 2 * nbytes:
        raise AuthorizationError(f"{name} must be a 0x-prefixed {nbytes}-byte hex string")
    try:
        return bytes.fromhex(value[2:])
    except ValueError as exc:
        raise AuthorizationError(f"{name} must be valid hex") from exc


def verify_instruction(envelope: SignedInstruction, *, chain_id: str) -> InstructionParams:
    """Return the authenticated params, or raise ``AuthorizationError``."""
    pk = _hex_bytes(envelope.params.signer, name="signer", nbytes=PUBKEY_BYTES)
    sig = _hex_bytes(envelope.signature, name="signature", nbytes=SIGNATURE_BYTES)
    msg = signing_message(envelope.params, chain_id=chain_id)
    try:
        ok = bool(G2Basic.Verify(pk, msg, sig))
    except (ValueError, AssertionError) as exc:
        raise AuthorizationError(f"signature verification error: {exc}") from exc
    if not ok:
        raise AuthorizationError("invalid instruction signature")
    return envelope.params

"""
Deployment configuration loading (YAML).

A deployment document describes one managed asset:

    mint: "0x..."
    owner: "0x..."           # identity that will sign initialize / governance
    tax_rate_bps: 500
    total_supply: 1000000
    account_deposit: 0
    venues:                  # priority order: primary first, then fallback
      - kind: constant_product
        venue_id: primary-pool
        token_in: "0x..."
        reserve_in: 1000000
        reserve_out: 500000
        fee_bps: 30
      - kind: fixed_price
        venue_id: fallback-book
        token_in: "0x..."
        price_e8: 50000000
        depth_out: 100000

The loader validates types only; range checks (rate, venue count) belong to the
engine's ``initialize`` guard so that a file and a hand-built instruction are
rejected the same way.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..core.distribution.types import Instruction, InstructionParams
from ..core.venues import Venue, venue_from_dict


DEFAULT_CHAIN_ID = "taxreward-local"


@dataclass(frozen=True)
class Deployment:
    owner: str
    mint: str
    tax_rate_bps: int
    venues: tuple[Venue, ...]
    total_supply: int = 0
    account_deposit: int = 0

    def initialize_params(self) -> InstructionParams:
        return InstructionParams(
            instruction=Instruction.INITIALIZE,
            signer=self.owner,
            tax_rate_bps=self.tax_rate_bps,
            venues=self.venues,
            mint=self.mint,
            total_supply=self.total_supply,
            account_deposit=self.account_deposit,
        )


def _require_int(obj: Mapping[str, Any], name: str, default: int | None = None) -> int:
    v = obj.get(name, default)
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be an int, got {type(v).__name__}")
    return v


def _require_str(obj: Mapping[str, Any], name: str) -> str:
    v = obj.get(name)
    if not isinstance(v, str) or not v.strip():
        raise TypeError(f"{name} must be a non-empty string")
    return v.strip()


def parse_deployment(obj: Any) -> Deployment:
    if not isinstance(obj, Mapping):
        raise TypeError("deployment config must be a mapping")
    raw_venues = obj.get("venues")
    if not isinstance(raw_venues, list):
        raise TypeError("venues must be a list")
    return Deployment(
        owner=_require_str(obj, "owner"),
        mint=_require_str(obj, "mint"),
        tax_rate_bps=_require_int(obj, "tax_rate_bps"),
        venues=tuple(venue_from_dict(v) for v in raw_venues),
        total_supply=_require_int(obj, "total_supply", 0),
        account_deposit=_require_int(obj, "account_deposit", 0),
    )


def load_deployment(path: str | Path) -> Deployment:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return parse_deployment(obj)


def chain_id_from_env() -> str:
    raw = os.environ.get("TAXREWARD_CHAIN_ID")
    if raw is None:
        return DEFAULT_CHAIN_ID
    v = raw.strip()
    return v if v else DEFAULT_CHAIN_ID

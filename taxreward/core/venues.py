"""
External swap venues (closed set of tagged variants).

Each venue is a frozen dataclass exposing one capability:

    attempt(token_in, amount_in, min_amount_out) -> VenueFill

A fill carries the venue's post-fill state; the caller decides whether to keep
it. Failures raise ``VenueError`` with a short reason code:
- ``offline``: the external call failed,
- ``quote_unavailable``: wrong asset, empty liquidity, or a zero quote,
- ``slippage``: the quote is below ``min_amount_out``.

Quotes are deterministic, integer-only, and round against the trader.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Any, ClassVar, Mapping, Union


BPS_SCALE = 10_000
PRICE_SCALE = 100_000_000  # 1e8


@unique
class VenueKind(Enum):
    CONSTANT_PRODUCT = "constant_product"
    FIXED_PRICE = "fixed_price"


class VenueError(Exception):
    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        super().__init__(f"{reason}: {detail}" if detail else reason)


@dataclass(frozen=True)
class VenueFill:
    amount_out: int
    venue: "Venue"


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def _require_amount(name: str, v: int) -> None:
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be an int")
    if v < 0:
        raise ValueError(f"{name} must be non-negative: {v}")


@dataclass(frozen=True)
class ConstantProductVenue:
    """x*y=k pool holding the taxed token (in) against the reference currency (out)."""

    kind: ClassVar[VenueKind] = VenueKind.CONSTANT_PRODUCT

    venue_id: str
    token_in: str
    reserve_in: int
    reserve_out: int
    fee_bps: int = 30
    online: bool = True

    def __post_init__(self) -> None:
        _require_amount("reserve_in", self.reserve_in)
        _require_amount("reserve_out", self.reserve_out)
        if not (0 <= self.fee_bps < BPS_SCALE):
            raise ValueError(f"fee_bps must be in [0, {BPS_SCALE}): {self.fee_bps}")

    def quote(self, amount_in: int) -> int:
        # fee = ceil(in * fee_bps / 10_000); out = floor(R_out * net / (R_in + net))
        fee = _ceil_div(amount_in * self.fee_bps, BPS_SCALE)
        net_in = amount_in - fee
        if net_in <= 0 or self.reserve_in == 0 or self.reserve_out == 0:
            return 0
        return (self.reserve_out * net_in) // (self.reserve_in + net_in)

    def attempt(self, token_in: str, amount_in: int, min_amount_out: int) -> VenueFill:
        if not self.online:
            raise VenueError("offline", self.venue_id)
        if token_in != self.token_in:
            raise VenueError("quote_unavailable", f"{self.venue_id} does not trade {token_in}")
        amount_out = self.quote(amount_in)
        if amount_out <= 0:
            raise VenueError("quote_unavailable", f"{self.venue_id} quoted zero")
        if amount_out < min_amount_out:
            raise VenueError("slippage", f"{amount_out} < {min_amount_out}")
        after = replace(
            self,
            reserve_in=self.reserve_in + amount_in,
            reserve_out=self.reserve_out - amount_out,
        )
        return VenueFill(amount_out=amount_out, venue=after)


@dataclass(frozen=True)
class FixedPriceVenue:
    """Order-book style venue quoting a fixed price up to a depth of reference currency."""

    kind: ClassVar[VenueKind] = VenueKind.FIXED_PRICE

    venue_id: str
    token_in: str
    price_e8: int
    depth_out: int
    fee_bps: int = 0
    online: bool = True

    def __post_init__(self) -> None:
        _require_amount("price_e8", self.price_e8)
        _require_amount("depth_out", self.depth_out)
        if not (0 <= self.fee_bps < BPS_SCALE):
            raise ValueError(f"fee_bps must be in [0, {BPS_SCALE}): {self.fee_bps}")

    def quote(self, amount_in: int) -> int:
        gross = (amount_in * self.price_e8) // PRICE_SCALE
        return gross - _ceil_div(gross * self.fee_bps, BPS_SCALE)

    def attempt(self, token_in: str, amount_in: int, min_amount_out: int) -> VenueFill:
        if not self.online:
            raise VenueError("offline", self.venue_id)
        if token_in != self.token_in:
            raise VenueError("quote_unavailable", f"{self.venue_id} does not trade {token_in}")
        amount_out = self.quote(amount_in)
        if amount_out <= 0:
            raise VenueError("quote_unavailable", f"{self.venue_id} quoted zero")
        if amount_out > self.depth_out:
            raise VenueError("quote_unavailable", f"{self.venue_id} depth {self.depth_out} < {amount_out}")
        if amount_out < min_amount_out:
            raise VenueError("slippage", f"{amount_out} < {min_amount_out}")
        return VenueFill(amount_out=amount_out, venue=replace(self, depth_out=self.depth_out - amount_out))


Venue = Union[ConstantProductVenue, FixedPriceVenue]

_VENUE_CLASSES: dict[VenueKind, type] = {
    VenueKind.CONSTANT_PRODUCT: ConstantProductVenue,
    VenueKind.FIXED_PRICE: FixedPriceVenue,
}


def venue_from_dict(d: Mapping[str, Any]) -> Venue:
    """Build a venue from a mapping with a ``kind`` tag. Raises on unknown kinds/fields."""
    if not isinstance(d, Mapping):
        raise TypeError("venue must be a mapping")
    try:
        kind = VenueKind(d.get("kind"))
    except ValueError as exc:
        raise ValueError(f"unknown venue kind: {d.get('kind')!r}") from exc
    cls = _VENUE_CLASSES[kind]
    kwargs = {k: v for k, v in d.items() if k != "kind"}
    allowed = set(cls.__dataclass_fields__) - {"kind"}
    unknown = set(kwargs) - allowed
    if unknown:
        raise ValueError(f"unknown fields for {kind.value} venue: {sorted(unknown)}")
    return cls(**kwargs)


def venue_to_dict(venue: Venue) -> dict[str, Any]:
    out: dict[str, Any] = {"kind": venue.kind.value}
    for name in venue.__dataclass_fields__:
        if name == "kind":
            continue
        out[name] = getattr(venue, name)
    return out

"""Tests for taxreward/core/venues.py: quotes, failures and the kind-tagged codec."""

import pytest

from taxreward.core.venues import (
    ConstantProductVenue,
    FixedPriceVenue,
    VenueError,
    VenueKind,
    venue_from_dict,
    venue_to_dict,
)


def _pool(**kwargs):
    d = dict(venue_id="pool", token_in="TAX", reserve_in=1_000_000, reserve_out=1_000_000)
    d.update(kwargs)
    return ConstantProductVenue(**d)


def _book(**kwargs):
    d = dict(venue_id="book", token_in="TAX", price_e8=20_000_000, depth_out=100)
    d.update(kwargs)
    return FixedPriceVenue(**d)


class TestConstantProduct:
    def test_quote_rounds_against_trader(self):
        # fee = ceil(50 * 30 / 10_000) = 1; out = floor(1e6 * 49 / 1_000_049)
        assert _pool().quote(50) == 48

    def test_zero_fee(self):
        assert _pool(fee_bps=0).quote(1_000_000) == 500_000

    def test_fill_moves_reserves(self):
        fill = _pool().attempt("TAX", 50, 48)
        assert fill.amount_out == 48
        assert fill.venue.reserve_in == 1_000_050
        assert fill.venue.reserve_out == 999_952

    def test_offline(self):
        with pytest.raises(VenueError) as exc_info:
            _pool(online=False).attempt("TAX", 50, 0)
        assert exc_info.value.reason == "offline"

    def test_wrong_token(self):
        with pytest.raises(VenueError) as exc_info:
            _pool().attempt("OTHER", 50, 0)
        assert exc_info.value.reason == "quote_unavailable"

    def test_zero_quote(self):
        with pytest.raises(VenueError) as exc_info:
            _pool().attempt("TAX", 1, 0)
        assert exc_info.value.reason == "quote_unavailable"

    def test_slippage(self):
        with pytest.raises(VenueError) as exc_info:
            _pool().attempt("TAX", 50, 49)
        assert exc_info.value.reason == "slippage"

    def test_invalid_fields(self):
        with pytest.raises(ValueError):
            _pool(reserve_in=-1)
        with pytest.raises(ValueError):
            _pool(fee_bps=10_000)


class TestFixedPrice:
    def test_quote(self):
        assert _book().quote(50) == 10
        assert _book(fee_bps=1_000).quote(50) == 9

    def test_fill_consumes_depth(self):
        fill = _book().attempt("TAX", 50, 10)
        assert fill.amount_out == 10
        assert fill.venue.depth_out == 90

    def test_depth_exhausted(self):
        with pytest.raises(VenueError) as exc_info:
            _book(depth_out=5).attempt("TAX", 50, 0)
        assert exc_info.value.reason == "quote_unavailable"

    def test_slippage(self):
        with pytest.raises(VenueError) as exc_info:
            _book().attempt("TAX", 50, 11)
        assert exc_info.value.reason == "slippage"


class TestCodec:
    def test_to_dict(self):
        assert venue_to_dict(_book()) == {
            "kind": "fixed_price",
            "venue_id": "book",
            "token_in": "TAX",
            "price_e8": 20_000_000,
            "depth_out": 100,
            "fee_bps": 0,
            "online": True,
        }

    def test_from_dict(self):
        v = venue_from_dict({
            "kind": "constant_product", "venue_id": "p", "token_in": "TAX", "reserve_in": 5, "reserve_out": 7,
        })
        assert v == ConstantProductVenue(venue_id="p", token_in="TAX", reserve_in=5, reserve_out=7)
        assert v.kind is VenueKind.CONSTANT_PRODUCT

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            venue_from_dict({"kind": "rfq", "venue_id": "x"})

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            venue_from_dict({"kind": "fixed_price", "venue_id": "b", "token_in": "T", "price_e8": 1,
                             "depth_out": 1, "slippage": 3})

    def test_not_a_mapping(self):
        with pytest.raises(TypeError):
            venue_from_dict(["fixed_price"])

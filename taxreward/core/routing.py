"""
Fallback swap routing for collected tax tokens.

Venues are tried in the fixed priority order given by the config (primary,
then fallback). The first venue that fills at or above ``min_amount_out`` wins;
the same ``min_amount_out`` is re-used for every attempt. When every venue
fails the router raises ``ExternalCallError`` (SwapFailed) and nothing is
persisted by the caller.

The router performs no retries beyond the configured list and never computes
``min_amount_out`` itself; slippage tolerance belongs to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from .errors import ExternalCallError
from .venues import Venue, VenueError

_log = logging.getLogger(__name__)

MAX_VENUES = 2


@dataclass(frozen=True)
class SwapReceipt:
    venue_id: str
    amount_in: int
    amount_out: int
    venue_after: Venue
    failures: tuple[tuple[str, str], ...] = ()


def attempt(
    *,
    venue_ids: Sequence[str],
    venues: Mapping[str, Venue],
    token_in: str,
    amount_in: int,
    min_amount_out: int,
) -> SwapReceipt:
    """Convert ``amount_in`` of ``token_in`` using the first venue that fills.

    Raises:
        ExternalCallError: every venue was offline, had no quote, or breached slippage.
    """
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {amount_in}")
    if min_amount_out < 0:
        raise ValueError(f"min_amount_out must be non-negative: {min_amount_out}")

    failures: list[tuple[str, str]] = []
    for venue_id in venue_ids:
        venue = venues.get(venue_id)
        if venue is None:
            failures.append((venue_id, "quote_unavailable"))
            _log.warning("venue %s has no market state; falling back", venue_id)
            continue
        try:
            fill = venue.attempt(token_in, amount_in, min_amount_out)
        except VenueError as exc:
            failures.append((venue_id, exc.reason))
            _log.warning("venue %s failed (%s); falling back", venue_id, exc)
            continue
        return SwapReceipt(
            venue_id=venue_id,
            amount_in=amount_in,
            amount_out=fill.amount_out,
            venue_after=fill.venue,
            failures=tuple(failures),
        )

    raise ExternalCallError(failures)

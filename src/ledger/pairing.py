"""Greedy pairing of broker deal rows into entry/exit pairs.

The backtester's ledger lists deals in id order with each opening deal
immediately followed by its closing deal. Pairing relies on that: it does not
handle hedging-mode ledgers where two positions on one symbol interleave.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.ledger.models import DealPair, DealRow

logger = logging.getLogger(__name__)


def pair_deals(rows: Iterable[DealRow]) -> list[DealPair]:
    """Pair adjacent in/out deals on the same symbol, in deal id order.

    Single pass, no backtracking. Rows without an adjacent complement are
    dropped (balance rows, positions still open at the end of the test, ...).
    """
    ordered = sorted(rows, key=lambda r: r.deal_id)
    pairs: list[DealPair] = []

    i = 0
    while i < len(ordered) - 1:
        current, nxt = ordered[i], ordered[i + 1]
        if (
            current.side.lower() == "in"
            and nxt.side.lower() == "out"
            and current.symbol == nxt.symbol
        ):
            pairs.append(DealPair(entry=current, exit=nxt))
            i += 2
        else:
            logger.debug(
                "Unpaired deal %d (%s %s %s)",
                current.deal_id, current.symbol, current.side, current.time,
            )
            i += 1

    return pairs


def unpaired_row_count(total_rows: int, pairs: list[DealPair]) -> int:
    """Deal rows that did not end up in any pair."""
    return total_rows - 2 * len(pairs)

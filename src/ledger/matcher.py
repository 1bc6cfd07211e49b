"""Resolve each deal pair to its strategy trade record and nearest signals.

Strategy record lookup, first success wins:
  1. direct: entry order id is the strategy ticket
  2. entry:  same symbol, ENTRY open time/price within tolerance, closest time
  3. exit:   same symbol, EXIT close time/price within tolerance, first found

Signal lookup picks the latest same-direction signal at or before the deal,
inside a lookback window. Not finding anything is a normal outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from src.ledger.indexer import SignalIndex, TradeIndex
from src.ledger.models import DealPair, SignalRecord, StrategyTradeRecord
from src.timeseg.normalizer import parse_timestamp, try_parse_timestamp

logger = logging.getLogger(__name__)

FALLBACK_TIME_TOLERANCE_MS = 60_000
FALLBACK_PRICE_TOLERANCE = 0.001  # relative (0.1%)
SIGNAL_LOOKBACK_MINUTES = 10.0


class MatchMethod(StrEnum):
    DIRECT = "direct"
    ENTRY_FALLBACK = "entry_fallback"
    EXIT_FALLBACK = "exit_fallback"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class TradeMatch:
    """Outcome of strategy-record resolution for one deal pair."""

    method: MatchMethod
    record: StrategyTradeRecord | None = None
    time_delta_ms: float | None = None

    @property
    def matched(self) -> bool:
        return self.record is not None

    @property
    def is_fallback(self) -> bool:
        return self.method in (MatchMethod.ENTRY_FALLBACK, MatchMethod.EXIT_FALLBACK)


UNMATCHED = TradeMatch(method=MatchMethod.UNMATCHED)


@dataclass(frozen=True)
class SignalMatch:
    """Nearest preceding signal, or nothing."""

    signal: SignalRecord | None = None
    delta_minutes: float | None = None

    @property
    def matched(self) -> bool:
        return self.signal is not None


NO_SIGNAL = SignalMatch()


def _within_price(candidate: float, reference: float, tolerance: float) -> bool:
    if reference == 0:
        return candidate == 0
    return abs(candidate - reference) / abs(reference) <= tolerance


def _delta_ms(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) * 1000


def _match_by_entry(
    pair: DealPair,
    index: TradeIndex,
    time_tolerance_ms: float,
    price_tolerance: float,
) -> TradeMatch | None:
    deal_at = parse_timestamp(pair.entry.time)
    deal_price = pair.entry.price

    best: StrategyTradeRecord | None = None
    best_delta = float("inf")
    for record in index:
        row = record.entry
        if row is None or row.symbol != pair.symbol:
            continue
        opened = try_parse_timestamp(row.open_time or row.timestamp)
        if opened is None:
            continue
        delta = _delta_ms(opened, deal_at)
        if delta > time_tolerance_ms:
            continue
        if not _within_price(row.open_price or row.price, deal_price, price_tolerance):
            continue
        # strict < keeps the earliest indexed record on ties
        if delta < best_delta:
            best, best_delta = record, delta

    if best is None:
        return None
    return TradeMatch(method=MatchMethod.ENTRY_FALLBACK, record=best, time_delta_ms=best_delta)


def _match_by_exit(
    pair: DealPair,
    index: TradeIndex,
    time_tolerance_ms: float,
    price_tolerance: float,
) -> TradeMatch | None:
    deal_at = parse_timestamp(pair.exit.time)
    deal_price = pair.exit.price

    for record in index:
        row = record.exit
        if row is None or row.symbol != pair.symbol:
            continue
        closed = try_parse_timestamp(row.close_time or row.timestamp)
        if closed is None:
            continue
        delta = _delta_ms(closed, deal_at)
        if delta > time_tolerance_ms:
            continue
        if not _within_price(row.close_price or row.price, deal_price, price_tolerance):
            continue
        return TradeMatch(method=MatchMethod.EXIT_FALLBACK, record=record, time_delta_ms=delta)
    return None


def match_strategy_trade(
    pair: DealPair,
    index: TradeIndex,
    time_tolerance_ms: float = FALLBACK_TIME_TOLERANCE_MS,
    price_tolerance: float = FALLBACK_PRICE_TOLERANCE,
) -> TradeMatch:
    """Find the strategy trade record for a deal pair.

    Args:
        pair: Broker entry/exit deals.
        index: Trade-log index built by ``build_trade_index``.
        time_tolerance_ms: Max |strategy time - deal time| for fallbacks.
        price_tolerance: Max relative price distance for fallbacks.

    Returns:
        TradeMatch with the method used, UNMATCHED if all three fail.
    """
    direct = index.get(pair.entry.order_id)
    if direct is not None:
        return TradeMatch(method=MatchMethod.DIRECT, record=direct)

    match = _match_by_entry(pair, index, time_tolerance_ms, price_tolerance)
    if match is None:
        match = _match_by_exit(pair, index, time_tolerance_ms, price_tolerance)
    if match is None:
        return UNMATCHED

    logger.warning(
        "Fallback %s match for order %d (deal %d) -> ticket %d (delta=%.0fms)",
        match.method, pair.entry.order_id, pair.entry.deal_id,
        match.record.ticket, match.time_delta_ms,
    )
    return match


def match_signal(
    symbol: str,
    at: str,
    order_type: str,
    index: SignalIndex,
    lookback_minutes: float = SIGNAL_LOOKBACK_MINUTES,
) -> SignalMatch:
    """Latest same-direction signal at or before ``at`` within the lookback.

    Args:
        symbol: Deal symbol.
        at: Deal timestamp (broker time).
        order_type: Deal type; "buy" looks for BUY signals, anything else for
            non-BUY signals.
        index: Signal index built by ``build_signal_index``.
        lookback_minutes: Oldest acceptable signal age.
    """
    candidates = index.for_symbol(symbol)
    if not candidates or not order_type:
        return NO_SIGNAL

    target = parse_timestamp(at)
    want_buy = order_type.strip().lower() == "buy"
    lookback_s = lookback_minutes * 60

    best: SignalRecord | None = None
    best_delta = float("inf")
    for item in candidates:
        if item.at > target:
            # sorted by time: nothing later can qualify
            break
        delta = (target - item.at).total_seconds()
        if delta > lookback_s:
            continue
        if not item.signal.signal_type or item.signal.is_buy != want_buy:
            continue
        if delta < best_delta:
            best, best_delta = item.signal, delta

    if best is None:
        return NO_SIGNAL
    return SignalMatch(signal=best, delta_minutes=best_delta / 60.0)

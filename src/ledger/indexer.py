"""Read-only indices over the strategy trade log and the signal log.

Both builders are pure: they take the raw rows and return an immutable index
that the matching phase shares by reference.

Trade log dedup runs in two tiers before insertion:
  1. exact fingerprint (ticket, row type, open price, close price, profit)
  2. same ticket + row type already stored and its time within tolerance
Past both tiers the first ENTRY / first EXIT per ticket wins; later rows for
the same ticket and type are dropped, not merged.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from src.ledger.models import RowType, SignalRecord, StrategyTradeRecord, TradeLogRow
from src.timeseg.normalizer import parse_timestamp, try_parse_timestamp

logger = logging.getLogger(__name__)

DUPLICATE_TOLERANCE_MS = 2_000


def parse_ticket(value: int | str | None) -> int:
    """Ticket as int; 0 when missing or unparseable."""
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def _row_time(row: TradeLogRow, row_type: str) -> datetime | None:
    if row_type == RowType.ENTRY:
        return try_parse_timestamp(row.open_time or row.timestamp)
    return try_parse_timestamp(row.close_time or row.timestamp)


def _fingerprint(ticket: int, row_type: str, row: TradeLogRow) -> tuple:
    return (
        ticket,
        row_type,
        row.open_price or row.price,
        row.close_price or row.price,
        row.performance.profit,
    )


# ---------------------------------------------------------------------------
# Trade index
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class TradeIndex:
    """Strategy trade records keyed by ticket, in first-seen order."""

    records: Mapping[int, StrategyTradeRecord]
    duplicate_count: int = 0
    near_duplicate_count: int = 0
    reused_ticket_count: int = 0
    ignored_count: int = 0

    def get(self, ticket: int) -> StrategyTradeRecord | None:
        return self.records.get(ticket)

    def __contains__(self, ticket: object) -> bool:
        return ticket in self.records

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[StrategyTradeRecord]:
        return iter(self.records.values())


def build_trade_index(
    rows: Iterable[TradeLogRow],
    duplicate_tolerance_ms: float = DUPLICATE_TOLERANCE_MS,
) -> TradeIndex:
    """Index dual-row trade log by ticket with duplicate-tolerant insertion.

    Args:
        rows: Raw trade-log rows in file order.
        duplicate_tolerance_ms: Same-ticket rows of one type closer than this
            are treated as clock-jitter duplicates.
    """
    slots: dict[int, dict[str, TradeLogRow]] = {}
    seen: set[tuple] = set()
    exact = near = reused = ignored = 0

    for row in rows:
        row_type = row.normalized_row_type
        if row_type not in (RowType.ENTRY, RowType.EXIT):
            ignored += 1
            continue

        ticket = parse_ticket(row.ticket)
        fp = _fingerprint(ticket, row_type, row)
        if fp in seen:
            exact += 1
            continue
        seen.add(fp)

        slot = slots.setdefault(ticket, {})
        existing = slot.get(row_type)
        if existing is not None:
            prev_at = _row_time(existing, row_type)
            cur_at = _row_time(row, row_type)
            if (
                prev_at is not None
                and cur_at is not None
                and abs((cur_at - prev_at).total_seconds()) * 1000 <= duplicate_tolerance_ms
            ):
                near += 1
            else:
                # first wins, even when the later row looks like a distinct trade
                reused += 1
                logger.warning(
                    "Ticket %d has a second %s row (%s); keeping the first",
                    ticket, row_type, row.open_time or row.close_time or row.timestamp,
                )
            continue

        slot[row_type] = row

    records = {
        ticket: StrategyTradeRecord(
            ticket=ticket,
            entry=slot.get(RowType.ENTRY),
            exit=slot.get(RowType.EXIT),
        )
        for ticket, slot in slots.items()
    }

    duplicates = exact + near + reused
    if duplicates:
        logger.warning(
            "Ignored %d duplicate trade-log rows while indexing "
            "(exact=%d, near=%d, reused ticket=%d)",
            duplicates, exact, near, reused,
        )
    if ignored:
        logger.info("Skipped %d trade-log rows with unknown row type", ignored)
    logger.info("Indexed %d strategy trade records", len(records))

    return TradeIndex(
        records=MappingProxyType(records),
        duplicate_count=duplicates,
        near_duplicate_count=near,
        reused_ticket_count=reused,
        ignored_count=ignored,
    )


# ---------------------------------------------------------------------------
# Signal index
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class IndexedSignal:
    at: datetime
    signal: SignalRecord


@dataclass(frozen=True)
class SignalIndex:
    """Signals per symbol, sorted by time."""

    by_symbol: Mapping[str, tuple[IndexedSignal, ...]]

    def for_symbol(self, symbol: str) -> tuple[IndexedSignal, ...]:
        return self.by_symbol.get(symbol, ())

    def __len__(self) -> int:
        return sum(len(v) for v in self.by_symbol.values())


def build_signal_index(signals: Iterable[SignalRecord]) -> SignalIndex:
    """Group signals by symbol and sort each group chronologically.

    Every signal is kept. Equal timestamps keep input order.

    Raises:
        TimestampParseError: a signal timestamp cannot be parsed.
    """
    grouped: dict[str, list[IndexedSignal]] = defaultdict(list)
    for sig in signals:
        grouped[sig.symbol].append(IndexedSignal(at=parse_timestamp(sig.timestamp), signal=sig))

    by_symbol = {
        symbol: tuple(sorted(items, key=lambda s: s.at))
        for symbol, items in grouped.items()
    }
    logger.info(
        "Indexed %d signals across %d symbols",
        sum(len(v) for v in by_symbol.values()), len(by_symbol),
    )
    return SignalIndex(by_symbol=MappingProxyType(by_symbol))

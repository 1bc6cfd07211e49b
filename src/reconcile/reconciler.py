"""Join broker deals, strategy trade log and signal log into one record per trade.

``reconcile`` is the batch entry point: pair deals, build both indices once,
reconcile every pair against the read-only indices, then validate the whole
dataset. It never aborts on data problems; everything it is unsure about is
reported in the result.

Pure (no file I/O). The only fatal error is an unparseable broker or signal
timestamp.
"""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from src.ledger.indexer import SignalIndex, TradeIndex, build_signal_index, build_trade_index
from src.ledger.matcher import (
    FALLBACK_PRICE_TOLERANCE,
    FALLBACK_TIME_TOLERANCE_MS,
    SIGNAL_LOOKBACK_MINUTES,
    MatchMethod,
    SignalMatch,
    TradeMatch,
    match_signal,
    match_strategy_trade,
)
from src.ledger.models import DealPair, DealRow, SignalRecord, TradeLogRow
from src.ledger.pairing import pair_deals, unpaired_row_count
from src.reconcile.models import (
    ProcessingStatistics,
    ReconciledTrade,
    ReconciliationResult,
    SignalFields,
    StrategyFields,
    TradeDirection,
    TradeResult,
)
from src.reconcile.quality import assess_trade, reconcile_profit, validate_dataset
from src.timeseg.normalizer import DEFAULT_OFFSET_HOURS, normalize_timestamp, parse_timestamp

if TYPE_CHECKING:
    from src.config import Settings

logger = logging.getLogger(__name__)

WIN_THRESHOLD = 0.01  # |profit| at or below this is breakeven

_TP_RE = re.compile(r"\btp\b", re.IGNORECASE)
_SL_RE = re.compile(r"\bsl\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------
def parse_broker_number(value: Any) -> float | None:
    """Parse a broker-formatted number ("- 264.14", "1,234.50").

    Returns None when missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    cleaned = re.sub(r"\s+", "", str(value)).replace(",", "")
    if not cleaned:
        return None
    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    return None if math.isnan(parsed) else parsed


def classify_result(profit: float | None) -> TradeResult:
    if profit is None:
        return TradeResult.DATA_ERROR
    if profit > WIN_THRESHOLD:
        return TradeResult.WIN
    if profit < -WIN_THRESHOLD:
        return TradeResult.LOSS
    return TradeResult.BREAKEVEN


def trade_direction(order_type: str) -> TradeDirection:
    return TradeDirection.LONG if order_type.strip().lower() == "buy" else TradeDirection.SHORT


def resolve_exit_reason(comment: str, strategy_reason: str) -> str:
    """Broker comment "tp ..." / "sl ..." overrides the strategy's exit reason."""
    if _TP_RE.search(comment or ""):
        return "TP"
    if _SL_RE.search(comment or ""):
        return "SL"
    return strategy_reason


def strategy_fields(match: TradeMatch) -> StrategyFields:
    """Strategy values for a trade, neutral defaults when unmatched.

    Either half of a matched record may be missing; entry-side fields come
    only from the ENTRY row and exit-side fields only from the EXIT row.
    """
    record = match.record
    if record is None:
        return StrategyFields()

    entry, exit_row = record.entry, record.exit
    # strategy id/version from the EXIT row when the ENTRY row was lost
    source = entry if entry is not None else exit_row
    fields: dict[str, Any] = {}
    if source is not None:
        fields["strategy_id"] = source.strategy_name or "Unknown"
        fields["strategy_version"] = source.strategy_version or "Unknown"
    if entry is not None:
        fields["entry_symbol"] = entry.symbol
        fields["entry"] = entry.entry
    if exit_row is not None:
        fields["exit_symbol"] = exit_row.symbol
        fields["exit"] = exit_row.exit
        fields["exit_reason"] = exit_row.exit_reason
        fields["performance"] = exit_row.performance
        fields["profit"] = exit_row.performance.profit
    return StrategyFields(**fields)


def signal_fields(match: SignalMatch) -> SignalFields:
    if match.signal is None:
        return SignalFields()
    sig = match.signal
    return SignalFields(
        matched=True,
        timestamp=sig.timestamp,
        time_delta_minutes=match.delta_minutes,
        metrics=sig.metrics,
        physics_pass=sig.physics_pass,
        reject_reason=sig.reject_reason or None,
    )


# ---------------------------------------------------------------------------
# One pair
# ---------------------------------------------------------------------------
def reconcile_pair(
    index: int,
    pair: DealPair,
    trade_index: TradeIndex,
    signal_index: SignalIndex,
    offset_hours: int = DEFAULT_OFFSET_HOURS,
    time_tolerance_ms: float = FALLBACK_TIME_TOLERANCE_MS,
    price_tolerance: float = FALLBACK_PRICE_TOLERANCE,
    lookback_minutes: float = SIGNAL_LOOKBACK_MINUTES,
) -> ReconciledTrade:
    """Merge one deal pair with its strategy record and signals."""
    entry, exit_deal = pair.entry, pair.exit
    entry_time = normalize_timestamp(entry.time, offset_hours)
    exit_time = normalize_timestamp(exit_deal.time, offset_hours)

    match = match_strategy_trade(pair, trade_index, time_tolerance_ms, price_tolerance)
    entry_signal = match_signal(entry.symbol, entry.time, entry.type, signal_index, lookback_minutes)
    # exit deal type is the closing side: a "sell" exit looks for SELL signals
    exit_signal = match_signal(exit_deal.symbol, exit_deal.time, exit_deal.type, signal_index, lookback_minutes)

    parsed_profit = parse_broker_number(exit_deal.profit)
    result = classify_result(parsed_profit)
    if parsed_profit is None:
        logger.warning(
            "Invalid profit for trade %d -> %d: %r (deal entry %d, deal exit %d)",
            entry.order_id, exit_deal.order_id, exit_deal.profit,
            entry.deal_id, exit_deal.deal_id,
        )
    profit = parsed_profit if parsed_profit is not None else 0.0

    strategy = strategy_fields(match)
    exit_reason = resolve_exit_reason(exit_deal.comment, strategy.exit_reason)
    if exit_reason != strategy.exit_reason:
        strategy = replace(strategy, exit_reason=exit_reason)

    duration = parse_timestamp(exit_deal.time) - parse_timestamp(entry.time)
    roi = profit / entry.balance * 100 if entry.balance else 0.0

    return ReconciledTrade(
        index=index,
        in_deal=entry.deal_id,
        in_trade_id=entry.order_id,
        symbol=entry.symbol,
        in_order_type=entry.type.lower(),
        volume=entry.volume,
        entry_price=entry.price,
        entry_balance=entry.balance,
        entry_time=entry_time,
        out_deal=exit_deal.deal_id,
        out_trade_id=exit_deal.order_id,
        out_symbol=exit_deal.symbol,
        out_order_type=exit_deal.type.lower(),
        exit_price=exit_deal.price,
        exit_balance=exit_deal.balance,
        profit=profit,
        commission=parse_broker_number(exit_deal.commission) or 0.0,
        swap=parse_broker_number(exit_deal.swap) or 0.0,
        comment=exit_deal.comment,
        exit_time=exit_time,
        direction=trade_direction(entry.type),
        result=result,
        duration_minutes=math.floor(duration.total_seconds() / 60),
        roi_pct=roi,
        risk_reward=strategy.performance.r_ratio,
        mae=strategy.performance.mae,
        mfe=strategy.performance.mfe,
        strategy_match=match.method,
        strategy_ticket=match.record.ticket if match.record is not None else None,
        strategy=strategy,
        entry_signal=signal_fields(entry_signal),
        exit_signal=signal_fields(exit_signal),
        quality=assess_trade(match, entry_signal, exit_signal, result),
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------
def _statistics(
    trades: Sequence[ReconciledTrade],
    deal_rows: int,
    trade_log_rows: int,
    signal_rows: int,
    pairs: list[DealPair],
    trade_index: TradeIndex,
    elapsed_ms: float,
    quality_score: int,
) -> ProcessingStatistics:
    methods = [t.strategy_match for t in trades]
    return ProcessingStatistics(
        deal_rows=deal_rows,
        trade_log_rows=trade_log_rows,
        signal_rows=signal_rows,
        paired_trades=len(pairs),
        unpaired_rows=unpaired_row_count(deal_rows, pairs),
        strategy_matched=sum(1 for m in methods if m != MatchMethod.UNMATCHED),
        entry_fallback_matches=methods.count(MatchMethod.ENTRY_FALLBACK),
        exit_fallback_matches=methods.count(MatchMethod.EXIT_FALLBACK),
        signals_matched=sum(
            1 for t in trades if t.entry_signal.matched or t.exit_signal.matched
        ),
        duplicate_trade_log_rows=trade_index.duplicate_count,
        elapsed_ms=elapsed_ms,
        quality_score=quality_score,
    )


def reconcile(
    deals: Iterable[DealRow],
    trade_rows: Iterable[TradeLogRow],
    signals: Iterable[SignalRecord],
    offset_hours: int | None = None,
    settings: Settings | None = None,
    max_workers: int | None = None,
    run_id: str = "",
) -> ReconciliationResult:
    """Reconcile broker deals with the strategy trade and signal logs.

    Args:
        deals: Broker ledger rows (any order).
        trade_rows: Raw strategy trade-log rows (ENTRY/EXIT, file order).
        signals: Signal-log rows.
        offset_hours: Broker -> report time offset. Defaults to settings.
        settings: Tolerances and defaults. Defaults to ``src.config.settings``.
        max_workers: >1 reconciles pairs on a thread pool; output order is
            always the pair (deal id) order.
        run_id: Batch id from ``setup_logging``, attached to this run's
            summary log records.

    Raises:
        TimestampParseError: a deal or signal timestamp cannot be parsed.
    """
    if settings is None:
        from src.config import settings as default_settings

        settings = default_settings
    if offset_hours is None:
        offset_hours = settings.report_offset_hours
    if max_workers is None:
        max_workers = settings.reconcile_max_workers

    log = logging.LoggerAdapter(logger, {"run_id": run_id})
    started = time.perf_counter()
    deal_list = list(deals)
    trade_list = list(trade_rows)
    signal_list = list(signals)
    log.info(
        "Reconciling %d deal rows, %d trade-log rows, %d signal rows",
        len(deal_list), len(trade_list), len(signal_list),
    )

    pairs = pair_deals(deal_list)
    log.info("Paired %d trades", len(pairs))

    trade_index = build_trade_index(
        trade_list,
        duplicate_tolerance_ms=settings.duplicate_tolerance_ms,
    )
    signal_index = build_signal_index(signal_list)

    def _one(item: tuple[int, DealPair]) -> ReconciledTrade:
        i, pair = item
        return reconcile_pair(
            i,
            pair,
            trade_index,
            signal_index,
            offset_hours=offset_hours,
            time_tolerance_ms=settings.fallback_time_tolerance_ms,
            price_tolerance=settings.fallback_price_tolerance,
            lookback_minutes=settings.signal_lookback_minutes,
        )

    if max_workers > 1 and len(pairs) > 1:
        # map() yields in submission order
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reconcile") as pool:
            trades = tuple(pool.map(_one, enumerate(pairs)))
    else:
        trades = tuple(_one(item) for item in enumerate(pairs))

    validation = validate_dataset(trades)
    profit_check = reconcile_profit(trades)
    elapsed_ms = (time.perf_counter() - started) * 1000

    statistics = _statistics(
        trades,
        deal_rows=len(deal_list),
        trade_log_rows=len(trade_list),
        signal_rows=len(signal_list),
        pairs=pairs,
        trade_index=trade_index,
        elapsed_ms=elapsed_ms,
        quality_score=validation.quality_score,
    )
    log.info(
        "Reconciled %d trades in %.0fms (strategy matched=%d, fallback=%d/%d, signals=%d)",
        len(trades), elapsed_ms, statistics.strategy_matched,
        statistics.entry_fallback_matches, statistics.exit_fallback_matches,
        statistics.signals_matched,
    )

    return ReconciliationResult(
        processed_at=datetime.now(timezone.utc).isoformat(),
        trades=trades,
        statistics=statistics,
        validation=validation,
        profit_check=profit_check,
    )

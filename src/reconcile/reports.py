"""Flat views of reconciled trades for downstream writers and operators.

No file I/O here: callers decide how to serialise the rows.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, fields
from typing import Any

from src.ledger.models import ExitPerformance, PhysicsMetrics
from src.reconcile.models import ReconciledTrade, ReconciliationResult, SignalFields
from src.timeseg.normalizer import NormalizedTime

_METRIC_NAMES = [f.name for f in fields(PhysicsMetrics)]


def _time_columns(prefix: str, t: NormalizedTime) -> dict[str, Any]:
    cols = {
        f"{prefix}_time_source": t.source,
        f"{prefix}_broker_date": t.broker_date,
        f"{prefix}_broker_time": t.broker_time,
        f"{prefix}_broker_day": t.broker_day,
        f"{prefix}_broker_month": t.broker_month,
        f"{prefix}_report_date": t.report_date,
        f"{prefix}_report_time": t.report_time,
        f"{prefix}_report_day": t.report_day,
        f"{prefix}_report_month": t.report_month,
        f"{prefix}_session": t.session,
    }
    for name, label in asdict(t.segments).items():
        cols[f"{prefix}_{name}"] = label
    return cols


def _metric_columns(prefix: str, metrics: PhysicsMetrics | None) -> dict[str, Any]:
    if metrics is None:
        return {f"{prefix}_{name}": None for name in _METRIC_NAMES}
    return {f"{prefix}_{name}": value for name, value in asdict(metrics).items()}


def _signal_columns(prefix: str, sig: SignalFields) -> dict[str, Any]:
    cols: dict[str, Any] = {
        f"{prefix}_matched": sig.matched,
        f"{prefix}_timestamp": sig.timestamp,
        f"{prefix}_time_delta_minutes": sig.time_delta_minutes,
    }
    cols.update(_metric_columns(prefix, sig.metrics))
    cols[f"{prefix}_physics_pass"] = sig.physics_pass
    cols[f"{prefix}_reject_reason"] = sig.reject_reason
    return cols


def _performance_columns(perf: ExitPerformance) -> dict[str, Any]:
    # profit is emitted separately as strategy_profit (None when no EXIT row)
    return {
        f"strategy_{name}": value
        for name, value in asdict(perf).items()
        if name != "profit"
    }


def flatten_trade(trade: ReconciledTrade) -> dict[str, Any]:
    """One flat row per trade with stable prefixed keys.

    Unmatched strategy data flattens to zeros/empty strings, unmatched signal
    data to None; ``strategy_match`` / ``signal_*_matched`` tell them apart.
    """
    row: dict[str, Any] = {
        "index": trade.index,
        "in_deal": trade.in_deal,
        "in_trade_id": trade.in_trade_id,
        "symbol": trade.symbol,
        "in_order_type": trade.in_order_type,
        "in_order_direction": "in",
        "volume": trade.volume,
        "in_price": trade.entry_price,
        "in_balance": trade.entry_balance,
    }
    row.update(_time_columns("in", trade.entry_time))
    row.update({
        "out_deal": trade.out_deal,
        "out_trade_id": trade.out_trade_id,
        "out_symbol": trade.out_symbol,
        "out_order_type": trade.out_order_type,
        "out_order_direction": "out",
        "out_price": trade.exit_price,
        "out_balance": trade.exit_balance,
        "out_profit": trade.profit,
        "out_commission": trade.commission,
        "out_swap": trade.swap,
        "out_comment": trade.comment,
    })
    row.update(_time_columns("out", trade.exit_time))
    row.update({
        "trade_direction": str(trade.direction),
        "trade_result": str(trade.result),
        "trade_duration_minutes": trade.duration_minutes,
        "trade_roi_pct": trade.roi_pct,
        "trade_risk_reward": trade.risk_reward,
        "trade_mae": trade.mae,
        "trade_mfe": trade.mfe,
        "strategy_match": str(trade.strategy_match),
        "strategy_ticket": trade.strategy_ticket,
        "strategy_id": trade.strategy.strategy_id,
        "strategy_version": trade.strategy.strategy_version,
        "strategy_entry_symbol": trade.strategy.entry_symbol,
        "strategy_exit_symbol": trade.strategy.exit_symbol,
        "strategy_exit_reason": trade.strategy.exit_reason,
    })
    row.update(_metric_columns("strategy_entry", trade.strategy.entry))
    row.update(_metric_columns("strategy_exit", trade.strategy.exit))
    row.update(_performance_columns(trade.strategy.performance))
    row["strategy_profit"] = trade.strategy.profit
    row.update(_signal_columns("signal_entry", trade.entry_signal))
    row.update(_signal_columns("signal_exit", trade.exit_signal))
    row.update({
        "quality_score": trade.quality.score,
        "quality_missing_fields": ";".join(trade.quality.missing_fields),
        "quality_validation_flags": ";".join(trade.quality.validation_flags),
        "trade_log_source": trade.trade_log_source,
        "signal_log_source": trade.signal_log_source,
    })
    return row


def missing_exit_report(trades: Sequence[ReconciledTrade]) -> list[dict[str, Any]]:
    """Trades whose strategy EXIT row never turned up.

    Used to chase EXIT rows lost by the strategy logger.
    """
    rows: list[dict[str, Any]] = []
    for t in trades:
        if "STRATEGY_EXIT_DATA" not in t.quality.missing_fields and t.strategy.exit_symbol:
            continue
        rows.append({
            "ticket": t.strategy_ticket if t.strategy_ticket is not None else t.in_trade_id,
            "in_deal": t.in_deal,
            "in_order": t.in_trade_id,
            "out_deal": t.out_deal,
            "out_trade_id": t.out_trade_id,
            "in_time": t.entry_time.source,
            "strategy_entry_symbol": t.strategy.entry_symbol,
            "strategy_entry_physics_score": t.strategy.entry.physics_score,
            "strategy_exit_symbol": t.strategy.exit_symbol,
            "strategy_exit_physics_score": t.strategy.exit.physics_score,
            "missing_fields": ";".join(t.quality.missing_fields),
        })
    return rows


def format_summary(result: ReconciliationResult) -> str:
    """One-line processing summary for logs."""
    s = result.statistics
    v = result.validation
    p = result.profit_check
    return (
        f"Deals: {s.deal_rows} | Paired: {s.paired_trades} "
        f"| Strategy: {s.strategy_matched} (fallback {s.entry_fallback_matches}/{s.exit_fallback_matches}) "
        f"| Signals: {s.signals_matched} "
        f"| Quality: {s.quality_score}/100 "
        f"| Critical: {len(v.critical_errors)} Warnings: {len(v.warnings)} "
        f"| Profit: {p.status} (diff ${p.difference:.2f})"
    )

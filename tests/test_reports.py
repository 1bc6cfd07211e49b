"""Tests for flat trade rows, the missing-exit report and the run summary."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.reconcile.reconciler import reconcile
from src.reconcile.reports import flatten_trade, format_summary, missing_exit_report
from tests.helpers import make_entry_row, make_exit_row


class TestFlattenTrade:
    def test_matched_trade(self, four_deals, trade_rows, signals, settings):
        row = flatten_trade(reconcile(four_deals, trade_rows, signals, settings=settings).trades[0])

        assert row["in_deal"] == 1
        assert row["in_trade_id"] == 101
        assert row["in_order_direction"] == "in"
        assert row["out_order_direction"] == "out"
        assert row["in_broker_time"] == "09:00:00"
        assert row["in_report_time"] == "01:00:00"
        assert row["in_segment_15m"] == "15-005"
        assert row["out_profit"] == 2.0
        assert row["trade_result"] == "Win"
        assert row["trade_direction"] == "Long"
        assert row["strategy_match"] == "direct"
        assert row["strategy_ticket"] == 101
        assert row["strategy_entry_quality"] == 90.0
        assert row["strategy_exit_zone"] == "YELLOW"
        assert row["strategy_pips"] == 20.0
        assert row["strategy_profit"] == 2.0
        assert row["signal_entry_matched"] is True
        assert row["signal_entry_physics_score"] == 70.0
        assert row["quality_score"] == 100
        assert row["quality_missing_fields"] == ""
        assert row["trade_log_source"] == "trade_log"
        assert row["signal_log_source"] == "signal_log"

    def test_unmatched_trade(self, four_deals, trade_rows, signals, settings):
        row = flatten_trade(reconcile(four_deals, trade_rows, signals, settings=settings).trades[1])

        assert row["strategy_match"] == "unmatched"
        assert row["strategy_ticket"] is None
        assert row["strategy_id"] == "Unknown"
        assert row["strategy_entry_quality"] == 0.0
        assert row["strategy_profit"] is None
        assert row["signal_entry_matched"] is False
        assert row["signal_entry_quality"] is None
        assert row["signal_exit_timestamp"] is None
        assert row["trade_result"] == "Loss"
        assert row["quality_missing_fields"] == (
            "STRATEGY_ENTRY_DATA;STRATEGY_EXIT_DATA;ENTRY_SIGNAL_DATA;EXIT_SIGNAL_DATA"
        )
        assert row["trade_log_source"] == "not_found"
        assert row["signal_log_source"] == "not_found"

    def test_same_keys_for_matched_and_unmatched(self, four_deals, trade_rows, signals, settings):
        trades = reconcile(four_deals, trade_rows, signals, settings=settings).trades
        assert list(flatten_trade(trades[0])) == list(flatten_trade(trades[1]))


class TestMissingExitReport:
    def test_exit_only_record_not_reported(self, four_deals, signals, settings):
        result = reconcile(four_deals[:2], [make_exit_row()], signals, settings=settings)
        assert missing_exit_report(result.trades) == []

    def test_entry_without_exit(self, four_deals, signals, settings):
        result = reconcile(four_deals, [make_entry_row()], signals, settings=settings)
        report = missing_exit_report(result.trades)

        assert [r["ticket"] for r in report] == [101, 103]
        first = report[0]
        assert first["in_deal"] == 1
        assert first["out_deal"] == 2
        assert first["in_time"] == "2025.11.17 09:00"
        assert first["strategy_entry_symbol"] == "EURUSD"
        assert first["strategy_entry_physics_score"] == 75.0
        assert first["strategy_exit_symbol"] == ""
        assert first["missing_fields"] == "STRATEGY_EXIT_DATA"

    def test_complete_trades_not_reported(self, four_deals, trade_rows, signals, settings):
        result = reconcile(four_deals[:2], trade_rows, signals, settings=settings)
        assert missing_exit_report(result.trades) == []


class TestFormatSummary:
    def test_summary_line(self, four_deals, trade_rows, signals, settings):
        line = format_summary(reconcile(four_deals, trade_rows, signals, settings=settings))
        assert "Deals: 4" in line
        assert "Paired: 2" in line
        assert "Strategy: 1 (fallback 0/0)" in line
        assert "Quality: 90/100" in line
        assert "Critical: 0 Warnings: 5" in line
        assert "Profit: mismatch" in line
        assert "\n" not in line

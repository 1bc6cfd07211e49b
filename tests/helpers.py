"""Shared test helpers. Import in test files: from tests.helpers import make_deal."""

from __future__ import annotations

from src.ledger.models import (
    DealRow,
    ExitPerformance,
    PhysicsMetrics,
    SignalRecord,
    TradeLogRow,
)


def make_deal(**overrides) -> DealRow:
    """Build a broker deal row with sensible defaults. Override any field via kwargs."""
    defaults = {
        "deal_id": 1,
        "order_id": 101,
        "symbol": "EURUSD",
        "side": "in",
        "type": "buy",
        "time": "2025.11.17 09:00",
        "price": 1000.0,
        "volume": 0.01,
        "profit": "0",
        "commission": "0",
        "swap": "0",
        "balance": 1000.0,
        "comment": "",
    }
    defaults.update(overrides)
    return DealRow(**defaults)


def make_round_trip(
    deal_id: int,
    order_id: int,
    entry_time: str,
    exit_time: str,
    symbol: str = "EURUSD",
    entry_type: str = "buy",
    entry_price: float = 1000.0,
    exit_price: float = 1002.0,
    profit: float | str | None = "2.00",
    comment: str = "",
) -> list[DealRow]:
    """Entry + exit deal rows for one position."""
    exit_type = "sell" if entry_type == "buy" else "buy"
    return [
        make_deal(
            deal_id=deal_id, order_id=order_id, symbol=symbol, side="in",
            type=entry_type, time=entry_time, price=entry_price,
        ),
        make_deal(
            deal_id=deal_id + 1, order_id=order_id + 1, symbol=symbol, side="out",
            type=exit_type, time=exit_time, price=exit_price, profit=profit,
            comment=comment,
        ),
    ]


def make_entry_row(**overrides) -> TradeLogRow:
    """Strategy trade-log ENTRY row."""
    defaults = {
        "ticket": 101,
        "row_type": "ENTRY",
        "symbol": "EURUSD",
        "type": "BUY",
        "timestamp": "2025.11.17 09:00",
        "open_time": "2025.11.17 09:00",
        "price": 1000.0,
        "open_price": 1000.0,
        "strategy_name": "TickPhysics",
        "strategy_version": "4.2.0.0_SLOPE",
        "entry": PhysicsMetrics(quality=90.0, physics_score=75.0, zone="GREEN", regime="TREND"),
    }
    defaults.update(overrides)
    return TradeLogRow(**defaults)


def make_exit_row(**overrides) -> TradeLogRow:
    """Strategy trade-log EXIT row."""
    defaults = {
        "ticket": 101,
        "row_type": "EXIT",
        "symbol": "EURUSD",
        "type": "BUY",
        "timestamp": "2025.11.17 09:15",
        "open_time": "2025.11.17 09:00",
        "close_time": "2025.11.17 09:15",
        "price": 1002.0,
        "open_price": 1000.0,
        "close_price": 1002.0,
        "strategy_name": "TickPhysics",
        "strategy_version": "4.2.0.0_SLOPE",
        "exit": PhysicsMetrics(quality=60.0, physics_score=55.0, zone="YELLOW"),
        "exit_reason": "Reversal",
        "performance": ExitPerformance(profit=2.0, pips=20.0, r_ratio=1.5, mfe=3.0, mae=-1.0),
    }
    defaults.update(overrides)
    return TradeLogRow(**defaults)


def make_signal(**overrides) -> SignalRecord:
    """Signal-log row."""
    defaults = {
        "symbol": "EURUSD",
        "timestamp": "2025.11.17 08:58",
        "signal_type": "BUY",
        "signal": 1.0,
        "metrics": PhysicsMetrics(quality=88.0, physics_score=70.0, zone="GREEN"),
        "price": 999.8,
        "physics_pass": "PASS",
    }
    defaults.update(overrides)
    return SignalRecord(**defaults)

"""Shared fixtures for reconciliation tests.

Row builders (make_deal, make_entry_row, ...) are in tests/helpers.py.
"""

from __future__ import annotations

import pytest

from src.config import Settings
from src.ledger.models import DealRow, SignalRecord, TradeLogRow
from tests.helpers import (
    make_entry_row,
    make_exit_row,
    make_round_trip,
    make_signal,
)


@pytest.fixture()
def settings() -> Settings:
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture()
def four_deals() -> list[DealRow]:
    """Two EURUSD round trips, deal ids 1-4."""
    return (
        make_round_trip(1, 101, "2025.11.17 09:00", "2025.11.17 09:15", profit="2.00")
        + make_round_trip(3, 103, "2025.11.17 10:00", "2025.11.17 10:30", profit="- 264.14")
    )


@pytest.fixture()
def trade_rows() -> list[TradeLogRow]:
    """Strategy rows for the first round trip only (ticket 101)."""
    return [make_entry_row(), make_exit_row()]


@pytest.fixture()
def signals() -> list[SignalRecord]:
    """One BUY signal before the first entry, one SELL before its exit."""
    return [
        make_signal(timestamp="2025.11.17 08:58", signal_type="BUY"),
        make_signal(timestamp="2025.11.17 09:12", signal_type="SELL"),
    ]

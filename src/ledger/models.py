"""Typed rows for the three input logs and the aggregates built from them.

Dataclasses only, no matching logic. ``from_mapping`` constructors accept an
already-parsed row keyed by the logger's column names (e.g. one dict from a
CSV reader) and coerce loosely-typed values.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RowType(StrEnum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


def _num(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).strip().replace(",", "").replace(" ", "")
    try:
        return float(cleaned)
    except ValueError:
        return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(_num(value, default))
    except (OverflowError, ValueError):
        return default


def _str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _str(value).lower() in ("true", "1", "yes")


# ---------------------------------------------------------------------------
# Broker ledger
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class DealRow:
    """One broker ledger row (an open or close deal)."""

    deal_id: int
    order_id: int
    symbol: str
    side: str  # "in" | "out"
    type: str  # "buy" | "sell"
    time: str  # broker time, "YYYY.MM.DD HH:MM[:SS]"
    price: float
    volume: float
    # Broker exports may format negatives as "- 264.14"; parsed at reconcile time
    profit: float | str | None = None
    commission: float | str | None = 0.0
    swap: float | str | None = 0.0
    balance: float = 0.0
    comment: str = ""

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> DealRow:
        return cls(
            deal_id=_int(row.get("Deal")),
            order_id=_int(row.get("Order")),
            symbol=_str(row.get("Symbol")),
            side=_str(row.get("Direction")).lower(),
            type=_str(row.get("Type")).lower(),
            time=_str(row.get("Time")),
            price=_num(row.get("Price")),
            volume=_num(row.get("Volume")),
            profit=row.get("Profit"),
            commission=row.get("Commission"),
            swap=row.get("Swap"),
            balance=_num(row.get("Balance")),
            comment=_str(row.get("Comment")),
        )


@dataclass(frozen=True)
class DealPair:
    """Adjacent opening + closing deal on the same symbol."""

    entry: DealRow
    exit: DealRow

    @property
    def symbol(self) -> str:
        return self.entry.symbol


# ---------------------------------------------------------------------------
# Strategy metrics
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PhysicsMetrics:
    """Derived signal metrics logged by the strategy at a point in time."""

    quality: float = 0.0
    confluence: float = 0.0
    momentum: float = 0.0
    speed: float = 0.0
    acceleration: float = 0.0
    entropy: float = 0.0
    jerk: float = 0.0
    physics_score: float = 0.0
    speed_slope: float = 0.0
    acceleration_slope: float = 0.0
    momentum_slope: float = 0.0
    confluence_slope: float = 0.0
    jerk_slope: float = 0.0
    zone: str = ""
    regime: str = ""
    spread: float = 0.0

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any], prefix: str = "") -> PhysicsMetrics:
        """Read metric columns, e.g. prefix="Entry_" reads ``Entry_Quality``."""

        def col(name: str) -> Any:
            return row.get(f"{prefix}{name}")

        return cls(
            quality=_num(col("Quality")),
            confluence=_num(col("Confluence")),
            momentum=_num(col("Momentum")),
            speed=_num(col("Speed")),
            acceleration=_num(col("Acceleration")),
            entropy=_num(col("Entropy")),
            jerk=_num(col("Jerk")),
            physics_score=_num(col("PhysicsScore")),
            speed_slope=_num(col("SpeedSlope")),
            acceleration_slope=_num(col("AccelerationSlope")),
            momentum_slope=_num(col("MomentumSlope")),
            confluence_slope=_num(col("ConfluenceSlope")),
            jerk_slope=_num(col("JerkSlope")),
            zone=_str(col("Zone")),
            regime=_str(col("Regime")),
            spread=_num(col("Spread")),
        )


@dataclass(frozen=True)
class ExitPerformance:
    """Realised performance fields carried on strategy EXIT rows."""

    profit: float = 0.0
    profit_percent: float = 0.0
    pips: float = 0.0
    hold_time_bars: int = 0
    hold_time_minutes: float = 0.0
    risk_percent: float = 0.0
    r_ratio: float = 0.0
    # Excursion
    mfe: float = 0.0
    mae: float = 0.0
    mfe_percent: float = 0.0
    mae_percent: float = 0.0
    mfe_pips: float = 0.0
    mae_pips: float = 0.0
    mfe_time_bars: int = 0
    mae_time_bars: int = 0
    mfe_utilization: float = 0.0
    mae_impact: float = 0.0
    excursion_efficiency: float = 0.0
    # RunUp / RunDown
    run_up_price: float = 0.0
    run_up_pips: float = 0.0
    run_up_percent: float = 0.0
    run_up_time_bars: int = 0
    run_down_price: float = 0.0
    run_down_pips: float = 0.0
    run_down_percent: float = 0.0
    run_down_time_bars: int = 0
    exit_quality_class: str = ""
    early_exit_opportunity_cost: float = 0.0
    # Decay between entry and exit
    physics_score_decay: float = 0.0
    speed_decay: float = 0.0
    speed_slope_decay: float = 0.0
    confluence_decay: float = 0.0
    zone_transitioned: bool = False

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> ExitPerformance:
        return cls(
            profit=_num(row.get("Profit")),
            profit_percent=_num(row.get("ProfitPercent")),
            pips=_num(row.get("Pips")),
            hold_time_bars=_int(row.get("HoldTimeBars")),
            hold_time_minutes=_num(row.get("HoldTimeMinutes")),
            risk_percent=_num(row.get("RiskPercent")),
            r_ratio=_num(row.get("RRatio")),
            mfe=_num(row.get("MFE")),
            mae=_num(row.get("MAE")),
            mfe_percent=_num(row.get("MFE_Percent")),
            mae_percent=_num(row.get("MAE_Percent")),
            mfe_pips=_num(row.get("MFE_Pips")),
            mae_pips=_num(row.get("MAE_Pips")),
            mfe_time_bars=_int(row.get("MFE_TimeBars")),
            mae_time_bars=_int(row.get("MAE_TimeBars")),
            mfe_utilization=_num(row.get("MFEUtilization")),
            mae_impact=_num(row.get("MAEImpact")),
            excursion_efficiency=_num(row.get("ExcursionEfficiency")),
            run_up_price=_num(row.get("RunUp_Price")),
            run_up_pips=_num(row.get("RunUp_Pips")),
            run_up_percent=_num(row.get("RunUp_Percent")),
            run_up_time_bars=_int(row.get("RunUp_TimeBars")),
            run_down_price=_num(row.get("RunDown_Price")),
            run_down_pips=_num(row.get("RunDown_Pips")),
            run_down_percent=_num(row.get("RunDown_Percent")),
            run_down_time_bars=_int(row.get("RunDown_TimeBars")),
            exit_quality_class=_str(row.get("ExitQualityClass")),
            early_exit_opportunity_cost=_num(row.get("EarlyExitOpportunityCost")),
            physics_score_decay=_num(row.get("PhysicsScoreDecay")),
            speed_decay=_num(row.get("SpeedDecay")),
            speed_slope_decay=_num(row.get("SpeedSlopeDecay")),
            confluence_decay=_num(row.get("ConfluenceDecay")),
            zone_transitioned=_bool(row.get("ZoneTransitioned")),
        )


# ---------------------------------------------------------------------------
# Strategy trade log (two rows per position)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class TradeLogRow:
    """One ENTRY or EXIT row of the strategy trade log."""

    ticket: int | str
    row_type: str
    symbol: str = ""
    type: str = ""  # BUY / SELL
    timestamp: str = ""
    open_time: str = ""
    close_time: str = ""
    price: float = 0.0
    open_price: float = 0.0
    close_price: float = 0.0
    strategy_name: str = ""
    strategy_version: str = ""
    entry: PhysicsMetrics = field(default_factory=PhysicsMetrics)
    exit: PhysicsMetrics = field(default_factory=PhysicsMetrics)
    exit_reason: str = ""
    performance: ExitPerformance = field(default_factory=ExitPerformance)

    @property
    def normalized_row_type(self) -> str:
        return _str(self.row_type).upper()

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> TradeLogRow:
        return cls(
            ticket=row.get("Ticket", 0),
            row_type=_str(row.get("RowType")).upper(),
            symbol=_str(row.get("Symbol")),
            type=_str(row.get("Type")),
            timestamp=_str(row.get("Timestamp")),
            open_time=_str(row.get("OpenTime")),
            close_time=_str(row.get("CloseTime")),
            price=_num(row.get("Price")),
            open_price=_num(row.get("OpenPrice")),
            close_price=_num(row.get("ClosePrice")),
            strategy_name=_str(row.get("EAName")),
            strategy_version=_str(row.get("EAVersion")),
            entry=PhysicsMetrics.from_mapping(row, prefix="Entry_"),
            exit=PhysicsMetrics.from_mapping(row, prefix="Exit_"),
            exit_reason=_str(row.get("ExitReason")),
            performance=ExitPerformance.from_mapping(row),
        )


@dataclass(frozen=True)
class StrategyTradeRecord:
    """ENTRY and EXIT halves of one strategy position, either may be absent."""

    ticket: int
    entry: TradeLogRow | None = None
    exit: TradeLogRow | None = None

    @property
    def symbol(self) -> str:
        if self.entry is not None:
            return self.entry.symbol
        return self.exit.symbol if self.exit is not None else ""


# ---------------------------------------------------------------------------
# Signal log
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SignalRecord:
    """One evaluated trading opportunity, whether or not it was traded."""

    symbol: str
    timestamp: str
    signal_type: str  # BUY / SELL
    signal: float = 0.0
    metrics: PhysicsMetrics = field(default_factory=PhysicsMetrics)
    price: float = 0.0
    physics_pass: str = ""  # PASS / FAIL
    reject_reason: str = ""
    strategy_name: str = ""
    strategy_version: str = ""

    @property
    def is_buy(self) -> bool:
        return "BUY" in self.signal_type.upper()

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> SignalRecord:
        return cls(
            symbol=_str(row.get("Symbol")),
            timestamp=_str(row.get("Timestamp")),
            signal_type=_str(row.get("SignalType")),
            signal=_num(row.get("Signal")),
            metrics=PhysicsMetrics.from_mapping(row),
            price=_num(row.get("Price")),
            physics_pass=_str(row.get("PhysicsPass")),
            reject_reason=_str(row.get("RejectReason")),
            strategy_name=_str(row.get("EAName")),
            strategy_version=_str(row.get("EAVersion")),
        )

"""Output data models for reconciliation.

ReconciledTrade is built once per deal pair and never mutated. Strategy fields
fall back to zero/empty defaults when no strategy record matched; signal
fields fall back to None. ``strategy_match`` and ``SignalFields.matched``
keep "no data" distinguishable from a legitimate zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from src.ledger.matcher import MatchMethod
from src.ledger.models import ExitPerformance, PhysicsMetrics
from src.timeseg.normalizer import NormalizedTime

DATA_MODEL_VERSION = "2.0.0"


class TradeDirection(StrEnum):
    LONG = "Long"
    SHORT = "Short"


class TradeResult(StrEnum):
    WIN = "Win"
    LOSS = "Loss"
    BREAKEVEN = "Breakeven"
    DATA_ERROR = "DataError"  # broker profit missing / unparseable


class Severity(StrEnum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"


class ProfitMatchStatus(StrEnum):
    EXACT = "exact"            # < $0.01
    CLOSE = "close"            # < $1.00
    ACCEPTABLE = "acceptable"  # within 1% variance
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class StrategyFields:
    """Strategy trade-log values merged into a trade (neutral when unmatched)."""

    strategy_id: str = "Unknown"
    strategy_version: str = "Unknown"
    entry_symbol: str = ""
    exit_symbol: str = ""
    entry: PhysicsMetrics = field(default_factory=PhysicsMetrics)
    exit: PhysicsMetrics = field(default_factory=PhysicsMetrics)
    exit_reason: str = ""
    performance: ExitPerformance = field(default_factory=ExitPerformance)
    profit: float | None = None  # None when no EXIT row matched


@dataclass(frozen=True)
class SignalFields:
    """Signal-log values merged into a trade (all None when unmatched)."""

    matched: bool = False
    timestamp: str | None = None
    time_delta_minutes: float | None = None
    metrics: PhysicsMetrics | None = None
    physics_pass: str | None = None
    reject_reason: str | None = None


@dataclass(frozen=True)
class DataQuality:
    score: int
    missing_fields: tuple[str, ...] = ()
    validation_flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReconciledTrade:
    """One broker round trip with everything the other logs say about it."""

    index: int
    # Broker entry
    in_deal: int
    in_trade_id: int
    symbol: str
    in_order_type: str
    volume: float
    entry_price: float
    entry_balance: float
    entry_time: NormalizedTime
    # Broker exit
    out_deal: int
    out_trade_id: int
    out_symbol: str
    out_order_type: str
    exit_price: float
    exit_balance: float
    profit: float
    commission: float
    swap: float
    comment: str
    exit_time: NormalizedTime
    # Result
    direction: TradeDirection
    result: TradeResult
    duration_minutes: int
    roi_pct: float
    risk_reward: float
    mae: float
    mfe: float
    # Strategy log
    strategy_match: MatchMethod
    strategy_ticket: int | None
    strategy: StrategyFields
    # Signal log
    entry_signal: SignalFields
    exit_signal: SignalFields
    quality: DataQuality

    @property
    def trade_log_source(self) -> str:
        return "not_found" if self.strategy_match == MatchMethod.UNMATCHED else "trade_log"

    @property
    def signal_log_source(self) -> str:
        if self.entry_signal.matched or self.exit_signal.matched:
            return "signal_log"
        return "not_found"

    @property
    def net_profit(self) -> float:
        """Broker profit including commission and swap."""
        return self.profit + self.commission + self.swap


@dataclass(frozen=True)
class ValidationIssue:
    type: str
    trade_index: int
    message: str
    severity: Severity


@dataclass(frozen=True)
class ValidationSummary:
    is_valid: bool
    critical_errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    quality_score: int


@dataclass(frozen=True)
class ProfitReconciliation:
    """Broker net profit vs strategy-reported profit over the whole dataset."""

    broker_total: float
    strategy_total: float
    difference: float
    match_pct: float
    variance_pct: float
    status: ProfitMatchStatus


@dataclass(frozen=True)
class ProcessingStatistics:
    deal_rows: int
    trade_log_rows: int
    signal_rows: int
    paired_trades: int
    unpaired_rows: int
    strategy_matched: int
    entry_fallback_matches: int
    exit_fallback_matches: int
    signals_matched: int
    duplicate_trade_log_rows: int
    elapsed_ms: float
    quality_score: int


@dataclass(frozen=True)
class ReconciliationResult:
    processed_at: str
    trades: tuple[ReconciledTrade, ...]
    statistics: ProcessingStatistics
    validation: ValidationSummary
    profit_check: ProfitReconciliation
    data_model_version: str = DATA_MODEL_VERSION

    @property
    def total_trades(self) -> int:
        return len(self.trades)

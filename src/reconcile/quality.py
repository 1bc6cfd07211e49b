"""Per-trade data quality, dataset validation and profit reconciliation.

Nothing here raises on bad data: problems become flags, warnings or
critical errors in the returned summaries.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from src.ledger.matcher import MatchMethod, SignalMatch, TradeMatch
from src.reconcile.models import (
    DataQuality,
    ProfitMatchStatus,
    ProfitReconciliation,
    ReconciledTrade,
    Severity,
    TradeResult,
    ValidationIssue,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

# Per-trade score deductions (start at 100, floor 0)
MISSING_STRATEGY_ENTRY_PENALTY = 30
MISSING_STRATEGY_EXIT_PENALTY = 20
MISSING_ENTRY_SIGNAL_PENALTY = 15
MISSING_EXIT_SIGNAL_PENALTY = 15

# Dataset score deductions
CRITICAL_PENALTY = 10
WARNING_PENALTY = 2

EXACT_PROFIT_TOLERANCE = 0.01
CLOSE_PROFIT_TOLERANCE = 1.00
ACCEPTABLE_MATCH_PCT = 99.0


# ---------------------------------------------------------------------------
# Per trade
# ---------------------------------------------------------------------------
def score_trade(
    match: TradeMatch,
    entry_signal: SignalMatch,
    exit_signal: SignalMatch,
) -> int:
    score = 100
    record = match.record
    if record is None or record.entry is None:
        score -= MISSING_STRATEGY_ENTRY_PENALTY
    if record is None or record.exit is None:
        score -= MISSING_STRATEGY_EXIT_PENALTY
    if not entry_signal.matched:
        score -= MISSING_ENTRY_SIGNAL_PENALTY
    if not exit_signal.matched:
        score -= MISSING_EXIT_SIGNAL_PENALTY
    return max(0, score)


def missing_fields(
    match: TradeMatch,
    entry_signal: SignalMatch,
    exit_signal: SignalMatch,
) -> list[str]:
    missing: list[str] = []
    record = match.record
    if record is None or record.entry is None:
        missing.append("STRATEGY_ENTRY_DATA")
    if record is None or record.exit is None:
        missing.append("STRATEGY_EXIT_DATA")
    if not entry_signal.matched:
        missing.append("ENTRY_SIGNAL_DATA")
    if not exit_signal.matched:
        missing.append("EXIT_SIGNAL_DATA")
    return missing


def validation_flags(match: TradeMatch, result: TradeResult) -> list[str]:
    flags: list[str] = []
    if not match.matched:
        flags.append("NO_STRATEGY_MATCH")
    elif match.method == MatchMethod.ENTRY_FALLBACK:
        flags.append("FALLBACK_ENTRY_MATCH")
    elif match.method == MatchMethod.EXIT_FALLBACK:
        flags.append("FALLBACK_EXIT_MATCH")

    exit_row = match.record.exit if match.record is not None else None
    if exit_row is not None:
        if exit_row.performance.zone_transitioned:
            flags.append("ZONE_TRANSITION")
        if exit_row.performance.exit_quality_class == "Early":
            flags.append("EARLY_EXIT")

    if result == TradeResult.DATA_ERROR:
        flags.append("INVALID_PROFIT")
    return flags


def assess_trade(
    match: TradeMatch,
    entry_signal: SignalMatch,
    exit_signal: SignalMatch,
    result: TradeResult,
) -> DataQuality:
    return DataQuality(
        score=score_trade(match, entry_signal, exit_signal),
        missing_fields=tuple(missing_fields(match, entry_signal, exit_signal)),
        validation_flags=tuple(validation_flags(match, result)),
    )


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------
def _check_trade(trade: ReconciledTrade) -> list[ValidationIssue]:
    i = trade.index
    issues: list[ValidationIssue] = []

    if trade.symbol != trade.out_symbol:
        issues.append(ValidationIssue(
            "SYMBOL_MISMATCH", i,
            f"Symbol inconsistency: IN={trade.symbol}, OUT={trade.out_symbol}",
            Severity.CRITICAL,
        ))
    strategy = trade.strategy
    if strategy.entry_symbol and strategy.entry_symbol != trade.symbol:
        issues.append(ValidationIssue(
            "SYMBOL_MISMATCH_STRATEGY_ENTRY", i,
            f"Strategy entry symbol ({strategy.entry_symbol}) does not match "
            f"broker entry ({trade.symbol})",
            Severity.CRITICAL,
        ))
    if strategy.exit_symbol and trade.out_symbol and strategy.exit_symbol != trade.out_symbol:
        issues.append(ValidationIssue(
            "SYMBOL_MISMATCH_STRATEGY_EXIT", i,
            f"Strategy exit symbol ({strategy.exit_symbol}) does not match "
            f"broker exit ({trade.out_symbol})",
            Severity.CRITICAL,
        ))

    # Broker entry/exit order ids usually differ; reported, not fatal
    if trade.in_trade_id != trade.out_trade_id:
        issues.append(ValidationIssue(
            "TRADE_ID_MISMATCH", i,
            f"Trade ID mismatch: IN={trade.in_trade_id}, OUT={trade.out_trade_id}",
            Severity.WARNING,
        ))
    if trade.strategy_match == MatchMethod.UNMATCHED:
        issues.append(ValidationIssue(
            "NO_STRATEGY_MATCH", i, "No matching strategy trade data found", Severity.WARNING,
        ))
    if not trade.entry_signal.matched:
        issues.append(ValidationIssue(
            "NO_ENTRY_SIGNAL_MATCH", i, "No matching entry signal found", Severity.WARNING,
        ))
    if not trade.exit_signal.matched:
        issues.append(ValidationIssue(
            "NO_EXIT_SIGNAL_MATCH", i, "No matching exit signal found", Severity.WARNING,
        ))
    return issues


def dataset_quality_score(critical_count: int, warning_count: int) -> int:
    return max(0, 100 - CRITICAL_PENALTY * critical_count - WARNING_PENALTY * warning_count)


def validate_dataset(trades: Sequence[ReconciledTrade]) -> ValidationSummary:
    """Run consistency checks over all reconciled trades.

    Symbol mismatches are critical; missing ids/matches are warnings.
    """
    critical: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    for trade in trades:
        for issue in _check_trade(trade):
            (critical if issue.severity == Severity.CRITICAL else warnings).append(issue)

    score = dataset_quality_score(len(critical), len(warnings))
    if critical:
        logger.warning("%d critical validation errors", len(critical))
    if warnings:
        logger.info("%d validation warnings", len(warnings))
    logger.info("Data quality score: %d/100", score)

    return ValidationSummary(
        is_valid=not critical,
        critical_errors=tuple(critical),
        warnings=tuple(warnings),
        quality_score=score,
    )


def reconcile_profit(trades: Sequence[ReconciledTrade]) -> ProfitReconciliation:
    """Compare broker net profit with strategy-reported profit.

    Broker total includes commission and swap so it lines up with the
    tester's "Total Net Profit". Missing strategy profit counts as 0.
    """
    broker_total = math.fsum(t.net_profit for t in trades)
    strategy_total = math.fsum(
        t.strategy.profit for t in trades if t.strategy.profit is not None
    )
    difference = abs(broker_total - strategy_total)
    match_pct = (1 - difference / abs(broker_total)) * 100 if broker_total != 0 else 0.0
    variance_pct = 100 - match_pct

    if difference < EXACT_PROFIT_TOLERANCE:
        status = ProfitMatchStatus.EXACT
    elif difference < CLOSE_PROFIT_TOLERANCE:
        status = ProfitMatchStatus.CLOSE
    elif match_pct > ACCEPTABLE_MATCH_PCT:
        status = ProfitMatchStatus.ACCEPTABLE
    else:
        status = ProfitMatchStatus.MISMATCH

    log = logger.warning if status == ProfitMatchStatus.MISMATCH else logger.info
    log(
        "Profit reconciliation %s: broker=$%.2f strategy=$%.2f diff=$%.2f (%.2f%% variance)",
        status, broker_total, strategy_total, difference, variance_pct,
    )

    return ProfitReconciliation(
        broker_total=broker_total,
        strategy_total=strategy_total,
        difference=difference,
        match_pct=match_pct,
        variance_pct=variance_pct,
        status=status,
    )

"""
Statement Reconciliation

Compares computed cycles against an externally supplied ground truth (an
imported statement) and proposes the manual correction that would make the
two agree. Nothing here mutates the manual ledger: the caller decides
whether to merge the suggested entry and recompute.
"""
from dataclasses import dataclass, replace
from datetime import date
from typing import Mapping, Optional, Sequence, Tuple
import logging

from skystatus.core.logging import log_data_quality
from skystatus.models import (
    DataQualityWarning,
    ManualMonthEntry,
    MonthKey,
    QualificationCycleStats,
    StatusLevel,
    WarningCode,
)
from skystatus.services.rollover import level_up_rollover
from skystatus.services.status_levels import ProgramRules
from skystatus.services.ultimate import display_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementSnapshot:
    """Official balance as printed on a statement."""
    as_of: date
    xp_balance: int
    status: Optional[StatusLevel] = None


@dataclass
class ReconciliationResult:
    computed_xp: int
    official_xp: int
    discrepancy: int                 # official - computed
    matches: bool
    status_matches: Optional[bool]   # None when the statement carries no status
    suggested_entry: Optional[Tuple[MonthKey, ManualMonthEntry]] = None
    warning: Optional[DataQualityWarning] = None


def _find_cycle(cycles: Sequence[QualificationCycleStats], day: date) -> Optional[QualificationCycleStats]:
    for cycle in cycles:
        if cycle.contains(day):
            return cycle
    return None


def _with_correction(existing: Optional[ManualMonthEntry], delta: int) -> ManualMonthEntry:
    if existing is None:
        return ManualMonthEntry(correction_xp=delta)
    return replace(existing, correction_xp=existing.correction_xp + delta)


def computed_balance_at(cycle: QualificationCycleStats, as_of: date) -> int:
    """Actual cumulative XP of ``cycle`` through the month of ``as_of``."""
    month = MonthKey.from_date(as_of)
    balance = cycle.rollover_in
    for row in cycle.rows:
        if row.month > month:
            break
        balance = row.actual_cumulative
    return balance


def reconcile_with_statement(
    cycles: Sequence[QualificationCycleStats],
    snapshot: StatementSnapshot,
    manual_ledger: Optional[Mapping[MonthKey, ManualMonthEntry]] = None,
) -> ReconciliationResult:
    """
    Reconcile the cycle covering ``snapshot.as_of`` with the statement.

    When the balances differ, ``suggested_entry`` holds the entry for the
    statement month that closes the gap exactly. Given the manual ledger the
    cycles were computed from, it is that month's existing entry with the
    discrepancy added to its correction, so it can replace the entry by key.
    Without a ledger it carries only the discrepancy, a delta to add to
    whatever the month already holds.
    """
    cycle = _find_cycle(cycles, snapshot.as_of)
    if cycle is None:
        warning = DataQualityWarning(
            code=WarningCode.NO_COVERING_CYCLE,
            message=f"No cycle covers statement date {snapshot.as_of.isoformat()}",
            month=MonthKey.from_date(snapshot.as_of),
        )
        log_data_quality(logger, warning)
        return ReconciliationResult(
            computed_xp=0,
            official_xp=snapshot.xp_balance,
            discrepancy=snapshot.xp_balance,
            matches=snapshot.xp_balance == 0,
            status_matches=None,
            warning=warning,
        )

    computed = computed_balance_at(cycle, snapshot.as_of)
    matches, discrepancy = validate_rollover(computed, snapshot.xp_balance)

    status_matches = None
    if snapshot.status is not None:
        status_matches = display_status(cycle.actual_status, cycle.is_ultimate) == snapshot.status

    suggested = None
    if discrepancy:
        month = MonthKey.from_date(snapshot.as_of)
        suggested = (month, _with_correction((manual_ledger or {}).get(month), discrepancy))
        logger.info(
            f"Statement {snapshot.as_of.isoformat()} differs by {discrepancy} XP "
            f"(computed {computed}, official {snapshot.xp_balance})"
        )

    return ReconciliationResult(
        computed_xp=computed,
        official_xp=snapshot.xp_balance,
        discrepancy=discrepancy,
        matches=matches,
        status_matches=status_matches,
        suggested_entry=suggested,
    )


def validate_rollover(calculated: int, official_starting_xp: int) -> Tuple[bool, int]:
    """
    Compare a computed balance with the official one.

    Returns:
        (matches, discrepancy) where discrepancy = official - calculated
    """
    discrepancy = official_starting_xp - calculated
    return discrepancy == 0, discrepancy


def simulate_rollover(current_xp: int, target_status: StatusLevel, rules: ProgramRules) -> int:
    """Rollover that would carry if ``target_status`` were reached right now."""
    return level_up_rollover(current_xp, target_status, rules).amount

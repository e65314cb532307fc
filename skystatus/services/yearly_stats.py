"""
Multi-Year Stats Aggregator

Lifetime reporting on synthetic qualification years. Unlike the cycle
segmenter, years here are calendar-anchored (first day of the configured
start month to the day before the next one) and never shift on a level-up.
The output feeds waste and efficiency metrics only; live status comes from
the cycles.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Mapping, Optional, Sequence
import logging

from skystatus.models import FlightRecord, ManualMonthEntry, MonthKey, StatusLevel
from skystatus.services.monthly_ledger import (
    aggregate_months,
    earliest_activity,
    latest_activity,
    split_totals,
)
from skystatus.services.rollover import calculate_rollover
from skystatus.services.status_levels import ProgramRules, attain_threshold, status_from_xp

logger = logging.getLogger(__name__)


@dataclass
class QualificationYearSummary:
    """One synthetic qualification year."""
    year: int                # calendar year in which the window ends
    start_date: date
    end_date: date
    rollover_in: int
    earned_xp: int           # projected track, excluding rollover
    actual_xp: int           # actual track, excluding rollover
    total_xp: int            # rollover_in + earned_xp
    actual_total_xp: int     # rollover_in + actual_xp
    status_reached: StatusLevel
    projected_status: StatusLevel
    rollover_out: int
    waste: int
    projected_waste: int
    is_complete: bool
    yoy_change: Optional[int] = None


@dataclass
class LifetimeSummary:
    total_earned: int
    total_wasted: int
    efficiency_pct: float    # share of earned XP not lost to the cap
    years: int


def qualification_year_of(day: date, start_month: int) -> int:
    """Key of the qualification year containing ``day``."""
    if start_month == 1 or day.month < start_month:
        return day.year
    return day.year + 1


def qualification_year_bounds(year: int, start_month: int):
    """(first day, last day) of qualification year ``year``."""
    if start_month == 1:
        return date(year, 1, 1), date(year, 12, 31)
    start = date(year - 1, start_month, 1)
    end = date(year, start_month, 1) - timedelta(days=1)
    return start, end


def _year_rollover(actual_total: int, status: StatusLevel, rules: ProgramRules) -> int:
    if status == StatusLevel.EXPLORER:
        return 0
    return calculate_rollover(actual_total, attain_threshold(status, rules), rules).amount


def aggregate_years(
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
    today: date,
    rules: ProgramRules,
    rollover_seed: int = 0,
) -> List[QualificationYearSummary]:
    """
    Build one summary per qualification year, from the year of the earliest
    activity through the year containing ``max(today, latest activity)``.

    Args:
        flights: validated, priced flights
        manual_ledger: validated manual entries
        today: the instant splitting actual from scheduled
        rules: program thresholds and caps
        rollover_seed: XP carried into the first year (clamped to the cap)

    Returns:
        Chronologically ordered year summaries; empty when there is no data
    """
    earliest = earliest_activity(flights, manual_ledger)
    if earliest is None:
        return []
    latest = latest_activity(flights, manual_ledger)
    start_month = rules.year_start_month

    first_year = qualification_year_of(earliest, start_month)
    last_year = qualification_year_of(max(today, latest), start_month)

    summaries: List[QualificationYearSummary] = []
    rollover_in = min(rules.rollover_cap, max(0, rollover_seed))
    previous_earned = None

    for year in range(first_year, last_year + 1):
        start, end = qualification_year_bounds(year, start_month)
        months = aggregate_months(flights, manual_ledger, today, start=start, end=end)
        actual, projected = split_totals(months)

        actual_total = rollover_in + actual
        total = rollover_in + projected
        status_reached = status_from_xp(actual_total, rules)
        projected_status = status_from_xp(total, rules)
        rollover_out = _year_rollover(actual_total, status_reached, rules)

        summaries.append(QualificationYearSummary(
            year=year,
            start_date=start,
            end_date=end,
            rollover_in=rollover_in,
            earned_xp=projected,
            actual_xp=actual,
            total_xp=total,
            actual_total_xp=actual_total,
            status_reached=status_reached,
            projected_status=projected_status,
            rollover_out=rollover_out,
            waste=max(0, actual_total - rules.utilisation_ceiling),
            projected_waste=max(0, total - rules.utilisation_ceiling),
            is_complete=end < today,
            yoy_change=projected - previous_earned if previous_earned is not None else None,
        ))

        previous_earned = projected
        rollover_in = rollover_out

    logger.debug(f"Aggregated {len(summaries)} qualification year(s)")
    return summaries


def lifetime_summary(years: Sequence[QualificationYearSummary]) -> LifetimeSummary:
    """
    Lifetime totals on the actual track.

    Efficiency is the share of earned XP that was not wasted above the
    utilisation ceiling; with nothing earned it is 100.
    """
    total_earned = sum(y.actual_xp for y in years)
    total_wasted = sum(y.waste for y in years)
    if total_earned > 0:
        efficiency = max(0.0, round((total_earned - total_wasted) / total_earned * 100, 1))
    else:
        efficiency = 100.0
    return LifetimeSummary(
        total_earned=total_earned,
        total_wasted=total_wasted,
        efficiency_pct=efficiency,
        years=len(years),
    )

"""
Qualification Cycle Segmenter

Partitions the activity timeline into qualification cycles.

A cycle starts at a known date (from settings, or chained from the previous
cycle) and ends at the earliest of:
- its anniversary (start + 1 year - 1 day)
- the month in which actual cumulative XP first reaches a status above the
  one held at cycle start (level-up; wins a tie with the anniversary)

After a level-up the next cycle starts the day after the level-up month at
the new status ("chaining"). A starting balance that already reaches a
higher status promotes in the start month. Projected level-ups are reported
but never truncate the actual ledger.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Mapping, Optional, Sequence, Tuple
import logging

from skystatus.core.logging import log_data_quality
from skystatus.models import (
    DataQualityWarning,
    FlightRecord,
    ManualMonthEntry,
    MonthKey,
    QualificationCycleStats,
    QualificationSettings,
    StatusLevel,
    WarningCode,
    anniversary_end,
)
from skystatus.services.level_up import (
    ACTUAL_TRACK,
    PROJECTED_TRACK,
    cycle_state,
    find_promotion,
    mark_threshold_crossings,
    status_snapshot,
)
from skystatus.services.monthly_ledger import (
    MonthActivity,
    aggregate_months,
    build_ledger_rows,
    earliest_activity,
    latest_activity,
)
from skystatus.services.rollover import (
    anniversary_rollover,
    clamp_seed,
    clamp_warning,
    level_up_rollover,
)
from skystatus.services.status_levels import (
    ProgramRules,
    requalification_threshold,
    soft_landing,
    status_from_xp,
    xp_status,
)

logger = logging.getLogger(__name__)


@dataclass
class CycleSeed:
    """Where and how the first cycle starts."""
    start_date: date
    status: StatusLevel
    rollover_in: int


@dataclass
class SegmentationResult:
    cycles: List[QualificationCycleStats]
    warnings: List[DataQualityWarning]


def anniversary_anchor(day: date, anniversary_month: int) -> date:
    """First day of the most recent ``anniversary_month`` on or before ``day``."""
    year = day.year if day.month >= anniversary_month else day.year - 1
    return date(year, anniversary_month, 1)


def _exclude_before(
    start: date,
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
) -> Tuple[List[FlightRecord], dict, List[DataQualityWarning]]:
    """Drop activity that an imported surplus already accounts for."""
    kept_flights = []
    kept_ledger = {}
    warnings = []

    for flight in flights:
        if flight.date < start:
            warnings.append(DataQualityWarning(
                code=WarningCode.PRECEDES_SURPLUS_OVERRIDE,
                message=f"Flight {flight.route} on {flight.date.isoformat()} precedes the imported surplus start",
                record_id=flight.id,
                month=flight.month,
            ))
        else:
            kept_flights.append(flight)

    for month, entry in manual_ledger.items():
        if month.last_day() < start:
            warnings.append(DataQualityWarning(
                code=WarningCode.PRECEDES_SURPLUS_OVERRIDE,
                message=f"Manual entry for {month} precedes the imported surplus start",
                record_id=str(month),
                month=month,
            ))
        else:
            kept_ledger[month] = entry

    if warnings:
        logger.info(f"Excluded {len(warnings)} record(s) before surplus start {start.isoformat()}")
    return kept_flights, kept_ledger, warnings


def resolve_first_cycle(
    config: Optional[QualificationSettings],
    earliest: Optional[date],
    today: date,
    rules: ProgramRules,
) -> Tuple[Optional[CycleSeed], List[DataQualityWarning]]:
    """
    Decide the first cycle's start date, status and rollover seed.

    Returns:
        (seed or None when there is nothing to segment, warnings)
    """
    warnings: List[DataQualityWarning] = []

    if config is None:
        if earliest is None:
            return None, warnings
        start = anniversary_anchor(earliest, rules.anniversary_month)
        logger.info(f"No qualification settings, first cycle inferred at {start.isoformat()}")
        return CycleSeed(start_date=start, status=StatusLevel.EXPLORER, rollover_in=0), warnings

    status = xp_status(config.starting_status)

    if config.surplus_override is not None:
        start = config.surplus_override.start_month.first_day()
        seed = config.surplus_override.surplus_xp
    else:
        start = config.cycle_start_date or anniversary_anchor(earliest or today, rules.anniversary_month)
        seed = config.starting_xp
        if earliest is not None and earliest < start:
            reanchored = MonthKey.from_date(earliest).first_day()
            warning = DataQualityWarning(
                code=WarningCode.CYCLE_START_REANCHORED,
                message=(
                    f"Cycle start {start.isoformat()} is after the earliest activity "
                    f"({earliest.isoformat()}); cycle re-anchored to {reanchored.isoformat()}"
                ),
                record_id="settings",
                month=MonthKey.from_date(earliest),
            )
            log_data_quality(logger, warning)
            warnings.append(warning)
            start = reanchored

    seed, seed_warning = clamp_seed(seed, rules)
    if seed_warning is not None:
        warnings.append(seed_warning)

    return CycleSeed(start_date=start, status=status, rollover_in=seed), warnings


def _with_seed_crossing(
    activities: List[MonthActivity],
    start_date: date,
    starting_status: StatusLevel,
    rollover_in: int,
    today: date,
    rules: ProgramRules,
) -> List[MonthActivity]:
    """
    A seed that already reaches a higher status crosses in the start month.

    That month gets a record even without activity so the level-up has a
    row to land on.
    """
    if status_from_xp(rollover_in, rules).rank <= xp_status(starting_status).rank:
        return activities
    start_month = MonthKey.from_date(start_date)
    if activities and activities[0].month == start_month:
        return activities
    logger.info(f"Rollover of {rollover_in} XP promotes {starting_status.value} in {start_month}")
    seed_month = MonthActivity(month=start_month, is_future=start_month > MonthKey.from_date(today))
    return [seed_month] + list(activities)


def build_cycle(
    cycle_index: int,
    start_date: date,
    starting_status: StatusLevel,
    rollover_in: int,
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
    today: date,
    rules: ProgramRules,
    chained: bool = False,
) -> Tuple[QualificationCycleStats, List[DataQualityWarning]]:
    """
    Build one cycle starting at ``start_date``.

    The rows run until the anniversary or, when the actual track promotes,
    through the level-up month only. Later activity belongs to the next
    cycle and is picked up when that cycle aggregates its own window.
    """
    warnings: List[DataQualityWarning] = []
    natural_end = anniversary_end(start_date)

    activities = aggregate_months(flights, manual_ledger, today, start=start_date, end=natural_end)
    activities = _with_seed_crossing(activities, start_date, starting_status, rollover_in, today, rules)
    rows = build_ledger_rows(activities, rollover_in)

    promotion = find_promotion(rows, starting_status, rules, ACTUAL_TRACK)
    if promotion is not None:
        rows = rows[:promotion.row_index + 1]
        end_date = min(promotion.month.last_day(), natural_end)
    else:
        end_date = natural_end

    projected_promotion = find_promotion(rows, starting_status, rules, PROJECTED_TRACK)
    if projected_promotion is not None:
        projected_end_date = min(projected_promotion.month.last_day(), end_date)
    else:
        projected_end_date = end_date

    actual_crossing, projected_crossing = mark_threshold_crossings(rows, starting_status, rules)
    snapshot = status_snapshot(rows, starting_status, rollover_in, rules)

    if promotion is not None:
        ending_status = promotion.status
        next_status = promotion.status
        requalified = True
        rollover = level_up_rollover(snapshot.actual_xp, promotion.status, rules)
        logger.info(
            f"Cycle {cycle_index} closed by level-up to {promotion.status.value} in {promotion.month}"
        )
    else:
        ending_status = snapshot.actual_status
        requalified = snapshot.actual_xp >= requalification_threshold(ending_status, rules)
        next_status = soft_landing(ending_status, snapshot.actual_xp, rules)
        rollover = anniversary_rollover(snapshot.actual_xp, ending_status, rules)

    last_month = rows[-1].month if rows else MonthKey.from_date(end_date)
    clamped = clamp_warning(rollover, cycle_index, last_month)
    if clamped is not None:
        warnings.append(clamped)

    cycle = QualificationCycleStats(
        cycle_index=cycle_index,
        start_date=start_date,
        end_date=end_date,
        projected_end_date=projected_end_date,
        starting_status=starting_status,
        ending_status=ending_status,
        projected_ending_status=snapshot.projected_status,
        rollover_in=rollover_in,
        rollover_out=rollover.amount,
        rows=rows,
        ended_by_level_up=promotion is not None,
        projected_level_up=projected_promotion is not None,
        level_up_month=promotion.month if promotion else None,
        projected_level_up_month=projected_promotion.month if projected_promotion else None,
        chained=chained,
        state=cycle_state(actual_crossing, projected_crossing),
        is_closed=promotion is not None or end_date < today,
        actual_status=snapshot.actual_status,
        actual_xp=snapshot.actual_xp,
        actual_xp_to_next=snapshot.actual_xp_to_next,
        projected_status=snapshot.projected_status,
        projected_xp=snapshot.projected_xp,
        projected_xp_to_next=snapshot.projected_xp_to_next,
        requalified=requalified,
        next_status=next_status,
    )
    return cycle, warnings


def segment_cycles(
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
    config: Optional[QualificationSettings],
    today: date,
    rules: ProgramRules,
) -> SegmentationResult:
    """
    Chain cycles from the first start until the cycle covering
    ``max(today, latest activity)`` has been built.

    Args:
        flights: validated, priced flights
        manual_ledger: validated manual entries
        config: qualification settings, or None to infer everything
        today: the instant splitting actual from scheduled
        rules: program thresholds and caps

    Returns:
        SegmentationResult with the ordered cycles and any warnings
    """
    warnings: List[DataQualityWarning] = []

    if config is not None and config.surplus_override is not None:
        flights, manual_ledger, excluded = _exclude_before(
            config.surplus_override.start_month.first_day(), flights, manual_ledger
        )
        warnings.extend(excluded)

    earliest = earliest_activity(flights, manual_ledger)
    seed, seed_warnings = resolve_first_cycle(config, earliest, today, rules)
    warnings.extend(seed_warnings)
    if seed is None:
        return SegmentationResult(cycles=[], warnings=warnings)

    latest = latest_activity(flights, manual_ledger)
    horizon = max(today, latest) if latest else today

    cycles: List[QualificationCycleStats] = []
    start = seed.start_date
    status = seed.status
    rollover_in = seed.rollover_in
    chained = False

    while True:
        cycle, cycle_warnings = build_cycle(
            cycle_index=len(cycles),
            start_date=start,
            starting_status=status,
            rollover_in=rollover_in,
            flights=flights,
            manual_ledger=manual_ledger,
            today=today,
            rules=rules,
            chained=chained,
        )
        cycles.append(cycle)
        warnings.extend(cycle_warnings)

        if cycle.end_date >= horizon:
            break

        start = cycle.end_date + timedelta(days=1)
        status = cycle.next_status
        rollover_in = cycle.rollover_out
        chained = cycle.ended_by_level_up

    logger.debug(f"Segmented {len(cycles)} cycle(s) from {seed.start_date.isoformat()}")
    return SegmentationResult(cycles=cycles, warnings=warnings)


def find_active_cycle(
    cycles: Sequence[QualificationCycleStats],
    today: date,
) -> Optional[QualificationCycleStats]:
    """
    The cycle containing today, else the first one not yet ended, else the
    last one. None for an empty list.
    """
    for cycle in cycles:
        if cycle.contains(today):
            return cycle
    for cycle in cycles:
        if cycle.end_date >= today:
            return cycle
    return cycles[-1] if cycles else None

"""
Monthly Ledger Builder

Aggregates flights and manual entries into one record per calendar month,
split into an "actual" track (already happened relative to today) and a
"scheduled" track (still to come).

Rules:
- A flight dated before today is actual; today or later is scheduled.
- Manual bonuses count as actual unless their month lies after today's
  month, in which case they are scheduled.
- Signed corrections always count as actual. They reconcile against a
  statement that was already issued, and keeping them off the scheduled
  track keeps scheduled XP non-negative (actual never exceeds projected).
- Months without any activity produce no record.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from skystatus.models import (
    DataQualityWarning,
    FlightRecord,
    ManualMonthEntry,
    MonthKey,
    XPLedgerRow,
)
from skystatus.services.intake import normalize_flights, normalize_manual_ledger

logger = logging.getLogger(__name__)


@dataclass
class MonthActivity:
    """Everything that happened (or will happen) in one calendar month."""
    month: MonthKey
    is_future: bool

    actual_flight_xp: int = 0
    scheduled_flight_xp: int = 0
    actual_sustainability_xp: int = 0
    scheduled_sustainability_xp: int = 0
    actual_flight_count: int = 0
    scheduled_flight_count: int = 0
    actual_uxp: int = 0
    scheduled_uxp: int = 0

    manual: ManualMonthEntry = field(default_factory=ManualMonthEntry)

    @property
    def flight_count(self) -> int:
        return self.actual_flight_count + self.scheduled_flight_count

    @property
    def actual_manual_xp(self) -> int:
        if self.is_future:
            return self.manual.correction_xp
        return self.manual.net_xp

    @property
    def scheduled_manual_xp(self) -> int:
        if self.is_future:
            return self.manual.bonus_xp
        return 0

    @property
    def actual_xp(self) -> int:
        return self.actual_flight_xp + self.actual_sustainability_xp + self.actual_manual_xp

    @property
    def scheduled_xp(self) -> int:
        return self.scheduled_flight_xp + self.scheduled_sustainability_xp + self.scheduled_manual_xp

    @property
    def projected_xp(self) -> int:
        return self.actual_xp + self.scheduled_xp

    @property
    def is_fully_flown(self) -> bool:
        return self.scheduled_flight_count == 0 and not self.is_future


@dataclass
class MonthlyLedger:
    """Result of build_monthly_ledger()"""
    months: List[MonthActivity]
    warnings: List[DataQualityWarning]


def aggregate_months(
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
    today: date,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[MonthActivity]:
    """
    Aggregate validated inputs into chronologically ordered month records.

    ``start``/``end`` restrict the window (inclusive). A flight belongs to the
    window by its date, a manual entry by the last day of its month.
    """
    current_month = MonthKey.from_date(today)
    months: Dict[MonthKey, MonthActivity] = {}

    def activity_for(month: MonthKey) -> MonthActivity:
        if month not in months:
            months[month] = MonthActivity(month=month, is_future=month > current_month)
        return months[month]

    for flight in flights:
        if start is not None and flight.date < start:
            continue
        if end is not None and flight.date > end:
            continue
        activity = activity_for(flight.month)
        points = flight.points or 0
        if flight.date < today:
            activity.actual_flight_xp += points
            activity.actual_sustainability_xp += flight.sustainability_points
            activity.actual_flight_count += 1
            activity.actual_uxp += flight.ultimate_points
        else:
            activity.scheduled_flight_xp += points
            activity.scheduled_sustainability_xp += flight.sustainability_points
            activity.scheduled_flight_count += 1
            activity.scheduled_uxp += flight.ultimate_points

    for month, entry in manual_ledger.items():
        anchor = month.last_day()
        if start is not None and anchor < start:
            continue
        if end is not None and anchor > end:
            continue
        if entry.is_empty:
            continue
        activity_for(month).manual = entry

    return [months[key] for key in sorted(months)]


def build_ledger_rows(activities: Iterable[MonthActivity], rollover_in: int) -> List[XPLedgerRow]:
    """
    Turn month records into ledger rows with running totals.

    ``cumulative[0] = rollover_in + total[0]`` and every later row adds its
    own total. The actual track runs in parallel from the same seed.
    Threshold flags are left unset; the level-up detector owns them.
    """
    rows: List[XPLedgerRow] = []
    cumulative = rollover_in
    actual_cumulative = rollover_in

    for activity in activities:
        total = activity.projected_xp
        cumulative += total
        actual_cumulative += activity.actual_xp
        manual = activity.manual
        rows.append(XPLedgerRow(
            month=activity.month,
            label=activity.month.label,
            full_label=activity.month.full_label,
            flight_xp=activity.actual_flight_xp + activity.scheduled_flight_xp,
            sustainability_xp=(
                activity.actual_sustainability_xp
                + activity.scheduled_sustainability_xp
                + manual.sustainability_xp
            ),
            card_spend_xp=manual.card_spend_xp,
            misc_xp=manual.misc_xp,
            correction_xp=manual.correction_xp,
            flight_count=activity.flight_count,
            actual_xp=activity.actual_xp,
            scheduled_xp=activity.scheduled_xp,
            projected_xp=total,
            total_xp=total,
            cumulative=cumulative,
            actual_cumulative=actual_cumulative,
            is_future=activity.is_future,
            is_fully_flown=activity.is_fully_flown,
        ))

    return rows


def build_monthly_ledger(
    flights: Iterable[Any],
    manual_ledger: Optional[Mapping[Any, Any]],
    today: date,
) -> MonthlyLedger:
    """
    Build the full month-by-month ledger from raw inputs.

    Args:
        flights: FlightRecord instances or raw mappings
        manual_ledger: month key -> ManualMonthEntry (or mapping)
        today: the instant splitting actual from scheduled

    Returns:
        MonthlyLedger with one record per month that has activity, plus
        warnings for every record that had to be skipped
    """
    valid_flights, warnings = normalize_flights(flights)
    ledger, ledger_warnings = normalize_manual_ledger(manual_ledger)
    warnings.extend(ledger_warnings)

    unpriced = [f for f in valid_flights if f.points is None]
    if unpriced:
        logger.info(f"{len(unpriced)} flight(s) without points counted as 0 XP")

    months = aggregate_months(valid_flights, ledger, today)
    return MonthlyLedger(months=months, warnings=warnings)


def earliest_activity(
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
) -> Optional[date]:
    """First day with any activity (manual entries count at their last day)."""
    candidates = [f.date for f in flights]
    candidates.extend(m.last_day() for m, e in manual_ledger.items() if not e.is_empty)
    return min(candidates) if candidates else None


def latest_activity(
    flights: Sequence[FlightRecord],
    manual_ledger: Mapping[MonthKey, ManualMonthEntry],
) -> Optional[date]:
    """Last day with any activity (manual entries count at their last day)."""
    candidates = [f.date for f in flights]
    candidates.extend(m.last_day() for m, e in manual_ledger.items() if not e.is_empty)
    return max(candidates) if candidates else None


def split_totals(activities: Iterable[MonthActivity]) -> Tuple[int, int]:
    """(actual, projected) XP over a set of months."""
    actual = 0
    projected = 0
    for activity in activities:
        actual += activity.actual_xp
        projected += activity.projected_xp
    return actual, projected

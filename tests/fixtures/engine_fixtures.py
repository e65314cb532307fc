"""Builders for engine inputs.

Deterministic: ids are derived from the record contents and ``today`` is
always explicit.
"""
from datetime import date
from typing import Optional

from skystatus.models import (
    CabinClass,
    FlightRecord,
    ManualMonthEntry,
    MonthKey,
    QualificationSettings,
    StatusLevel,
)
from skystatus.services.monthly_ledger import MonthActivity
from skystatus.services.status_levels import ProgramRules


TODAY = date(2025, 6, 15)

# Program defaults, independent of the environment
DEFAULT_RULES = ProgramRules.custom(silver=100, gold=180, platinum=300, retain=300, rollover_cap=300)

# Small ladder: Silver 30, Gold 50, Platinum 100
SMALL_RULES = ProgramRules.custom(silver=30, gold=50, platinum=100, rollover_cap=300)


def make_flight(
    day: date,
    points: Optional[int] = 0,
    sustainability: int = 0,
    route: str = "AMS-CDG",
    airline: str = "KL",
    cabin: CabinClass = CabinClass.ECONOMY,
    uxp: int = 0,
    flight_id: Optional[str] = None,
    flight_number: Optional[str] = None,
) -> FlightRecord:
    return FlightRecord(
        id=flight_id or f"{day.isoformat()}-{route}-{points}",
        date=day,
        route=route,
        airline=airline,
        cabin=cabin,
        points=points,
        sustainability_points=sustainability,
        flight_number=flight_number,
        ultimate_points=uxp,
    )


def make_entry(card: int = 0, saf: int = 0, misc: int = 0, correction: int = 0) -> ManualMonthEntry:
    return ManualMonthEntry(
        card_spend_xp=card,
        sustainability_xp=saf,
        misc_xp=misc,
        correction_xp=correction,
    )


def make_settings(
    status: StatusLevel = StatusLevel.EXPLORER,
    start: Optional[date] = None,
    starting_xp: int = 0,
    starting_uxp: int = 0,
    surplus_override=None,
) -> QualificationSettings:
    return QualificationSettings(
        starting_status=status,
        cycle_start_date=start,
        starting_xp=starting_xp,
        starting_uxp=starting_uxp,
        surplus_override=surplus_override,
    )


def make_activity(
    year: int,
    month: int,
    actual: int = 0,
    scheduled: int = 0,
    is_future: bool = False,
) -> MonthActivity:
    """Month record with the given flight XP on each track."""
    return MonthActivity(
        month=MonthKey(year, month),
        is_future=is_future,
        actual_flight_xp=actual,
        scheduled_flight_xp=scheduled,
        actual_flight_count=1 if actual else 0,
        scheduled_flight_count=1 if scheduled else 0,
    )

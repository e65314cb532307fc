"""
Domain models for the qualification cycle engine.

Plain Python classes and enums (no ORM). Input records are frozen so the
engine can never mutate what the caller handed in; computed rows and cycles
are regular dataclasses built fresh on every invocation.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional
import calendar
import re


class StatusLevel(str, Enum):
    """Status level enumeration (ordered from lowest to highest)."""
    EXPLORER = "Explorer"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    ULTIMATE = "Ultimate"  # Platinum + UXP layer, never reached through XP alone

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    StatusLevel.EXPLORER: 0,
    StatusLevel.SILVER: 1,
    StatusLevel.GOLD: 2,
    StatusLevel.PLATINUM: 3,
    StatusLevel.ULTIMATE: 4,
}


class CabinClass(str, Enum):
    """Cabin class enumeration"""
    ECONOMY = "Economy"
    PREMIUM_ECONOMY = "Premium Economy"
    BUSINESS = "Business"
    FIRST = "First"


class DistanceBand(str, Enum):
    """Distance bands used by the per-flight point table."""
    DOMESTIC = "Domestic"
    MEDIUM = "Medium"        # < 2000 miles
    LONG_1 = "Long 1"        # 2000-3499 miles
    LONG_2 = "Long 2"        # 3500-4999 miles
    LONG_3 = "Long 3"        # >= 5000 miles


class CycleState(str, Enum):
    """Where a cycle stands on its way to the next threshold."""
    ACCUMULATING = "accumulating"
    THRESHOLD_REACHED_PROJECTED = "threshold_reached_projected"
    THRESHOLD_REACHED_ACTUAL = "threshold_reached_actual"


class WarningCode(str, Enum):
    """Data-quality issues surfaced to the caller."""
    INVALID_DATE = "invalid_date"
    INVALID_MONTH = "invalid_month"
    NEGATIVE_POINTS = "negative_points"
    UNKNOWN_CABIN = "unknown_cabin"
    INVALID_RECORD = "invalid_record"
    UNRESOLVED_POINTS = "unresolved_points"
    CYCLE_START_REANCHORED = "cycle_start_reanchored"
    ROLLOVER_SEED_CLAMPED = "rollover_seed_clamped"
    ROLLOVER_CLAMPED = "rollover_clamped"
    PRECEDES_SURPLUS_OVERRIDE = "precedes_surplus_override"
    NO_COVERING_CYCLE = "no_covering_cycle"


_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class MonthKey:
    """A calendar month, validated at construction."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"Year out of range: {self.year}")

    @classmethod
    def parse(cls, value: str) -> "MonthKey":
        """Parse a ``YYYY-MM`` key."""
        match = _MONTH_RE.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Month key must be YYYY-MM, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_date(cls, value: date) -> "MonthKey":
        return cls(value.year, value.month)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def shift(self, months: int) -> "MonthKey":
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(index // 12, index % 12 + 1)

    @property
    def label(self) -> str:
        return calendar.month_abbr[self.month]

    @property
    def full_label(self) -> str:
        return f"{self.label} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class DataQualityWarning:
    """A recoverable problem found while computing (skip, clamp or fallback)."""
    code: WarningCode
    message: str
    record_id: Optional[str] = None
    month: Optional[MonthKey] = None


@dataclass(frozen=True)
class FlightRecord:
    """A single flight leg as consumed by the engine."""
    id: str
    date: date
    route: str
    airline: str
    cabin: CabinClass
    points: Optional[int] = None          # None until the point resolver priced it
    sustainability_points: int = 0
    flight_number: Optional[str] = None
    ultimate_points: int = 0

    @property
    def month(self) -> MonthKey:
        return MonthKey.from_date(self.date)

    def __repr__(self):
        return f"<FlightRecord(id='{self.id}', date={self.date.isoformat()}, route='{self.route}', points={self.points})>"


@dataclass(frozen=True)
class ManualMonthEntry:
    """Manual XP adjustments for one month that do not come from flights."""
    card_spend_xp: int = 0
    sustainability_xp: int = 0
    misc_xp: int = 0
    correction_xp: int = 0  # signed, reconciles against an official statement

    @property
    def bonus_xp(self) -> int:
        return self.card_spend_xp + self.sustainability_xp + self.misc_xp

    @property
    def net_xp(self) -> int:
        return self.bonus_xp + self.correction_xp

    @property
    def is_empty(self) -> bool:
        return not (self.card_spend_xp or self.sustainability_xp or self.misc_xp or self.correction_xp)


@dataclass(frozen=True)
class SurplusOverride:
    """Statement-imported surplus that seeds the first cycle directly."""
    start_month: MonthKey
    surplus_xp: int


@dataclass(frozen=True)
class QualificationSettings:
    """Qualification settings supplied by the traveler or an import."""
    starting_status: StatusLevel = StatusLevel.EXPLORER
    cycle_start_date: Optional[date] = None
    starting_xp: int = 0
    starting_uxp: int = 0
    surplus_override: Optional[SurplusOverride] = None


@dataclass
class XPLedgerRow:
    """One month inside a qualification cycle."""
    month: MonthKey
    label: str
    full_label: str

    # Breakdown (both tracks combined)
    flight_xp: int
    sustainability_xp: int
    card_spend_xp: int
    misc_xp: int
    correction_xp: int
    flight_count: int

    # Actual vs projected split
    actual_xp: int
    scheduled_xp: int
    projected_xp: int      # actual + scheduled
    total_xp: int

    cumulative: int
    actual_cumulative: int

    is_future: bool
    is_fully_flown: bool
    hit_threshold: bool = False
    projected_hit_threshold: bool = False


@dataclass
class QualificationCycleStats:
    """One segmented qualification cycle."""
    cycle_index: int
    start_date: date
    end_date: date
    projected_end_date: date
    starting_status: StatusLevel
    ending_status: StatusLevel
    projected_ending_status: StatusLevel
    rollover_in: int
    rollover_out: int
    rows: List[XPLedgerRow] = field(default_factory=list)

    # Level-up info
    ended_by_level_up: bool = False
    projected_level_up: bool = False
    level_up_month: Optional[MonthKey] = None
    projected_level_up_month: Optional[MonthKey] = None
    chained: bool = False
    state: CycleState = CycleState.ACCUMULATING
    is_closed: bool = False

    # Today snapshot
    actual_status: StatusLevel = StatusLevel.EXPLORER
    actual_xp: int = 0
    actual_xp_to_next: int = 0
    projected_status: StatusLevel = StatusLevel.EXPLORER
    projected_xp: int = 0
    projected_xp_to_next: int = 0

    # Hand-over to the next cycle
    requalified: bool = False
    next_status: StatusLevel = StatusLevel.EXPLORER

    # Ultimate layer
    starting_uxp: int = 0
    actual_uxp: int = 0
    projected_uxp: int = 0
    is_ultimate: bool = False
    projected_ultimate: bool = False
    uxp_rollover_out: int = 0

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def __repr__(self):
        return (
            f"<QualificationCycleStats(index={self.cycle_index}, {self.start_date.isoformat()}.."
            f"{self.end_date.isoformat()}, {self.starting_status.value}->{self.ending_status.value})>"
        )


def anniversary_end(start: date) -> date:
    """One year minus one day after ``start``."""
    try:
        next_start = start.replace(year=start.year + 1)
    except ValueError:
        # Feb 29 start: the anniversary falls on Mar 1
        next_start = date(start.year + 1, 3, 1)
    return next_start - timedelta(days=1)

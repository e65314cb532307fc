from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from typing import Optional, List

from skystatus.models import CabinClass, CycleState, MonthKey, StatusLevel, WarningCode


# Field names (and their camelCase aliases) that map to specific warning codes
DATE_FIELDS = {"flight_date", "date", "flightDate", "cycle_start_date", "cycleStartDate"}
CABIN_FIELDS = {"cabin", "cabinClass"}
POINT_FIELDS = {
    "points", "earnedXP", "xp",
    "sustainability_points", "safXp",
    "ultimate_points", "uxp",
    "card_spend_xp", "amexXp",
    "sustainability_xp", "bonusSafXp",
    "misc_xp", "miscXp",
}


def _parse_iso_date(value):
    """Accept date objects or strict YYYY-MM-DD strings."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
    raise ValueError(f"Date must be YYYY-MM-DD, got {value!r}")


def _parse_cabin(value):
    if isinstance(value, CabinClass):
        return value
    if isinstance(value, str):
        wanted = value.strip().replace("_", " ").replace("-", " ").lower()
        for cabin in CabinClass:
            if cabin.value.lower() == wanted:
                return cabin
    raise ValueError(f"Unknown cabin class: {value!r}")


def _zero_if_none(value):
    return 0 if value is None else value


# =============================================================================
# INTAKE
# =============================================================================

class FlightRecordIn(BaseModel):
    """Raw flight record as produced by intake or import."""
    id: Optional[str] = None
    flight_date: date = Field(..., validation_alias=AliasChoices("flight_date", "date", "flightDate"))
    route: str = Field(..., min_length=3)
    airline: str = ""
    cabin: CabinClass = Field(CabinClass.ECONOMY, validation_alias=AliasChoices("cabin", "cabinClass"))
    points: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("points", "earnedXP", "xp"))
    sustainability_points: int = Field(0, ge=0, validation_alias=AliasChoices("sustainability_points", "safXp"))
    flight_number: Optional[str] = Field(None, validation_alias=AliasChoices("flight_number", "flightNumber"))
    ultimate_points: int = Field(0, ge=0, validation_alias=AliasChoices("ultimate_points", "uxp"))

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("flight_date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return _parse_iso_date(v)

    @field_validator("cabin", mode="before")
    @classmethod
    def validate_cabin(cls, v):
        return _parse_cabin(v)

    @field_validator("sustainability_points", "ultimate_points", mode="before")
    @classmethod
    def default_zero(cls, v):
        return _zero_if_none(v)

    @field_validator("airline", mode="before")
    @classmethod
    def normalize_airline(cls, v):
        return (v or "").strip().upper()


class ManualMonthEntryIn(BaseModel):
    """Manual XP adjustments for one month. Unset fields default to zero."""
    card_spend_xp: int = Field(0, ge=0, validation_alias=AliasChoices("card_spend_xp", "amexXp"))
    sustainability_xp: int = Field(0, ge=0, validation_alias=AliasChoices("sustainability_xp", "bonusSafXp"))
    misc_xp: int = Field(0, ge=0, validation_alias=AliasChoices("misc_xp", "miscXp"))
    correction_xp: int = Field(0, validation_alias=AliasChoices("correction_xp", "correctionXp"))  # signed

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("card_spend_xp", "sustainability_xp", "misc_xp", "correction_xp", mode="before")
    @classmethod
    def default_zero(cls, v):
        return _zero_if_none(v)


class SurplusOverrideIn(BaseModel):
    start_month: str = Field(..., validation_alias=AliasChoices("start_month", "startMonth"))
    surplus_xp: int = Field(..., validation_alias=AliasChoices("surplus_xp", "surplusXp"))

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("start_month")
    @classmethod
    def validate_start_month(cls, v):
        MonthKey.parse(v)
        return v


class QualificationSettingsIn(BaseModel):
    """Qualification settings as stored by the surrounding app."""
    starting_status: StatusLevel = Field(
        StatusLevel.EXPLORER, validation_alias=AliasChoices("starting_status", "startingStatus")
    )
    cycle_start_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("cycle_start_date", "cycleStartDate")
    )
    cycle_start_month: Optional[str] = Field(
        None, validation_alias=AliasChoices("cycle_start_month", "cycleStartMonth")
    )
    starting_xp: int = Field(0, validation_alias=AliasChoices("starting_xp", "startingXP", "rolloverXP"))
    starting_uxp: int = Field(0, validation_alias=AliasChoices("starting_uxp", "startingUXP"))
    surplus_override: Optional[SurplusOverrideIn] = Field(
        None, validation_alias=AliasChoices("surplus_override", "surplusOverride")
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("starting_status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, str):
            for status in StatusLevel:
                if status.value.lower() == v.strip().lower():
                    return status
        return v

    @field_validator("cycle_start_date", mode="before")
    @classmethod
    def validate_cycle_start_date(cls, v):
        if v is None or v == "":
            return None
        return _parse_iso_date(v)

    @field_validator("cycle_start_month")
    @classmethod
    def validate_cycle_start_month(cls, v):
        if v is not None:
            MonthKey.parse(v)
        return v

    @field_validator("starting_xp", "starting_uxp", mode="before")
    @classmethod
    def default_zero(cls, v):
        return _zero_if_none(v)


# =============================================================================
# RESPONSES
# =============================================================================

def _month_to_str(v):
    return str(v) if isinstance(v, MonthKey) else v


class DataQualityWarningResponse(BaseModel):
    code: WarningCode
    message: str
    record_id: Optional[str] = None
    month: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("month", mode="before")
    @classmethod
    def month_key(cls, v):
        return _month_to_str(v)


class XPLedgerRowResponse(BaseModel):
    """One month of a cycle ledger"""
    month: str
    label: str
    full_label: str
    flight_xp: int
    sustainability_xp: int
    card_spend_xp: int
    misc_xp: int
    correction_xp: int
    flight_count: int
    actual_xp: int
    scheduled_xp: int
    projected_xp: int
    total_xp: int
    cumulative: int
    actual_cumulative: int
    is_future: bool
    is_fully_flown: bool
    hit_threshold: bool
    projected_hit_threshold: bool

    model_config = ConfigDict(from_attributes=True)

    @field_validator("month", mode="before")
    @classmethod
    def month_key(cls, v):
        return _month_to_str(v)


class QualificationCycleResponse(BaseModel):
    """Schema for a segmented qualification cycle"""
    cycle_index: int
    start_date: date
    end_date: date
    projected_end_date: date
    starting_status: StatusLevel
    ending_status: StatusLevel
    projected_ending_status: StatusLevel
    rollover_in: int
    rollover_out: int
    rows: List[XPLedgerRowResponse]
    ended_by_level_up: bool
    projected_level_up: bool
    level_up_month: Optional[str] = None
    projected_level_up_month: Optional[str] = None
    chained: bool
    state: CycleState
    is_closed: bool
    actual_status: StatusLevel
    actual_xp: int
    actual_xp_to_next: int
    projected_status: StatusLevel
    projected_xp: int
    projected_xp_to_next: int
    requalified: bool
    next_status: StatusLevel
    starting_uxp: int
    actual_uxp: int
    projected_uxp: int
    is_ultimate: bool
    projected_ultimate: bool
    uxp_rollover_out: int

    model_config = ConfigDict(from_attributes=True)

    @field_validator("level_up_month", "projected_level_up_month", mode="before")
    @classmethod
    def month_key(cls, v):
        return _month_to_str(v)


class EngineResultResponse(BaseModel):
    cycles: List[QualificationCycleResponse]
    active_cycle: Optional[QualificationCycleResponse] = None
    warnings: List[DataQualityWarningResponse]

    model_config = ConfigDict(from_attributes=True)


class QualificationYearResponse(BaseModel):
    """Schema for one synthetic qualification year"""
    year: int
    start_date: date
    end_date: date
    rollover_in: int
    earned_xp: int
    actual_xp: int
    total_xp: int
    actual_total_xp: int
    status_reached: StatusLevel
    projected_status: StatusLevel
    rollover_out: int
    waste: int
    projected_waste: int
    is_complete: bool
    yoy_change: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class LifetimeSummaryResponse(BaseModel):
    total_earned: int
    total_wasted: int
    efficiency_pct: float
    years: int

    model_config = ConfigDict(from_attributes=True)


class YearlyResultResponse(BaseModel):
    years: List[QualificationYearResponse]
    lifetime: LifetimeSummaryResponse
    warnings: List[DataQualityWarningResponse]

    model_config = ConfigDict(from_attributes=True)

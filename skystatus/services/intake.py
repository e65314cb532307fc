"""
Intake Normalization

Turns raw records (engine dataclasses or JSON-like mappings from the
surrounding app) into validated engine inputs. One bad record never stops
the computation: it is skipped and reported as a DataQualityWarning.
"""
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import logging

from pydantic import ValidationError

from skystatus.core.exceptions import InvalidRecordError
from skystatus.core.logging import log_data_quality
from skystatus.models import (
    CabinClass,
    DataQualityWarning,
    FlightRecord,
    ManualMonthEntry,
    MonthKey,
    QualificationSettings,
    StatusLevel,
    SurplusOverride,
    WarningCode,
)
from skystatus.schemas import (
    CABIN_FIELDS,
    DATE_FIELDS,
    POINT_FIELDS,
    FlightRecordIn,
    ManualMonthEntryIn,
    QualificationSettingsIn,
)
from skystatus.services.status_levels import ProgramRules

logger = logging.getLogger(__name__)


FlightInput = Union[FlightRecord, Mapping[str, Any]]
ManualLedgerInput = Mapping[Union[MonthKey, str], Union[ManualMonthEntry, Mapping[str, Any]]]


def _warning_code_for(error: ValidationError) -> WarningCode:
    """Pick the most specific warning code for a pydantic validation error."""
    for detail in error.errors():
        field_name = str(detail["loc"][0]) if detail.get("loc") else ""
        if field_name in DATE_FIELDS:
            return WarningCode.INVALID_DATE
        if field_name in CABIN_FIELDS:
            return WarningCode.UNKNOWN_CABIN
        if field_name in POINT_FIELDS and detail.get("type") == "greater_than_equal":
            return WarningCode.NEGATIVE_POINTS
    return WarningCode.INVALID_RECORD


def _summarize(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail.get("loc", ())) or "record"
        parts.append(f"{location}: {detail.get('msg')}")
    return "; ".join(parts)


def _log_warning(warning: DataQualityWarning):
    log_data_quality(logger, warning, f"Skipping record: {warning.message}")


def _check_flight(flight: FlightRecord) -> FlightRecord:
    """Validate a record handed in directly, coercing datetimes to their date."""
    if isinstance(flight.date, datetime):
        flight = replace(flight, date=flight.date.date())
    elif type(flight.date) is not date:
        raise InvalidRecordError(
            f"Flight {flight.id} has an unusable date ({flight.date!r})",
            code=WarningCode.INVALID_DATE,
            record_id=flight.id,
        )
    if not isinstance(flight.cabin, CabinClass):
        raise InvalidRecordError(
            f"Flight {flight.id} has an unknown cabin ({flight.cabin!r})",
            code=WarningCode.UNKNOWN_CABIN,
            record_id=flight.id,
            month=flight.month,
        )
    if flight.points is not None and flight.points < 0:
        raise InvalidRecordError(
            f"Flight {flight.id} has negative points ({flight.points})",
            code=WarningCode.NEGATIVE_POINTS,
            record_id=flight.id,
            month=flight.month,
        )
    if flight.sustainability_points < 0 or flight.ultimate_points < 0:
        raise InvalidRecordError(
            f"Flight {flight.id} has negative bonus points",
            code=WarningCode.NEGATIVE_POINTS,
            record_id=flight.id,
            month=flight.month,
        )
    return flight


def _flight_from_mapping(raw: Mapping[str, Any], index: int) -> FlightRecord:
    record_id = raw.get("id")
    record_id = str(record_id) if record_id not in (None, "") else f"flight-{index}"
    try:
        parsed = FlightRecordIn.model_validate(raw)
    except ValidationError as e:
        raise InvalidRecordError(
            f"Flight {record_id} rejected ({_summarize(e)})",
            code=_warning_code_for(e),
            record_id=record_id,
        ) from e

    return FlightRecord(
        id=parsed.id or record_id,
        date=parsed.flight_date,
        route=parsed.route.upper(),
        airline=parsed.airline,
        cabin=parsed.cabin,
        points=parsed.points,
        sustainability_points=parsed.sustainability_points,
        flight_number=parsed.flight_number,
        ultimate_points=parsed.ultimate_points,
    )


def normalize_flights(raw_flights: Iterable[FlightInput]) -> Tuple[List[FlightRecord], List[DataQualityWarning]]:
    """
    Validate a flight list.

    Accepts FlightRecord instances or mappings (snake_case or the app's
    camelCase keys). Malformed records are skipped.

    Returns:
        (flights in input order, warnings)
    """
    flights: List[FlightRecord] = []
    warnings: List[DataQualityWarning] = []

    for index, raw in enumerate(raw_flights or ()):
        try:
            if isinstance(raw, FlightRecord):
                flight = raw
            elif isinstance(raw, Mapping):
                flight = _flight_from_mapping(raw, index)
            else:
                raise InvalidRecordError(
                    f"Unsupported flight record type: {type(raw).__name__}",
                    record_id=f"flight-{index}",
                )
            flights.append(_check_flight(flight))
        except InvalidRecordError as e:
            warning = e.to_warning()
            _log_warning(warning)
            warnings.append(warning)

    return flights, warnings


def _month_key(raw_key: Union[MonthKey, str]) -> MonthKey:
    if isinstance(raw_key, MonthKey):
        return raw_key
    try:
        return MonthKey.parse(raw_key)
    except (TypeError, ValueError) as e:
        raise InvalidRecordError(str(e), code=WarningCode.INVALID_MONTH, record_id=str(raw_key)) from e


def _manual_entry(raw_entry: Union[ManualMonthEntry, Mapping[str, Any]], month: MonthKey) -> ManualMonthEntry:
    if isinstance(raw_entry, ManualMonthEntry):
        entry = raw_entry
    elif isinstance(raw_entry, Mapping):
        try:
            parsed = ManualMonthEntryIn.model_validate(raw_entry)
        except ValidationError as e:
            raise InvalidRecordError(
                f"Manual entry for {month} rejected ({_summarize(e)})",
                code=_warning_code_for(e),
                record_id=str(month),
                month=month,
            ) from e
        entry = ManualMonthEntry(**parsed.model_dump())
    else:
        raise InvalidRecordError(
            f"Unsupported manual entry type: {type(raw_entry).__name__}",
            record_id=str(month),
            month=month,
        )

    if entry.card_spend_xp < 0 or entry.sustainability_xp < 0 or entry.misc_xp < 0:
        raise InvalidRecordError(
            f"Manual entry for {month} has a negative bonus",
            code=WarningCode.NEGATIVE_POINTS,
            record_id=str(month),
            month=month,
        )
    return entry


def normalize_manual_ledger(
    raw_ledger: Optional[ManualLedgerInput],
) -> Tuple[Dict[MonthKey, ManualMonthEntry], List[DataQualityWarning]]:
    """
    Validate the manual ledger map.

    Keys may be MonthKey values or ``YYYY-MM`` strings. Empty entries (all
    fields zero) are dropped silently. When two keys resolve to the same
    month the entries are summed.
    """
    ledger: Dict[MonthKey, ManualMonthEntry] = {}
    warnings: List[DataQualityWarning] = []

    for raw_key, raw_entry in (raw_ledger or {}).items():
        try:
            month = _month_key(raw_key)
            entry = _manual_entry(raw_entry, month)
        except InvalidRecordError as e:
            warning = e.to_warning()
            _log_warning(warning)
            warnings.append(warning)
            continue

        if entry.is_empty:
            continue
        existing = ledger.get(month)
        if existing is not None:
            entry = ManualMonthEntry(
                card_spend_xp=existing.card_spend_xp + entry.card_spend_xp,
                sustainability_xp=existing.sustainability_xp + entry.sustainability_xp,
                misc_xp=existing.misc_xp + entry.misc_xp,
                correction_xp=existing.correction_xp + entry.correction_xp,
            )
        ledger[month] = entry

    return dict(sorted(ledger.items())), warnings


def _normalize_ultimate(config: QualificationSettings, rules: ProgramRules) -> QualificationSettings:
    """Ultimate is Platinum plus a UXP balance that already meets the threshold."""
    if config.starting_status != StatusLevel.ULTIMATE:
        return config
    return QualificationSettings(
        starting_status=StatusLevel.PLATINUM,
        cycle_start_date=config.cycle_start_date,
        starting_xp=config.starting_xp,
        starting_uxp=max(config.starting_uxp, rules.ultimate_uxp_threshold),
        surplus_override=config.surplus_override,
    )


def normalize_settings(
    raw_settings: Union[QualificationSettings, Mapping[str, Any], None],
    rules: ProgramRules,
) -> Tuple[Optional[QualificationSettings], List[DataQualityWarning]]:
    """
    Validate qualification settings.

    Invalid settings are treated as absent (the engine then infers the first
    cycle from the data) and reported as a warning.
    """
    if raw_settings is None:
        return None, []

    if isinstance(raw_settings, QualificationSettings):
        return _normalize_ultimate(raw_settings, rules), []

    try:
        parsed = QualificationSettingsIn.model_validate(raw_settings)
    except ValidationError as e:
        warning = DataQualityWarning(
            code=_warning_code_for(e),
            message=f"Qualification settings ignored ({_summarize(e)})",
            record_id="settings",
        )
        _log_warning(warning)
        return None, [warning]

    cycle_start: Optional[date] = parsed.cycle_start_date
    if cycle_start is None and parsed.cycle_start_month:
        cycle_start = MonthKey.parse(parsed.cycle_start_month).first_day()

    override = None
    if parsed.surplus_override is not None:
        override = SurplusOverride(
            start_month=MonthKey.parse(parsed.surplus_override.start_month),
            surplus_xp=parsed.surplus_override.surplus_xp,
        )

    config = QualificationSettings(
        starting_status=parsed.starting_status,
        cycle_start_date=cycle_start,
        starting_xp=parsed.starting_xp,
        starting_uxp=max(0, parsed.starting_uxp),
        surplus_override=override,
    )
    return _normalize_ultimate(config, rules), []

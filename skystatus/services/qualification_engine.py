"""
Qualification Engine

Single entry point for the surrounding application. Every call recomputes
the full result from the complete history; nothing is cached between calls
and ``today`` is always passed in explicitly.

Pipeline:
    raw records -> intake -> point resolver -> monthly ledger
        -> cycle segmentation (rollover + level-up) -> Ultimate layer
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from skystatus.models import (
    DataQualityWarning,
    FlightRecord,
    ManualMonthEntry,
    MonthKey,
    QualificationCycleStats,
    QualificationSettings,
)
from skystatus.schemas import EngineResultResponse, YearlyResultResponse
from skystatus.services.cycle_segmenter import find_active_cycle, segment_cycles
from skystatus.services.intake import normalize_flights, normalize_manual_ledger, normalize_settings
from skystatus.services.point_resolver import PointResolver, resolve_missing_points
from skystatus.services.status_levels import ProgramRules
from skystatus.services.ultimate import apply_ultimate_layer
from skystatus.services.yearly_stats import (
    LifetimeSummary,
    QualificationYearSummary,
    aggregate_years,
    lifetime_summary,
)

logger = logging.getLogger(__name__)


@dataclass
class EngineResult:
    """Cycles plus everything the caller should surface about data quality."""
    cycles: List[QualificationCycleStats]
    active_cycle: Optional[QualificationCycleStats]
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.cycles


@dataclass
class YearlyResult:
    years: List[QualificationYearSummary]
    lifetime: LifetimeSummary
    warnings: List[DataQualityWarning] = field(default_factory=list)


def prepare_inputs(
    flights: Optional[Iterable[Any]],
    manual_ledger: Optional[Mapping[Any, Any]],
    rules: ProgramRules,
    resolver: Optional[PointResolver] = None,
    settings: Any = None,
) -> Tuple[List[FlightRecord], Dict[MonthKey, ManualMonthEntry], Optional[QualificationSettings], List[DataQualityWarning]]:
    """Normalize and price every input, collecting warnings in input order."""
    valid_flights, warnings = normalize_flights(flights or ())
    priced_flights, price_warnings = resolve_missing_points(valid_flights, resolver)
    warnings.extend(price_warnings)

    ledger, ledger_warnings = normalize_manual_ledger(manual_ledger)
    warnings.extend(ledger_warnings)

    config, settings_warnings = normalize_settings(settings, rules)
    warnings.extend(settings_warnings)

    return priced_flights, ledger, config, warnings


def compute_qualification(
    flights: Optional[Iterable[Any]],
    manual_ledger: Optional[Mapping[Any, Any]],
    settings: Any,
    today: date,
    rules: Optional[ProgramRules] = None,
    resolver: Optional[PointResolver] = None,
) -> EngineResult:
    """
    Compute all qualification cycles.

    Args:
        flights: FlightRecord instances or raw mappings
        manual_ledger: month key -> ManualMonthEntry (or mapping)
        settings: QualificationSettings, a raw mapping, or None
        today: the instant splitting actual from scheduled
        rules: program rules (defaults to the configured settings)
        resolver: prices flights recorded without points

    Returns:
        EngineResult; an empty cycle list means "no data", not an error
    """
    rules = rules or ProgramRules.from_settings()
    priced, ledger, config, warnings = prepare_inputs(flights, manual_ledger, rules, resolver, settings)

    segmentation = segment_cycles(priced, ledger, config, today, rules)
    warnings.extend(segmentation.warnings)

    starting_uxp = config.starting_uxp if config is not None else 0
    cycles = apply_ultimate_layer(segmentation.cycles, priced, today, starting_uxp, rules)
    active = find_active_cycle(cycles, today)

    logger.info(
        f"Computed {len(cycles)} cycle(s), {len(warnings)} warning(s)",
        extra={"extra_fields": {
            "cycles": len(cycles),
            "warnings": len(warnings),
            "active_cycle": active.cycle_index if active else None,
        }},
    )
    return EngineResult(cycles=cycles, active_cycle=active, warnings=warnings)


def compute_yearly_summaries(
    flights: Optional[Iterable[Any]],
    manual_ledger: Optional[Mapping[Any, Any]],
    today: date,
    rules: Optional[ProgramRules] = None,
    rollover_seed: int = 0,
    resolver: Optional[PointResolver] = None,
) -> YearlyResult:
    """Lifetime reporting on calendar-anchored qualification years."""
    rules = rules or ProgramRules.from_settings()
    priced, ledger, _, warnings = prepare_inputs(flights, manual_ledger, rules, resolver)

    years = aggregate_years(priced, ledger, today, rules, rollover_seed=rollover_seed)
    return YearlyResult(years=years, lifetime=lifetime_summary(years), warnings=warnings)


def to_dict(result: EngineResult) -> Dict[str, Any]:
    """JSON-ready representation (ISO dates, enum values, ``YYYY-MM`` months)."""
    return EngineResultResponse.model_validate(result).model_dump(mode="json")


def yearly_to_dict(result: YearlyResult) -> Dict[str, Any]:
    return YearlyResultResponse.model_validate(result).model_dump(mode="json")

# Qualification Cycle Engine
#
# Pure, deterministic computation over a traveler's flight history.
#
# Architecture:
# - Intake normalizes raw records and reports bad ones as warnings
# - Monthly ledger splits every month into actual and scheduled XP
# - Cycle segmenter chains cycles on anniversaries and actual level-ups
# - Rollover engine carries capped surplus between cycles
# - Level-up detector flags threshold crossings on both tracks
# - Yearly stats re-segment history into calendar-anchored years

from .status_levels import ProgramRules, status_from_xp, next_threshold
from .point_resolver import PointQuote, PointResolver, resolve_missing_points, split_route
from .intake import normalize_flights, normalize_manual_ledger, normalize_settings
from .monthly_ledger import MonthActivity, MonthlyLedger, build_monthly_ledger, build_ledger_rows
from .cycle_segmenter import SegmentationResult, segment_cycles, find_active_cycle
from .rollover import RolloverResult, calculate_rollover, level_up_rollover, anniversary_rollover
from .level_up import StatusSnapshot, find_promotion, mark_threshold_crossings, status_snapshot
from .ultimate import apply_ultimate_layer, display_status
from .reconciliation import (
    StatementSnapshot,
    ReconciliationResult,
    reconcile_with_statement,
    validate_rollover,
    simulate_rollover,
)
from .yearly_stats import QualificationYearSummary, LifetimeSummary, aggregate_years, lifetime_summary
from .qualification_engine import (
    EngineResult,
    YearlyResult,
    compute_qualification,
    compute_yearly_summaries,
    to_dict,
    yearly_to_dict,
)

__all__ = [
    # Rules
    'ProgramRules',
    'status_from_xp',
    'next_threshold',

    # Intake
    'PointQuote',
    'PointResolver',
    'resolve_missing_points',
    'split_route',
    'normalize_flights',
    'normalize_manual_ledger',
    'normalize_settings',

    # Engine components
    'MonthActivity',
    'MonthlyLedger',
    'build_monthly_ledger',
    'build_ledger_rows',
    'SegmentationResult',
    'segment_cycles',
    'find_active_cycle',
    'RolloverResult',
    'calculate_rollover',
    'level_up_rollover',
    'anniversary_rollover',
    'StatusSnapshot',
    'find_promotion',
    'mark_threshold_crossings',
    'status_snapshot',
    'apply_ultimate_layer',
    'display_status',

    # Reconciliation
    'StatementSnapshot',
    'ReconciliationResult',
    'reconcile_with_statement',
    'validate_rollover',
    'simulate_rollover',

    # Reporting
    'QualificationYearSummary',
    'LifetimeSummary',
    'aggregate_years',
    'lifetime_summary',

    # Main entry points
    'EngineResult',
    'YearlyResult',
    'compute_qualification',
    'compute_yearly_summaries',
    'to_dict',
    'yearly_to_dict',
]

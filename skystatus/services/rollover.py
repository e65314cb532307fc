"""
Rollover & Cap Engine

Surplus XP carried from one cycle into the next:

    rollover_out = min(cap, max(0, actual_xp - threshold))

Only the actual (flown) track is used, so scheduled flights never inflate the
next cycle's starting balance before they happen. The threshold depends on
how the cycle closed:
- level-up: the attain threshold of the new status
- anniversary: the requalification threshold of the status held in the cycle
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from skystatus.core.logging import log_data_quality
from skystatus.models import DataQualityWarning, MonthKey, StatusLevel, WarningCode
from skystatus.services.status_levels import (
    ProgramRules,
    attain_threshold,
    requalification_threshold,
)

logger = logging.getLogger(__name__)


@dataclass
class RolloverResult:
    """Outcome of one cycle boundary."""
    amount: int           # what actually carries, within [0, cap]
    surplus: int          # actual XP minus threshold, may be negative
    threshold: int
    waste: int            # surplus above the cap
    negative_balance: bool  # corrections pushed the cycle total below zero


def calculate_rollover(actual_xp: int, threshold: int, rules: ProgramRules) -> RolloverResult:
    surplus = actual_xp - threshold
    amount = min(rules.rollover_cap, max(0, surplus))
    return RolloverResult(
        amount=amount,
        surplus=surplus,
        threshold=threshold,
        waste=max(0, surplus - rules.rollover_cap),
        negative_balance=actual_xp < 0,
    )


def level_up_rollover(actual_xp: int, new_status: StatusLevel, rules: ProgramRules) -> RolloverResult:
    """Surplus above the new status' zero point after an actual level-up."""
    return calculate_rollover(actual_xp, attain_threshold(new_status, rules), rules)


def anniversary_rollover(actual_xp: int, held_status: StatusLevel, rules: ProgramRules) -> RolloverResult:
    """Surplus above what ``held_status`` needs to requalify."""
    return calculate_rollover(actual_xp, requalification_threshold(held_status, rules), rules)


def clamp_warning(result: RolloverResult, cycle_index: int, month: Optional[MonthKey] = None) -> Optional[DataQualityWarning]:
    """Warning for a cycle whose actual balance went negative."""
    if not result.negative_balance:
        return None
    warning = DataQualityWarning(
        code=WarningCode.ROLLOVER_CLAMPED,
        message=(
            f"Cycle {cycle_index} closed with a negative balance ({result.surplus + result.threshold} XP); "
            f"rollover clamped to 0"
        ),
        month=month,
    )
    log_data_quality(logger, warning, cycle=cycle_index)
    return warning


def clamp_seed(seed: int, rules: ProgramRules) -> Tuple[int, Optional[DataQualityWarning]]:
    """
    Bring an externally supplied rollover seed into ``[0, cap]``.

    Returns:
        (clamped seed, warning or None)
    """
    clamped = min(rules.rollover_cap, max(0, seed))
    if clamped == seed:
        return seed, None
    warning = DataQualityWarning(
        code=WarningCode.ROLLOVER_SEED_CLAMPED,
        message=f"Starting rollover {seed} XP clamped to {clamped} XP (cap {rules.rollover_cap})",
        record_id="settings",
    )
    log_data_quality(logger, warning)
    return clamped, warning

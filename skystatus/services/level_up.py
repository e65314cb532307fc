"""
Level-Up Detector

Works on the ledger rows of one cycle. Two tracks are followed
independently:
- actual: flown flights and past manual entries (``actual_cumulative``)
- projected: everything including scheduled flights (``cumulative``)

The actual track decides promotions and closes cycles. The projected track
only feeds forward-looking fields and is allowed to point at an earlier
month than the actual one.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from skystatus.models import CycleState, MonthKey, StatusLevel, XPLedgerRow
from skystatus.services.status_levels import (
    ProgramRules,
    higher_status,
    next_threshold,
    status_from_xp,
    xp_status,
    xp_to_next,
)

ACTUAL_TRACK = "actual"
PROJECTED_TRACK = "projected"


@dataclass
class Promotion:
    """First month in which a track reaches a status above the held one."""
    row_index: int
    month: MonthKey
    status: StatusLevel


@dataclass
class StatusSnapshot:
    """The four per-cycle numbers plus the XP they are based on."""
    actual_status: StatusLevel
    actual_xp: int
    actual_xp_to_next: int
    projected_status: StatusLevel
    projected_xp: int
    projected_xp_to_next: int


def _track_xp(row: XPLedgerRow, track: str) -> int:
    if track == ACTUAL_TRACK:
        return row.actual_cumulative
    if track == PROJECTED_TRACK:
        return row.cumulative
    raise ValueError(f"Unknown track: {track}")


def find_promotion(
    rows: Sequence[XPLedgerRow],
    held_status: StatusLevel,
    rules: ProgramRules,
    track: str = ACTUAL_TRACK,
) -> Optional[Promotion]:
    """
    Locate the first row where ``track`` reaches a higher status.

    Multi-level jumps are allowed: the promotion carries the highest status
    met in that month.
    """
    held_rank = xp_status(held_status).rank
    for index, row in enumerate(rows):
        reached = status_from_xp(_track_xp(row, track), rules)
        if reached.rank > held_rank:
            return Promotion(row_index=index, month=row.month, status=reached)
    return None


def mark_threshold_crossings(
    rows: List[XPLedgerRow],
    held_status: StatusLevel,
    rules: ProgramRules,
) -> Tuple[Optional[MonthKey], Optional[MonthKey]]:
    """
    Set ``hit_threshold`` / ``projected_hit_threshold`` on the first row
    of each track that meets the boundary of ``held_status``.

    For the top status the boundary is the retain threshold (renewal).

    Returns:
        (actual crossing month, projected crossing month)
    """
    boundary = next_threshold(held_status, rules)
    actual_month = None
    projected_month = None

    for row in rows:
        if actual_month is None and row.actual_cumulative >= boundary:
            row.hit_threshold = True
            actual_month = row.month
        if projected_month is None and row.cumulative >= boundary:
            row.projected_hit_threshold = True
            projected_month = row.month

    return actual_month, projected_month


def status_snapshot(
    rows: Sequence[XPLedgerRow],
    starting_status: StatusLevel,
    rollover_in: int,
    rules: ProgramRules,
) -> StatusSnapshot:
    """
    Compute actual and projected status for a cycle.

    A cycle without rows sits at its rollover. Status never drops below the
    status held at cycle start, and the projected track is never below the
    actual one.
    """
    actual_xp = rows[-1].actual_cumulative if rows else rollover_in
    projected_xp = rows[-1].cumulative if rows else rollover_in

    actual_status = higher_status(xp_status(starting_status), status_from_xp(actual_xp, rules))
    projected_status = higher_status(actual_status, status_from_xp(projected_xp, rules))

    return StatusSnapshot(
        actual_status=actual_status,
        actual_xp=actual_xp,
        actual_xp_to_next=xp_to_next(actual_status, actual_xp, rules),
        projected_status=projected_status,
        projected_xp=projected_xp,
        projected_xp_to_next=xp_to_next(projected_status, projected_xp, rules),
    )


def cycle_state(actual_crossing: Optional[MonthKey], projected_crossing: Optional[MonthKey]) -> CycleState:
    """Renewal of the top status counts as reached once it is secured on the actual track."""
    if actual_crossing is not None:
        return CycleState.THRESHOLD_REACHED_ACTUAL
    if projected_crossing is not None:
        return CycleState.THRESHOLD_REACHED_PROJECTED
    return CycleState.ACCUMULATING

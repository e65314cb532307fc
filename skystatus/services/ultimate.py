"""
Ultimate Layer

Ultimate sits on top of Platinum and is driven by UXP, a second counter
that only KLM and Air France flights earn. XP status logic never sees it:
cycles are segmented on XP first and this module annotates them.

Per cycle:
    actual_uxp      = starting UXP + min(yearly cap, UXP flown in the cycle)
    projected_uxp   = starting UXP + min(yearly cap, all UXP in the cycle)
    is_ultimate     = actual status is Platinum and actual_uxp >= threshold
    uxp_rollover    = min(rollover max, max(0, actual_uxp - threshold))
"""
from datetime import date
from typing import List, Optional, Sequence, Tuple
import logging

from skystatus.models import FlightRecord, QualificationCycleStats, StatusLevel
from skystatus.services.status_levels import ProgramRules

logger = logging.getLogger(__name__)

UXP_ELIGIBLE_AIRLINES = frozenset({"KL", "AF", "KLM", "AIR FRANCE", "AIRFRANCE"})
UXP_FLIGHT_NUMBER_PREFIXES = ("KL", "AF")


def is_uxp_eligible(flight: FlightRecord) -> bool:
    """KLM and Air France flights earn UXP; partners do not."""
    airline = (flight.airline or "").strip().upper()
    if airline:
        return airline in UXP_ELIGIBLE_AIRLINES
    number = (flight.flight_number or "").strip().upper()
    return number.startswith(UXP_FLIGHT_NUMBER_PREFIXES)


def cycle_uxp(flights: Sequence[FlightRecord], cycle: QualificationCycleStats, today: date) -> Tuple[int, int]:
    """(flown UXP, scheduled UXP) earned inside the cycle window."""
    flown = 0
    scheduled = 0
    for flight in flights:
        if not cycle.contains(flight.date) or not is_uxp_eligible(flight):
            continue
        if flight.date < today:
            flown += flight.ultimate_points
        else:
            scheduled += flight.ultimate_points
    return flown, scheduled


def apply_ultimate_layer(
    cycles: List[QualificationCycleStats],
    flights: Sequence[FlightRecord],
    today: date,
    starting_uxp: int,
    rules: ProgramRules,
) -> List[QualificationCycleStats]:
    """
    Annotate freshly segmented cycles with their UXP figures.

    The first cycle starts from ``starting_uxp``; every later cycle starts
    from the previous cycle's UXP rollover.
    """
    carried = max(0, starting_uxp)

    for cycle in cycles:
        flown, scheduled = cycle_uxp(flights, cycle, today)
        actual_uxp = carried + min(rules.uxp_yearly_cap, flown)
        projected_uxp = carried + min(rules.uxp_yearly_cap, flown + scheduled)

        cycle.starting_uxp = carried
        cycle.actual_uxp = actual_uxp
        cycle.projected_uxp = projected_uxp
        cycle.is_ultimate = (
            cycle.actual_status == StatusLevel.PLATINUM
            and actual_uxp >= rules.ultimate_uxp_threshold
        )
        cycle.projected_ultimate = (
            cycle.projected_status == StatusLevel.PLATINUM
            and projected_uxp >= rules.ultimate_uxp_threshold
        )
        cycle.uxp_rollover_out = min(
            rules.uxp_rollover_max,
            max(0, actual_uxp - rules.ultimate_uxp_threshold),
        )
        if cycle.is_ultimate:
            logger.debug(f"Cycle {cycle.cycle_index} qualifies for Ultimate ({actual_uxp} UXP)")
        carried = cycle.uxp_rollover_out

    return cycles


def display_status(status: StatusLevel, is_ultimate: bool) -> StatusLevel:
    """Platinum with the Ultimate flag is shown as Ultimate."""
    if is_ultimate and status == StatusLevel.PLATINUM:
        return StatusLevel.ULTIMATE
    return status


def display_projected_status(
    projected_status: StatusLevel,
    projected_ultimate: bool,
    is_currently_ultimate: bool = False,
    projected_xp: int = 0,
    rules: Optional[ProgramRules] = None,
) -> StatusLevel:
    """
    Projected status for display.

    A current Ultimate member keeps Ultimate as long as the projection holds
    Platinum.
    """
    if projected_ultimate and projected_status == StatusLevel.PLATINUM:
        return StatusLevel.ULTIMATE
    if is_currently_ultimate and rules is not None and projected_xp >= rules.retain_threshold:
        return StatusLevel.ULTIMATE
    return projected_status

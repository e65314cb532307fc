"""
Per-Flight Point Resolver Adapter

The distance-band lookup lives outside the engine. This module defines the
shape the engine expects from it and fills in points for flights that were
recorded without a value.
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Protocol, Sequence, Tuple
import logging

from skystatus.core.logging import log_data_quality
from skystatus.models import CabinClass, DataQualityWarning, DistanceBand, FlightRecord, WarningCode

logger = logging.getLogger(__name__)

# Separators seen in route strings ("AMS-CDG", "AMS - CDG", "AMS/CDG", "AMS→CDG")
ROUTE_SEPARATORS = ("-", "/", "→", ">")


@dataclass(frozen=True)
class PointQuote:
    """What the lookup returns for one leg."""
    distance_miles: int
    band: DistanceBand
    points: int
    sustainability_points: int = 0


class PointResolver(Protocol):
    """Pure function ``(origin, destination, cabin) -> PointQuote``."""

    def __call__(self, origin: str, destination: str, cabin: CabinClass) -> PointQuote:
        ...


def split_route(route: str) -> Tuple[str, str]:
    """
    Split a route string into origin and destination codes.

    Raises:
        ValueError: if the route does not contain exactly two airport codes
    """
    text = (route or "").strip().upper()
    for separator in ROUTE_SEPARATORS:
        text = text.replace(separator, " ")
    parts = text.split()
    if len(parts) != 2 or not all(p.isalnum() for p in parts):
        raise ValueError(f"Cannot parse route {route!r}")
    return parts[0], parts[1]


def resolve_missing_points(
    flights: Sequence[FlightRecord],
    resolver: Optional[PointResolver] = None,
) -> Tuple[List[FlightRecord], List[DataQualityWarning]]:
    """
    Fill ``points`` on flights that carry none.

    Flights with points already set pass through untouched. A flight the
    resolver cannot price (or any unpriced flight when no resolver is given)
    is dropped and reported as UNRESOLVED_POINTS.

    Returns:
        (priced flights in input order, warnings)
    """
    resolved: List[FlightRecord] = []
    warnings: List[DataQualityWarning] = []

    for flight in flights:
        if flight.points is not None:
            resolved.append(flight)
            continue

        if resolver is None:
            reason = "no point resolver available"
        else:
            try:
                origin, destination = split_route(flight.route)
                quote = resolver(origin, destination, flight.cabin)
            except (KeyError, ValueError) as e:
                reason = str(e) or e.__class__.__name__
            else:
                if quote.points < 0 or quote.sustainability_points < 0:
                    reason = f"resolver returned negative points ({quote.points})"
                else:
                    resolved.append(replace(
                        flight,
                        points=quote.points,
                        sustainability_points=flight.sustainability_points or quote.sustainability_points,
                    ))
                    continue

        warning = DataQualityWarning(
            code=WarningCode.UNRESOLVED_POINTS,
            message=f"Flight {flight.route} on {flight.date.isoformat()} has no points: {reason}",
            record_id=flight.id,
            month=flight.month,
        )
        log_data_quality(logger, warning)
        warnings.append(warning)

    return resolved, warnings

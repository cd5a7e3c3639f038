"""
Spot statistics.

Pure projections over already-loaded rows; every read path uses these to
present a queue's current state.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Optional

from hauntq.models import QueueSpot, Reservation, ReservationStatus, SpotStatus


@dataclass(frozen=True)
class SpotStats:
    """Counts per spot status. The three buckets always add up to the total."""
    available_spots: int
    occupied_spots: int
    reserved_spots: int
    total_spots: int
    active_reservations: Optional[int] = None

    def as_dict(self) -> dict:
        return asdict(self)


def calculate_stats(
    spots: Iterable[QueueSpot],
    reservations: Optional[Iterable[Reservation]] = None,
) -> SpotStats:
    """
    Count spots by status.

    Args:
        spots: The spots of one queue
        reservations: Optional reservations of the same queue; when given,
            the active ones are counted into `active_reservations`

    Returns:
        SpotStats for the collection
    """
    counts = {status.value: 0 for status in SpotStatus}
    total = 0
    for spot in spots:
        counts[spot.status] = counts.get(spot.status, 0) + 1
        total += 1

    active = None
    if reservations is not None:
        active = sum(1 for r in reservations if r.status == ReservationStatus.ACTIVE.value)

    return SpotStats(
        available_spots=counts[SpotStatus.AVAILABLE.value],
        occupied_spots=counts[SpotStatus.OCCUPIED.value],
        reserved_spots=counts[SpotStatus.RESERVED.value],
        total_spots=total,
        active_reservations=active,
    )

"""Cardinal utility of each availability status."""
from typing import Union

from availability.models import AvailabilityStatus

UTILITY_BY_STATUS = {
    AvailabilityStatus.UNAVAILABLE: 0.0,
    AvailabilityStatus.WORKS: 1.0,
    AvailabilityStatus.PREFERRED: 2.0,
}


def utility_for(status: Union[AvailabilityStatus, str]) -> float:
    """
    Cardinal utility of a status.

    Args:
        status: AvailabilityStatus or its string value

    Returns:
        0.0 for unavailable, 1.0 for works, 2.0 for preferred
    """
    return UTILITY_BY_STATUS[AvailabilityStatus(status)]

"""Slot lattice generation for an event's date and time range."""
import itertools
import logging
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional

from availability.models import Event, Slot

logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%H:%M:%S'


def parse_date(date_str: str) -> Optional[date]:
    """
    Parse an ISO 8601 calendar date (YYYY-MM-DD).

    Args:
        date_str: Date string

    Returns:
        date object or None if parsing fails
    """
    try:
        return datetime.strptime(date_str.strip(), DATE_FORMAT).date()
    except (AttributeError, ValueError):
        return None


def parse_time(time_str: str) -> Optional[datetime]:
    """
    Parse a time of day in HH:MM:SS or HH:MM format.

    Args:
        time_str: Time string

    Returns:
        datetime on a fixed reference day, or None if parsing fails
    """
    for fmt in (TIME_FORMAT, '%H:%M'):
        try:
            return datetime.strptime(time_str.strip(), fmt)
        except (AttributeError, ValueError):
            continue
    return None


class SlotLattice:
    """
    Restartable view over the date x time grid of an event.

    Every call to dates(), times() or iteration starts a fresh walk, so the
    same lattice can be traversed any number of times.
    """

    def __init__(self, event: Event):
        self.event = event
        self.step = timedelta(minutes=event.slot_granularity_minutes)

    def dates(self) -> Iterator[str]:
        start = parse_date(self.event.start_date)
        end = parse_date(self.event.end_date)
        if start is None or end is None:
            logger.warning(
                f"Invalid date range for event '{self.event.event_id}': "
                f"{self.event.start_date} - {self.event.end_date}"
            )
            return

        current = start
        while current <= end:
            yield current.strftime(DATE_FORMAT)
            current += timedelta(days=1)

    def times(self) -> Iterator[str]:
        start = parse_time(self.event.start_time)
        end = parse_time(self.event.end_time)
        if start is None or end is None:
            logger.warning(
                f"Invalid time range for event '{self.event.event_id}': "
                f"{self.event.start_time} - {self.event.end_time}"
            )
            return
        if self.step <= timedelta(0):
            logger.warning(
                f"Invalid slot granularity for event '{self.event.event_id}': "
                f"{self.event.slot_granularity_minutes}"
            )
            return

        # Half-open interval: the end time itself is never a slot
        current = start
        while current < end:
            yield current.strftime(TIME_FORMAT)
            current += self.step

    def __iter__(self) -> Iterator[Slot]:
        for slot_date, slot_time in itertools.product(
            self.dates(), self.times()
        ):
            yield Slot(date=slot_date, time=slot_time)

    def __len__(self) -> int:
        return sum(1 for _ in self.dates()) * sum(1 for _ in self.times())


def generate_dates(event: Event) -> List[str]:
    """
    Generate every calendar date of the event, inclusive of both ends.

    Args:
        event: Event descriptor

    Returns:
        Ordered list of YYYY-MM-DD strings
    """
    return list(SlotLattice(event).dates())


def generate_time_slots(event: Event) -> List[str]:
    """
    Generate slot start times from start_time up to, not including, end_time.

    Args:
        event: Event descriptor

    Returns:
        Ordered list of HH:MM:SS strings
    """
    return list(SlotLattice(event).times())


def generate_slots(event: Event) -> List[Slot]:
    """Full date x time lattice in date-major order."""
    return list(SlotLattice(event))

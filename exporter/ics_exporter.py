"""iCalendar export of a chosen meeting time."""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ics import Calendar
from ics import Event as CalendarEvent

from availability.models import Event, Suggestion
from availability.slot_lattice import DATE_FORMAT, TIME_FORMAT

logger = logging.getLogger(__name__)

MEETING_DURATION = timedelta(minutes=30)


def generate_uid(event_id: str, date: str, time: str) -> str:
    """
    Generate a stable calendar UID from event id + date + time.

    Args:
        event_id: Event identifier
        date: Slot date (YYYY-MM-DD)
        time: Slot time (HH:MM:SS)

    Returns:
        SHA256 hex digest
    """
    composite = f"{event_id}|{date}|{time}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()


def build_ics(event: Event, suggestion: Suggestion,
              now: Optional[datetime] = None) -> str:
    """
    Build a single-event iCalendar payload for a suggested time.

    Args:
        event: Event being scheduled, supplies title and description
        suggestion: Chosen slot
        now: Timestamp for DTSTAMP, defaults to the current UTC time

    Returns:
        iCalendar text
    """
    begin = datetime.strptime(
        f"{suggestion.date} {suggestion.time}", f"{DATE_FORMAT} {TIME_FORMAT}"
    )

    calendar_event = CalendarEvent(
        name=event.title,
        begin=begin,
        end=begin + MEETING_DURATION,
        uid=generate_uid(event.event_id, suggestion.date, suggestion.time),
        description=event.description or None,
        created=now or datetime.now(timezone.utc)
    )

    calendar = Calendar()
    calendar.events.add(calendar_event)

    logger.info(
        f"Exported event '{event.event_id}' at {suggestion.date} "
        f"{suggestion.time} to iCalendar"
    )
    return calendar.serialize()

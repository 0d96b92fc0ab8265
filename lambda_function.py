"""AWS Lambda handler for group meeting-time suggestions."""
import json
import logging
import os
import time
import uuid
from dataclasses import asdict
from typing import Any, Callable, Dict, List

from availability.models import (
    AvailabilityEntry,
    AvailabilitySnapshot,
    AvailabilityStatus,
    Event,
    Participant,
    Slot,
    Suggestion,
)
from availability.slot_lattice import (
    DATE_FORMAT,
    TIME_FORMAT,
    SlotLattice,
    parse_date,
    parse_time,
)
from availability.store import AvailabilityStore, PaintGesture
from exporter.ics_exporter import build_ics
from ranking.heatmap_projector import project_heatmap
from ranking.suggestion_ranker import SuggestionRanker
from storage.dynamodb_manager import DynamoDBManager


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    EXTRA_FIELDS = ('event_id', 'action', 'duration_seconds', 'error_type')

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for field_name in self.EXTRA_FIELDS:
            if hasattr(record, field_name):
                log_data[field_name] = getattr(record, field_name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


class ConflictError(Exception):
    """Request collides with data that already exists."""


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': json.dumps(body)
    }


def _parse_slot(payload: Dict[str, Any], meeting: Event) -> Slot:
    """
    Read a slot from the payload and check it lies on the event's grid.

    Dates are normalized to YYYY-MM-DD and times to HH:MM:SS, so stored
    rows always match the slots the ranker and heatmap walk.

    Args:
        payload: Mapping with 'date' and 'time'
        meeting: Event whose lattice the slot must belong to

    Returns:
        Canonical Slot

    Raises:
        ValueError: If the date or time is malformed or off the grid
    """
    slot_date = parse_date(payload.get('date') or '')
    slot_time = parse_time(payload.get('time') or '')
    if slot_date is None:
        raise ValueError(f"Invalid slot date: {payload.get('date')!r}")
    if slot_time is None:
        raise ValueError(f"Invalid slot time: {payload.get('time')!r}")

    slot = Slot(
        date=slot_date.strftime(DATE_FORMAT),
        time=slot_time.strftime(TIME_FORMAT)
    )
    if slot not in set(SlotLattice(meeting)):
        raise ValueError(
            f"Slot {slot.date} {slot.time} is not part of event "
            f"'{meeting.event_id}'"
        )
    return slot


def _require(payload: Dict[str, Any], field_name: str) -> Any:
    value = payload.get(field_name)
    if not value:
        raise ValueError(f"Missing required field: {field_name}")
    return value


def _require_participant(payload: Dict[str, Any],
                         snapshot: AvailabilitySnapshot) -> str:
    """Participant id from the payload, which must have joined the event."""
    participant_id = _require(payload, 'participant_id')
    known_ids = {p.participant_id for p in snapshot.participants}
    if participant_id not in known_ids:
        raise ValueError(f"Unknown participant: {participant_id}")
    return participant_id


def _suggestion_to_dict(suggestion: Suggestion) -> Dict[str, Any]:
    data = asdict(suggestion)
    # Display rounding only; ranking already happened on the raw value
    data['percentage'] = round(suggestion.percentage)
    return data


def handle_create(manager: DynamoDBManager,
                  payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create an event from the invocation payload.

    Args:
        manager: Storage manager
        payload: Mapping with title, date range and time range

    Returns:
        The stored event as a dictionary

    Raises:
        ValueError: If a field is missing or a range is empty
        ConflictError: If the event id is already taken
    """
    start_date = parse_date(_require(payload, 'start_date'))
    end_date = parse_date(_require(payload, 'end_date'))
    start_time = parse_time(_require(payload, 'start_time'))
    end_time = parse_time(_require(payload, 'end_time'))

    if start_date is None or end_date is None:
        raise ValueError("Dates must use the YYYY-MM-DD format")
    if start_time is None or end_time is None:
        raise ValueError("Times must use the HH:MM or HH:MM:SS format")
    if start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    if start_time >= end_time:
        raise ValueError("start_time must be before end_time")

    meeting = Event(
        event_id=payload['event_id'],
        title=str(_require(payload, 'title')).strip(),
        description=payload.get('description') or '',
        start_date=start_date.strftime(DATE_FORMAT),
        end_date=end_date.strftime(DATE_FORMAT),
        start_time=start_time.strftime(TIME_FORMAT),
        end_time=end_time.strftime(TIME_FORMAT),
        creator_name=payload.get('creator_name')
    )
    if not manager.put_event(meeting):
        raise ConflictError(f"Event already exists: {meeting.event_id}")

    return asdict(meeting)


def handle_suggest(manager: DynamoDBManager, meeting: Event,
                   payload: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Recompute suggestions and heatmap from the latest snapshot."""
    snapshot = manager.get_event_snapshot(meeting.event_id)
    suggestions = SuggestionRanker().rank(
        meeting, snapshot.participants, snapshot.entries, limit=limit
    )
    heatmap = project_heatmap(meeting, snapshot.participants, snapshot.entries)

    return {
        'event_id': meeting.event_id,
        'participant_count': len(snapshot.participants),
        'suggestions': [_suggestion_to_dict(s) for s in suggestions],
        'heatmap': [
            {
                'date': cell.date,
                'time': cell.time,
                'band': cell.band,
                'score': cell.score,
                'works': [p.name for p in cell.works_participants],
                'preferred': [p.name for p in cell.preferred_participants]
            }
            for cell in heatmap.values()
        ]
    }


def handle_set_availability(manager: DynamoDBManager, meeting: Event,
                            payload: Dict[str, Any],
                            limit: int) -> Dict[str, Any]:
    """Set one slot to an explicit status, or cycle it when none is given."""
    slot = _parse_slot(payload, meeting)
    status = None
    if payload.get('status'):
        status = AvailabilityStatus(payload['status'])

    snapshot = manager.get_event_snapshot(meeting.event_id)
    participant_id = _require_participant(payload, snapshot)

    saved: List[bool] = []

    def write(entry: AvailabilityEntry) -> None:
        saved.append(manager.upsert_availability(meeting.event_id, entry))

    store = AvailabilityStore.from_entries(
        snapshot.entries, write_callback=write
    )

    if status is not None:
        store.set(participant_id, slot, status)
    else:
        status = store.cycle(participant_id, slot)

    return {
        'participant_id': participant_id,
        'date': slot.date,
        'time': slot.time,
        'status': status.value,
        'saved': all(saved)
    }


def handle_paint(manager: DynamoDBManager, meeting: Event,
                 payload: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Apply one drag gesture over an ordered list of slots."""
    slots = [_parse_slot(item, meeting) for item in _require(payload, 'slots')]

    snapshot = manager.get_event_snapshot(meeting.event_id)
    participant_id = _require_participant(payload, snapshot)

    # The whole gesture is saved in one batch once it ends
    pending: List[AvailabilityEntry] = []
    store = AvailabilityStore.from_entries(
        snapshot.entries, write_callback=pending.append
    )

    gesture = PaintGesture(store, participant_id)
    paint_status = gesture.start(slots[0])
    for slot in slots[1:]:
        gesture.paint(slot)
    gesture.end()

    saved = manager.batch_write_availability(meeting.event_id, pending)

    return {
        'participant_id': participant_id,
        'paint_status': paint_status.value,
        'painted': len(slots),
        'saved': saved
    }


def handle_join(manager: DynamoDBManager, meeting: Event,
                payload: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Register a new participant for the event."""
    name = str(_require(payload, 'name')).strip()
    if not name:
        raise ValueError("Missing required field: name")

    participant = Participant(
        participant_id=payload.get('participant_id') or str(uuid.uuid4()),
        name=name
    )
    if not manager.add_participant(meeting.event_id, participant):
        raise ConflictError(
            f"Participant already joined: {participant.participant_id}"
        )
    return asdict(participant)


def handle_export(manager: DynamoDBManager, meeting: Event,
                  payload: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Build a calendar file for a chosen suggested time."""
    slot = _parse_slot(payload, meeting)

    snapshot = manager.get_event_snapshot(meeting.event_id)
    ranked = SuggestionRanker().rank(
        meeting, snapshot.participants, snapshot.entries, limit=None
    )
    chosen = next((s for s in ranked if s.slot == slot), None)
    if chosen is None:
        raise ValueError(
            f"No participant is available at {slot.date} {slot.time}"
        )

    return {
        'filename': f"{meeting.title or 'meeting'}.ics",
        'ics': build_ics(meeting, chosen)
    }


def handle_delete(manager: DynamoDBManager, meeting: Event,
                  payload: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Delete the event with its participants and availability."""
    return {
        'event_id': meeting.event_id,
        'deleted': manager.delete_event(meeting.event_id)
    }


ACTIONS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'suggest': handle_suggest,
    'set_availability': handle_set_availability,
    'paint': handle_paint,
    'join': handle_join,
    'export': handle_export,
    'delete': handle_delete,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for meeting-time suggestions.

    Args:
        event: Invocation payload with 'action' and 'event_id'
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'meeting-availability')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    suggestion_limit = int(
        os.environ.get('SUGGESTION_LIMIT', str(SuggestionRanker.DEFAULT_LIMIT))
    )

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = event.get('action', 'suggest')
    event_id = event.get('event_id')

    logger.info(
        "Lambda execution started",
        extra={'event_id': event_id, 'action': action}
    )

    handler = ACTIONS.get(action)
    if handler is None and action != 'create':
        logger.warning(f"Unknown action: {action}")
        return _response(400, {'message': f"Unknown action: {action}"})
    if not event_id:
        logger.warning("Request missing event_id")
        return _response(400, {'message': 'Missing required field: event_id'})

    try:
        manager = DynamoDBManager(table_name=table_name)

        if action == 'create':
            body = handle_create(manager, event)
        else:
            meeting = manager.get_event(event_id)
            if meeting is None:
                logger.warning(f"Event not found: {event_id}")
                return _response(
                    404, {'message': f"Event not found: {event_id}"}
                )

            body = handler(manager, meeting, event, suggestion_limit)

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'event_id': event_id,
                'action': action,
                'duration_seconds': round(duration, 2)
            }
        )
        return _response(200, body)

    except ConflictError as e:
        logger.warning(
            f"Conflicting request: {str(e)}",
            extra={'event_id': event_id, 'action': action}
        )
        return _response(409, {'message': 'Conflict', 'error': str(e)})

    except ValueError as e:
        logger.warning(
            f"Invalid request: {str(e)}",
            extra={'event_id': event_id, 'action': action}
        )
        return _response(400, {'message': 'Invalid request', 'error': str(e)})

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'event_id': event_id,
                'action': action,
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Request failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

"""DynamoDB manager for event, participant and availability storage."""
import logging
import time
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from availability.models import (
    AvailabilityEntry,
    AvailabilitySnapshot,
    AvailabilityStatus,
    Event,
    Participant,
)

logger = logging.getLogger(__name__)

EVENT_SORT_KEY = 'EVENT'
PARTICIPANT_PREFIX = 'PARTICIPANT#'
AVAILABILITY_PREFIX = 'AVAILABILITY#'

RETRYABLE_ERROR_CODES = (
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
)


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


class DynamoDBManager:
    """
    Manager for DynamoDB operations.

    All items of an event share the event_id partition key. The sort key
    tells the item kinds apart:
        EVENT
        PARTICIPANT#<participant_id>
        AVAILABILITY#<participant_id>#<date>#<time>
    """

    BATCH_SIZE = 25  # DynamoDB batch operation limit
    MAX_RETRIES = 3
    BASE_DELAY = 0.2  # seconds

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def put_event(self, event: Event) -> bool:
        """
        Store a new event descriptor.

        An existing event with the same id is never overwritten.

        Args:
            event: Event to store

        Returns:
            True if the event was created, False if it already existed
        """
        try:
            self.table.put_item(
                Item=self._event_to_item(event),
                ConditionExpression='attribute_not_exists(sort_key)'
            )
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                logger.warning(f"Event already exists: {event.event_id}")
                return False
            logger.error(f"Error storing event {event.event_id}: {e}")
            raise

        logger.info(f"Stored event: {event.event_id}")
        return True

    def get_event(self, event_id: str) -> Optional[Event]:
        """
        Fetch an event descriptor.

        Args:
            event_id: Event identifier

        Returns:
            Event object or None if the event does not exist
        """
        try:
            response = self.table.get_item(
                Key={'event_id': event_id, 'sort_key': EVENT_SORT_KEY}
            )
        except ClientError as e:
            logger.error(f"Error fetching event {event_id}: {e}")
            raise

        item = response.get('Item')
        if not item:
            return None
        return self._item_to_event(item)

    def add_participant(self, event_id: str, participant: Participant) -> bool:
        """
        Register a participant for an event.

        Participants are never mutated: joining again with an id that is
        already registered leaves the stored participant untouched.

        Args:
            event_id: Event identifier
            participant: Participant joining the event

        Returns:
            True if the participant was added, False if the id was taken
        """
        try:
            self.table.put_item(
                Item={
                    'event_id': event_id,
                    'sort_key': PARTICIPANT_PREFIX + participant.participant_id,
                    'participant_id': participant.participant_id,
                    'name': participant.name,
                    'created_at': int(time.time())
                },
                ConditionExpression='attribute_not_exists(sort_key)'
            )
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                logger.warning(
                    f"Participant {participant.participant_id} already "
                    f"joined event {event_id}"
                )
                return False
            logger.error(
                f"Error adding participant {participant.participant_id}: {e}"
            )
            raise

        logger.info(
            f"Participant {participant.participant_id} joined event {event_id}"
        )
        return True

    def get_event_snapshot(self, event_id: str) -> AvailabilitySnapshot:
        """
        Fetch every participant and availability row of an event.

        Participants are ordered by join time so utility vectors stay
        aligned between snapshots.

        Args:
            event_id: Event identifier

        Returns:
            AvailabilitySnapshot of the event
        """
        logger.info(f"Querying snapshot for event {event_id}")

        try:
            items = self._query_event_items(event_id)
        except ClientError as e:
            logger.error(f"Error querying DynamoDB table: {e}")
            raise

        participant_items = []
        entries = []
        for item in items:
            sort_key = item['sort_key']
            if sort_key.startswith(PARTICIPANT_PREFIX):
                participant_items.append(item)
            elif sort_key.startswith(AVAILABILITY_PREFIX):
                entry = self._item_to_entry(item)
                if entry:
                    entries.append(entry)

        participant_items.sort(
            key=lambda item: (int(item.get('created_at', 0)),
                              item['participant_id'])
        )
        participants = [
            Participant(participant_id=item['participant_id'],
                        name=item['name'])
            for item in participant_items
        ]

        logger.info(
            f"Retrieved {len(participants)} participants and "
            f"{len(entries)} availability entries"
        )
        return AvailabilitySnapshot(participants=participants, entries=entries)

    def upsert_availability(self, event_id: str,
                            entry: AvailabilityEntry) -> bool:
        """
        Write one availability row, replacing any previous row for the
        same participant, date and time.

        Throttled writes are retried with exponential backoff.

        Args:
            event_id: Event identifier
            entry: Availability row to write

        Returns:
            True if the write succeeded, False otherwise
        """
        item = self._entry_to_item(event_id, entry)

        for attempt in range(self.MAX_RETRIES):
            try:
                self.table.put_item(Item=item)
                return True
            except ClientError as e:
                error_code = _error_code(e)
                if (error_code in RETRYABLE_ERROR_CODES
                        and attempt < self.MAX_RETRIES - 1):
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"Availability write throttled (attempt "
                        f"{attempt + 1}/{self.MAX_RETRIES}). "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                    continue

                logger.error(
                    f"Error writing availability for participant "
                    f"{entry.participant_id} at {entry.date} {entry.time}: {e}"
                )
                return False

        return False

    def batch_write_availability(self, event_id: str,
                                 entries: List[AvailabilityEntry]) -> int:
        """
        Write availability rows in batches of 25 items.

        Args:
            event_id: Event identifier
            entries: Availability rows to write

        Returns:
            Count of successfully written rows
        """
        if not entries:
            return 0

        # A batch may not contain the same key twice; the last row wins
        deduped = {}
        for entry in entries:
            deduped[(entry.participant_id, entry.date, entry.time)] = entry
        entries = list(deduped.values())

        logger.info(f"Writing {len(entries)} availability rows to DynamoDB")
        success_count = 0

        for i in range(0, len(entries), self.BATCH_SIZE):
            batch = entries[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for entry in batch:
                        writer.put_item(Item=self._entry_to_item(event_id, entry))
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully wrote {success_count} availability rows")
        return success_count

    def delete_event(self, event_id: str) -> int:
        """
        Delete an event together with its participants and availability.

        Args:
            event_id: Event identifier

        Returns:
            Count of deleted items
        """
        items = self._query_event_items(event_id)
        if not items:
            return 0

        logger.info(f"Deleting {len(items)} items of event {event_id}")
        success_count = 0

        for i in range(0, len(items), self.BATCH_SIZE):
            batch = items[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for item in batch:
                        writer.delete_item(Key={
                            'event_id': event_id,
                            'sort_key': item['sort_key']
                        })
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully deleted {success_count} items")
        return success_count

    def _query_event_items(self, event_id: str) -> List[dict]:
        response = self.table.query(
            KeyConditionExpression=Key('event_id').eq(event_id)
        )
        items = response.get('Items', [])

        # Handle pagination
        while 'LastEvaluatedKey' in response:
            response = self.table.query(
                KeyConditionExpression=Key('event_id').eq(event_id),
                ExclusiveStartKey=response['LastEvaluatedKey']
            )
            items.extend(response.get('Items', []))

        return items

    def _entry_to_item(self, event_id: str, entry: AvailabilityEntry) -> dict:
        """
        Convert AvailabilityEntry to DynamoDB item.

        Args:
            event_id: Event identifier
            entry: AvailabilityEntry object

        Returns:
            DynamoDB item dictionary
        """
        return {
            'event_id': event_id,
            'sort_key': (
                f"{AVAILABILITY_PREFIX}{entry.participant_id}"
                f"#{entry.date}#{entry.time}"
            ),
            'participant_id': entry.participant_id,
            'date': entry.date,
            'time': entry.time,
            'status': AvailabilityStatus(entry.status).value,
            'updated_at': int(time.time())
        }

    def _item_to_entry(self, item: dict) -> Optional[AvailabilityEntry]:
        """
        Convert DynamoDB item to AvailabilityEntry.

        Args:
            item: DynamoDB item dictionary

        Returns:
            AvailabilityEntry or None if conversion fails
        """
        try:
            return AvailabilityEntry(
                participant_id=item['participant_id'],
                date=item['date'],
                time=item['time'],
                status=AvailabilityStatus(item['status'])
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to AvailabilityEntry: {e}")
            return None

    def _event_to_item(self, event: Event) -> dict:
        item = {
            'event_id': event.event_id,
            'sort_key': EVENT_SORT_KEY,
            'title': event.title,
            'description': event.description,
            'start_date': event.start_date,
            'end_date': event.end_date,
            'start_time': event.start_time,
            'end_time': event.end_time,
            'slot_granularity_minutes': event.slot_granularity_minutes
        }

        if event.creator_name:
            item['creator_name'] = event.creator_name

        return item

    def _item_to_event(self, item: dict) -> Event:
        return Event(
            event_id=item['event_id'],
            title=item['title'],
            description=item.get('description', ''),
            start_date=item['start_date'],
            end_date=item['end_date'],
            start_time=item['start_time'],
            end_time=item['end_time'],
            creator_name=item.get('creator_name'),
            slot_granularity_minutes=int(
                item.get('slot_granularity_minutes', 30)
            )
        )

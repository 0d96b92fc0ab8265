"""In-memory availability index and status state machine."""
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from availability.models import AvailabilityEntry, AvailabilityStatus, Slot

logger = logging.getLogger(__name__)

WriteCallback = Callable[[AvailabilityEntry], object]

_NEXT_STATUS = {
    AvailabilityStatus.UNAVAILABLE: AvailabilityStatus.WORKS,
    AvailabilityStatus.WORKS: AvailabilityStatus.PREFERRED,
    AvailabilityStatus.PREFERRED: AvailabilityStatus.UNAVAILABLE,
}


def cycle_status(
    current: Optional[Union[AvailabilityStatus, str]]
) -> AvailabilityStatus:
    """
    Return the status that follows current in the click cycle.

    unavailable -> works -> preferred -> unavailable. A missing status
    behaves as unavailable.

    Args:
        current: Current status, a status string, or None

    Returns:
        Next AvailabilityStatus
    """
    if current is None:
        return AvailabilityStatus.WORKS
    return _NEXT_STATUS[AvailabilityStatus(current)]


class AvailabilityStore:
    """Index of participant x slot -> status for a single event."""

    def __init__(self, write_callback: Optional[WriteCallback] = None):
        """
        Initialize an empty store.

        Args:
            write_callback: Called with each entry after the local update,
                typically the persistence layer's upsert
        """
        self.write_callback = write_callback
        self._statuses: Dict[Tuple[str, str, str], AvailabilityStatus] = {}

    @classmethod
    def from_entries(cls, entries: Iterable[AvailabilityEntry],
                     write_callback: Optional[WriteCallback] = None
                     ) -> 'AvailabilityStore':
        """Build a store already loaded with a snapshot."""
        store = cls(write_callback=write_callback)
        store.load_snapshot(entries)
        return store

    def load_snapshot(self, entries: Iterable[AvailabilityEntry]) -> None:
        """
        Replace the whole index with a freshly fetched snapshot.

        The latest snapshot wins over any optimistic local state.

        Args:
            entries: Availability rows of the event
        """
        statuses = {}
        for entry in entries:
            key = (entry.participant_id, entry.date, entry.time)
            statuses[key] = AvailabilityStatus(entry.status)
        self._statuses = statuses
        logger.debug(f"Loaded availability snapshot with {len(statuses)} entries")

    def get(self, participant_id: str, slot: Slot) -> AvailabilityStatus:
        """
        Look up the status of one slot.

        Args:
            participant_id: Participant to look up
            slot: Slot to look up

        Returns:
            Stored status, or unavailable when there is no entry
        """
        return self._statuses.get(
            (participant_id, slot.date, slot.time),
            AvailabilityStatus.UNAVAILABLE
        )

    def set(self, participant_id: str, slot: Slot,
            status: Union[AvailabilityStatus, str]) -> AvailabilityEntry:
        """
        Upsert the status of one slot, then hand the row to the writer.

        Args:
            participant_id: Participant making the change
            slot: Slot being changed
            status: New status

        Returns:
            The AvailabilityEntry that was written
        """
        status = AvailabilityStatus(status)
        self._statuses[(participant_id, slot.date, slot.time)] = status
        entry = AvailabilityEntry(
            participant_id=participant_id,
            date=slot.date,
            time=slot.time,
            status=status
        )

        if self.write_callback is not None:
            self.write_callback(entry)

        return entry

    def cycle(self, participant_id: str, slot: Slot) -> AvailabilityStatus:
        """Advance a slot to its next status and return it."""
        next_status = cycle_status(self.get(participant_id, slot))
        self.set(participant_id, slot, next_status)
        return next_status

    def entries(self) -> List[AvailabilityEntry]:
        """
        Export the index as availability rows.

        Returns:
            List of AvailabilityEntry objects, one per stored key
        """
        return [
            AvailabilityEntry(
                participant_id=participant_id,
                date=slot_date,
                time=slot_time,
                status=status
            )
            for (participant_id, slot_date, slot_time), status
            in self._statuses.items()
        ]

    def entries_for(self, participant_id: str) -> List[AvailabilityEntry]:
        """
        Availability rows of a single participant.

        Args:
            participant_id: Participant whose rows are returned

        Returns:
            List of AvailabilityEntry objects
        """
        return [
            entry for entry in self.entries()
            if entry.participant_id == participant_id
        ]

    def __len__(self) -> int:
        return len(self._statuses)


class PaintGesture:
    """
    One continuous drag over the grid by a single participant.

    The first slot touched is cycled and its new status becomes the paint
    status; every further slot painted during the gesture is set to it.
    """

    def __init__(self, store: AvailabilityStore, participant_id: str):
        self.store = store
        self.participant_id = participant_id
        self.paint_status: Optional[AvailabilityStatus] = None
        self.active = False

    def start(self, slot: Slot) -> AvailabilityStatus:
        """
        Begin the gesture on its first slot.

        The slot is cycled and its new status becomes the paint status.

        Args:
            slot: First slot touched

        Returns:
            The paint status for the rest of the gesture
        """
        self.paint_status = self.store.cycle(self.participant_id, slot)
        self.active = True
        return self.paint_status

    def paint(self, slot: Slot) -> Optional[AvailabilityEntry]:
        """
        Set a slot to the paint status while the gesture is active.

        Args:
            slot: Slot the drag passed over

        Returns:
            The written AvailabilityEntry, or None outside a gesture
        """
        if not self.active:
            return None
        return self.store.set(self.participant_id, slot, self.paint_status)

    def end(self) -> None:
        """Finish the gesture; later paint calls are ignored."""
        self.active = False

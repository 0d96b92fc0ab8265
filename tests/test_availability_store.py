"""Unit tests for the availability store and status state machine."""
import pytest

from availability.models import AvailabilityEntry, AvailabilityStatus, Slot
from availability.store import AvailabilityStore, PaintGesture, cycle_status

UNAVAILABLE = AvailabilityStatus.UNAVAILABLE
WORKS = AvailabilityStatus.WORKS
PREFERRED = AvailabilityStatus.PREFERRED

SLOT_A = Slot('2024-01-15', '09:00:00')
SLOT_B = Slot('2024-01-15', '09:30:00')
SLOT_C = Slot('2024-01-15', '10:00:00')


class TestCycleStatus:
    """Test cases for the click cycle."""

    def test_cycle_order(self):
        assert cycle_status(UNAVAILABLE) == WORKS
        assert cycle_status(WORKS) == PREFERRED
        assert cycle_status(PREFERRED) == UNAVAILABLE

    def test_cycle_missing_status(self):
        """Test that no status behaves as unavailable."""
        assert cycle_status(None) == WORKS

    def test_cycle_accepts_strings(self):
        assert cycle_status('works') == PREFERRED

    @pytest.mark.parametrize('status', list(AvailabilityStatus))
    def test_cycle_has_period_three(self, status):
        """Test the cycle has no fixed point and returns after three steps."""
        assert cycle_status(status) != status
        assert cycle_status(cycle_status(cycle_status(status))) == status


class TestAvailabilityStore:
    """Test cases for AvailabilityStore."""

    def test_get_defaults_to_unavailable(self):
        store = AvailabilityStore()

        assert store.get('p1', SLOT_A) == UNAVAILABLE

    def test_set_is_last_writer_wins(self):
        """Test repeated sets on one key keep only the latest status."""
        store = AvailabilityStore()

        store.set('p1', SLOT_A, WORKS)
        store.set('p1', SLOT_A, PREFERRED)
        store.set('p1', SLOT_A, PREFERRED)

        assert store.get('p1', SLOT_A) == PREFERRED
        assert len(store) == 1

    def test_set_updates_locally_before_write(self):
        """Test the write callback already sees the optimistic update."""
        seen = []
        store = AvailabilityStore()

        def writer(entry):
            seen.append((entry, store.get(entry.participant_id, entry.slot)))

        store.write_callback = writer
        store.set('p1', SLOT_A, 'works')

        assert len(seen) == 1
        entry, status_during_write = seen[0]
        assert entry == AvailabilityEntry('p1', SLOT_A.date, SLOT_A.time, WORKS)
        assert status_during_write == WORKS

    def test_cycle_advances_status(self):
        store = AvailabilityStore()

        assert store.cycle('p1', SLOT_A) == WORKS
        assert store.cycle('p1', SLOT_A) == PREFERRED
        assert store.cycle('p1', SLOT_A) == UNAVAILABLE

    def test_load_snapshot_replaces_state(self):
        """Test a new snapshot discards previous local state."""
        store = AvailabilityStore()
        store.set('p1', SLOT_A, PREFERRED)

        store.load_snapshot([
            AvailabilityEntry('p2', SLOT_B.date, SLOT_B.time, WORKS)
        ])

        assert store.get('p1', SLOT_A) == UNAVAILABLE
        assert store.get('p2', SLOT_B) == WORKS

    def test_entries_for_participant(self):
        store = AvailabilityStore.from_entries([
            AvailabilityEntry('p1', SLOT_A.date, SLOT_A.time, WORKS),
            AvailabilityEntry('p2', SLOT_A.date, SLOT_A.time, PREFERRED),
        ])

        entries = store.entries_for('p2')

        assert len(entries) == 1
        assert entries[0].status == PREFERRED


class TestPaintGesture:
    """Test cases for drag painting."""

    def test_gesture_paints_next_status(self):
        """Test the first slot's next status is painted everywhere."""
        store = AvailabilityStore.from_entries([
            AvailabilityEntry('p1', SLOT_C.date, SLOT_C.time, PREFERRED)
        ])
        gesture = PaintGesture(store, 'p1')

        assert gesture.start(SLOT_A) == WORKS
        gesture.paint(SLOT_B)
        gesture.paint(SLOT_C)
        gesture.end()

        assert store.get('p1', SLOT_A) == WORKS
        assert store.get('p1', SLOT_B) == WORKS
        # Painted slots are set, not cycled
        assert store.get('p1', SLOT_C) == WORKS

    def test_gesture_can_clear(self):
        """Test starting on a preferred slot paints unavailable."""
        store = AvailabilityStore.from_entries([
            AvailabilityEntry('p1', SLOT_A.date, SLOT_A.time, PREFERRED),
            AvailabilityEntry('p1', SLOT_B.date, SLOT_B.time, WORKS),
        ])
        gesture = PaintGesture(store, 'p1')

        gesture.start(SLOT_A)
        gesture.paint(SLOT_B)

        assert store.get('p1', SLOT_A) == UNAVAILABLE
        assert store.get('p1', SLOT_B) == UNAVAILABLE

    def test_paint_after_end_is_noop(self):
        store = AvailabilityStore()
        gesture = PaintGesture(store, 'p1')

        gesture.start(SLOT_A)
        gesture.end()

        assert gesture.paint(SLOT_B) is None
        assert store.get('p1', SLOT_B) == UNAVAILABLE

    def test_paint_writes_through_callback(self):
        written = []
        store = AvailabilityStore(write_callback=written.append)
        gesture = PaintGesture(store, 'p1')

        gesture.start(SLOT_A)
        gesture.paint(SLOT_B)
        gesture.end()

        assert [entry.slot for entry in written] == [SLOT_A, SLOT_B]
        assert all(entry.status == WORKS for entry in written)

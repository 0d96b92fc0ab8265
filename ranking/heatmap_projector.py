"""Heatmap intensity per slot for grid display."""
import logging
from typing import Dict, List

from availability.models import (
    AvailabilityEntry,
    AvailabilityStatus,
    Event,
    HeatmapCell,
    Participant,
    Slot,
)
from availability.slot_lattice import SlotLattice

logger = logging.getLogger(__name__)

# Upper ratio bound of bands 1-4; band 0 is an empty slot, band 5 is above 0.8
BAND_THRESHOLDS = (0.2, 0.4, 0.6, 0.8)


def band_for_ratio(ratio: float) -> int:
    """
    Bucket a score ratio into a display band.

    Args:
        ratio: Weighted score divided by the maximum possible score

    Returns:
        Band from 0 (nobody available) to 5 (above 0.8)
    """
    if ratio == 0:
        return 0
    for band, threshold in enumerate(BAND_THRESHOLDS, start=1):
        if ratio <= threshold:
            return band
    return len(BAND_THRESHOLDS) + 1


def project_heatmap(
    event: Event,
    participants: List[Participant],
    entries: List[AvailabilityEntry]
) -> Dict[Slot, HeatmapCell]:
    """
    Weighted-count intensity of every slot of the event.

    score = works + 2 * preferred, normalized by twice the participant
    count and bucketed into six bands. Rows of unknown participants are
    ignored.

    Args:
        event: Event descriptor
        participants: Participants of the event
        entries: Full availability snapshot of the event

    Returns:
        Dictionary mapping each Slot to its HeatmapCell
    """
    participant_map = {p.participant_id: p for p in participants}
    max_score = len(participants) * 2

    by_slot: Dict[Slot, List[AvailabilityEntry]] = {}
    for entry in entries:
        by_slot.setdefault(entry.slot, []).append(entry)

    cells = {}
    for slot in SlotLattice(event):
        works_participants = []
        preferred_participants = []
        for entry in by_slot.get(slot, []):
            participant = participant_map.get(entry.participant_id)
            if participant is None:
                continue
            status = AvailabilityStatus(entry.status)
            if status == AvailabilityStatus.WORKS:
                works_participants.append(participant)
            elif status == AvailabilityStatus.PREFERRED:
                preferred_participants.append(participant)

        score = len(works_participants) + len(preferred_participants) * 2
        ratio = score / max_score if max_score > 0 else 0.0

        cells[slot] = HeatmapCell(
            date=slot.date,
            time=slot.time,
            works_participants=works_participants,
            preferred_participants=preferred_participants,
            score=score,
            ratio=ratio,
            band=band_for_ratio(ratio)
        )

    logger.debug(f"Projected heatmap over {len(cells)} slots")
    return cells

"""Multi-criteria ranking of candidate meeting times."""
import logging
import math
import statistics
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from availability.models import (
    AvailabilityEntry,
    AvailabilityStatus,
    Event,
    Participant,
    Slot,
    Suggestion,
)
from availability.slot_lattice import SlotLattice
from availability.store import AvailabilityStore
from ranking.utility_model import utility_for

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    """Slot with at least one available participant, before scoring."""
    order: int
    slot: Slot
    utilities: List[float]


def dominates(a: Sequence[float], b: Sequence[float]) -> bool:
    """
    Check whether utility vector a Pareto-dominates b.

    Vectors are aligned by participant index. a dominates b when no
    coordinate of a is lower and at least one is strictly higher.

    Args:
        a: Utility vector of the first slot
        b: Utility vector of the second slot

    Returns:
        True if a dominates b
    """
    strictly_better = False
    for value_a, value_b in zip(a, b):
        if value_a < value_b:
            return False
        if value_a > value_b:
            strictly_better = True
    return strictly_better


class SuggestionRanker:
    """Ranks the slots of an event by aggregated participant utility."""

    DEFAULT_LIMIT = 5

    SOCIAL_WELFARE_WEIGHT = 0.4
    NASH_WEIGHT = 0.3
    EGALITARIAN_WEIGHT = 0.15
    FAIRNESS_WEIGHT = 0.10
    PARETO_WEIGHT = 0.05

    # Bring the bounded metrics onto the scale of social welfare
    NASH_SCALE = 10
    EGALITARIAN_SCALE = 5
    FAIRNESS_SCALE = 10

    def rank(
        self,
        event: Event,
        participants: List[Participant],
        entries: List[AvailabilityEntry],
        limit: Optional[int] = DEFAULT_LIMIT
    ) -> List[Suggestion]:
        """
        Produce the shortlist of best meeting times.

        Suggestions are ordered by composite score, highest first. Equal
        scores keep lattice order, so the earlier date and time wins.

        Args:
            event: Event descriptor
            participants: Participants of the event, in a fixed order
            entries: Full availability snapshot of the event
            limit: Maximum number of suggestions returned, None for all

        Returns:
            List of at most limit Suggestion objects
        """
        if not participants:
            logger.info("No participants, skipping suggestion ranking")
            return []

        candidates = self._build_candidates(event, participants, entries)
        pareto_ranks = self._pareto_ranks(candidates)
        counts = self._count_statuses(entries)

        suggestions = [
            self._score(candidate, pareto_ranks[candidate.order],
                        counts, len(participants))
            for candidate in candidates
        ]

        # sorted() is stable and candidates are in lattice order
        suggestions = sorted(
            suggestions, key=lambda s: s.composite_score, reverse=True
        )

        logger.info(
            f"Ranked {len(candidates)} candidate slots for event "
            f"'{event.event_id}', returning {len(suggestions[:limit])}"
        )
        return suggestions[:limit]

    def _build_candidates(
        self,
        event: Event,
        participants: List[Participant],
        entries: List[AvailabilityEntry]
    ) -> List[_Candidate]:
        """Utility vector per slot, dropping slots where nobody is available."""
        store = AvailabilityStore.from_entries(entries)
        candidates = []

        for slot in SlotLattice(event):
            utilities = [
                utility_for(store.get(participant.participant_id, slot))
                for participant in participants
            ]
            if any(value > 0 for value in utilities):
                candidates.append(
                    _Candidate(order=len(candidates), slot=slot,
                               utilities=utilities)
                )

        return candidates

    def _pareto_ranks(self, candidates: List[_Candidate]) -> Dict[int, int]:
        """Number of other candidates each candidate dominates."""
        ranks = {}
        for candidate in candidates:
            ranks[candidate.order] = sum(
                1 for other in candidates
                if other.order != candidate.order
                and dominates(candidate.utilities, other.utilities)
            )
        return ranks

    def _count_statuses(
        self, entries: List[AvailabilityEntry]
    ) -> Dict[Slot, Dict[AvailabilityStatus, int]]:
        """Raw works/preferred counts per slot, straight from the rows."""
        counts: Dict[Slot, Dict[AvailabilityStatus, int]] = {}
        for entry in entries:
            status = AvailabilityStatus(entry.status)
            if status == AvailabilityStatus.UNAVAILABLE:
                continue
            slot_counts = counts.setdefault(entry.slot, {
                AvailabilityStatus.WORKS: 0,
                AvailabilityStatus.PREFERRED: 0,
            })
            slot_counts[status] += 1
        return counts

    def _score(
        self,
        candidate: _Candidate,
        pareto_rank: int,
        counts: Dict[Slot, Dict[AvailabilityStatus, int]],
        participant_count: int
    ) -> Suggestion:
        utilities = candidate.utilities
        available = [value for value in utilities if value > 0]

        social_welfare = sum(utilities)
        utilitarian = social_welfare / participant_count

        if available:
            egalitarian = min(available)
            nash_product = math.prod(available) ** (1.0 / len(available))
            mean = statistics.mean(available)
            if mean > 0:
                fairness_score = 1 - statistics.pstdev(available) / mean
            else:
                fairness_score = 0.0
        else:
            egalitarian = 0.0
            nash_product = 0.0
            fairness_score = 0.0

        slot_counts = counts.get(candidate.slot, {})
        works_count = slot_counts.get(AvailabilityStatus.WORKS, 0)
        preferred_count = slot_counts.get(AvailabilityStatus.PREFERRED, 0)
        available_count = works_count + preferred_count

        composite_score = (
            self.SOCIAL_WELFARE_WEIGHT * social_welfare
            + self.NASH_WEIGHT * nash_product * self.NASH_SCALE
            + self.EGALITARIAN_WEIGHT * egalitarian * self.EGALITARIAN_SCALE
            + self.FAIRNESS_WEIGHT * fairness_score * self.FAIRNESS_SCALE
            - self.PARETO_WEIGHT * pareto_rank
        )

        return Suggestion(
            date=candidate.slot.date,
            time=candidate.slot.time,
            available_count=available_count,
            preferred_count=preferred_count,
            works_count=works_count,
            percentage=available_count / participant_count * 100,
            social_welfare=social_welfare,
            utilitarian=utilitarian,
            egalitarian=egalitarian,
            nash_product=nash_product,
            fairness_score=fairness_score,
            pareto_rank=pareto_rank,
            composite_score=composite_score
        )

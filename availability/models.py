"""Data models for availability tracking and time suggestions."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AvailabilityStatus(str, Enum):
    """Availability a participant declares for one slot."""
    UNAVAILABLE = 'unavailable'
    WORKS = 'works'
    PREFERRED = 'preferred'


@dataclass
class Event:
    """Event descriptor supplied by the storage layer."""
    event_id: str
    title: str
    start_date: str
    end_date: str
    start_time: str
    end_time: str
    description: str = ''
    creator_name: Optional[str] = None
    slot_granularity_minutes: int = 30


@dataclass(frozen=True)
class Slot:
    """A (date, time) point of the availability grid."""
    date: str
    time: str

    @property
    def key(self) -> str:
        return f"{self.date}-{self.time}"


@dataclass(frozen=True)
class Participant:
    """Participant who joined an event."""
    participant_id: str
    name: str


@dataclass
class AvailabilityEntry:
    """Persisted availability row, unique per participant, date and time."""
    participant_id: str
    date: str
    time: str
    status: AvailabilityStatus

    @property
    def slot(self) -> Slot:
        return Slot(date=self.date, time=self.time)


@dataclass
class AvailabilitySnapshot:
    """Full participant and availability state of one event."""
    participants: List[Participant] = field(default_factory=list)
    entries: List[AvailabilityEntry] = field(default_factory=list)


@dataclass
class Suggestion:
    """Ranked candidate meeting time."""
    date: str
    time: str
    available_count: int
    preferred_count: int
    works_count: int
    percentage: float
    social_welfare: float
    utilitarian: float
    egalitarian: float
    nash_product: float
    fairness_score: float
    pareto_rank: int
    composite_score: float

    @property
    def slot(self) -> Slot:
        return Slot(date=self.date, time=self.time)


@dataclass
class HeatmapCell:
    """Display intensity of one slot."""
    date: str
    time: str
    works_participants: List[Participant]
    preferred_participants: List[Participant]
    score: int
    ratio: float
    band: int

"""Unit tests for the iCalendar export."""
from datetime import datetime, timezone

import pytest

from availability.models import Event, Suggestion
from exporter.ics_exporter import build_ics, generate_uid


@pytest.fixture
def meeting():
    return Event(
        event_id='evt-1',
        title='Quarterly Planning',
        description='Agree on Q3 goals',
        start_date='2024-01-15',
        end_date='2024-01-19',
        start_time='09:00',
        end_time='17:00'
    )


@pytest.fixture
def suggestion():
    return Suggestion(
        date='2024-01-16',
        time='14:30:00',
        available_count=2,
        preferred_count=1,
        works_count=1,
        percentage=100.0,
        social_welfare=3.0,
        utilitarian=1.5,
        egalitarian=1.0,
        nash_product=1.414,
        fairness_score=0.667,
        pareto_rank=0,
        composite_score=6.86
    )


def test_generate_uid_is_stable():
    uid_1 = generate_uid('evt-1', '2024-01-16', '14:30:00')
    uid_2 = generate_uid('evt-1', '2024-01-16', '14:30:00')

    assert uid_1 == uid_2
    assert len(uid_1) == 64
    assert uid_1 != generate_uid('evt-1', '2024-01-16', '15:00:00')


def test_build_ics_contains_required_fields(meeting, suggestion):
    payload = build_ics(
        meeting, suggestion,
        now=datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    )

    assert 'BEGIN:VCALENDAR' in payload
    assert 'BEGIN:VEVENT' in payload
    assert f"UID:{generate_uid('evt-1', '2024-01-16', '14:30:00')}" in payload
    assert 'SUMMARY:Quarterly Planning' in payload
    assert 'DESCRIPTION:Agree on Q3 goals' in payload
    assert 'DTSTART:20240116T143000' in payload
    assert 'DTEND:20240116T150000' in payload
    assert 'END:VCALENDAR' in payload


def test_build_ics_without_description(meeting, suggestion):
    meeting.description = ''

    payload = build_ics(meeting, suggestion)

    assert 'SUMMARY:Quarterly Planning' in payload
    assert 'DESCRIPTION' not in payload

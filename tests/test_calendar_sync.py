"""Unit tests for calendar sync payloads and the simulated client."""
import re

import pytest

from conftest import make_event
from planner.calendar_sync import (
    SimulatedCalendarClient,
    build_calendar_event,
    build_timeline_calendar_event,
    format_time_for_calendar,
)
from planner.timeline import generate_timeline


@pytest.mark.parametrize('raw, expected', [
    ('2:30 PM', '14:30'),
    ('12:00 PM', '12:00'),
    ('12:15 AM', '00:15'),
    ('9:05am', '09:05'),
    ('07:00', '07:00'),
])
def test_format_time_for_calendar(raw, expected):
    assert format_time_for_calendar(raw) == expected


def test_build_calendar_event():
    payload = build_calendar_event(
        event_name='Spring Bootcamp',
        task_name='Team Briefing',
        start_date='2025-06-14',
        start_time='6:00 PM',
        end_date='2025-06-14',
        end_time='19:00',
        location='Riverside Park',
        description='Review roles',
        attendees=['jo@example.com'],
        time_zone='America/Chicago',
    )

    assert payload['summary'] == 'Spring Bootcamp - Team Briefing'
    assert payload['start'] == {'dateTime': '2025-06-14T18:00:00', 'timeZone': 'America/Chicago'}
    assert payload['end']['dateTime'] == '2025-06-14T19:00:00'
    assert payload['attendees'] == [{'email': 'jo@example.com'}]
    assert payload['reminders']['useDefault'] is False
    assert {'method': 'email', 'minutes': 1440} in payload['reminders']['overrides']


def test_build_timeline_calendar_event_blocks_one_hour():
    event = make_event()
    item = generate_timeline(event)[-1]

    payload = build_timeline_calendar_event(event, item)

    assert payload['summary'] == 'Spring Bootcamp - Event Setup'
    assert payload['start']['dateTime'] == '2025-06-15T07:00:00'
    assert payload['end']['dateTime'] == '2025-06-15T08:00:00'
    assert payload['location'] == 'Riverside Park'
    assert payload['attendees'] == []


def test_simulated_client_returns_opaque_ids():
    client = SimulatedCalendarClient()
    payload = build_timeline_calendar_event(make_event(), generate_timeline(make_event())[0])

    first = client.create_event(payload)
    second = client.create_event(payload)

    assert re.match(r'^gcal_\d+_[a-z0-9]{9}$', first)
    assert first != second

"""Calendar sync for confirmed timeline items."""
import logging
import random
import string
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from planner.models import Event, TimelineItem

logger = logging.getLogger(__name__)

DEFAULT_TASK_MINUTES = 60
REMINDERS = [
    {'method': 'popup', 'minutes': 60},
    {'method': 'email', 'minutes': 1440},
]


def format_time_for_calendar(time_str: str) -> str:
    """
    Convert a 12-hour time ("2:30 PM") to 24-hour "HH:MM".

    Times without an AM/PM marker are returned unchanged.
    """
    time_str = time_str.strip()
    if not time_str.upper().endswith(('AM', 'PM')):
        return time_str
    return datetime.strptime(time_str.replace(' ', '').upper(), '%I:%M%p').strftime('%H:%M')


def build_calendar_event(
    event_name: str,
    task_name: str,
    start_date: str,
    start_time: str,
    end_date: str,
    end_time: str,
    location: str,
    description: str,
    attendees: Optional[List[str]] = None,
    time_zone: str = 'UTC',
) -> Dict[str, Any]:
    """
    Build a Google Calendar style event payload.

    Args:
        event_name: Parent event name
        task_name: Timeline item title
        start_date: ISO date of the task start
        start_time: Start time, 24-hour or 12-hour
        end_date: ISO date of the task end
        end_time: End time, 24-hour or 12-hour
        location: Event location
        description: Task description
        attendees: Attendee email addresses
        time_zone: IANA time zone name for start and end

    Returns:
        Calendar event payload
    """
    start = datetime.fromisoformat(f"{start_date}T{format_time_for_calendar(start_time)}")
    end = datetime.fromisoformat(f"{end_date}T{format_time_for_calendar(end_time)}")

    return {
        'summary': f"{event_name} - {task_name}",
        'description': description,
        'start': {'dateTime': start.isoformat(), 'timeZone': time_zone},
        'end': {'dateTime': end.isoformat(), 'timeZone': time_zone},
        'location': location,
        'attendees': [{'email': email} for email in attendees or []],
        'reminders': {'useDefault': False, 'overrides': list(REMINDERS)},
    }


def build_timeline_calendar_event(
    event: Event,
    item: TimelineItem,
    attendees: Optional[List[str]] = None,
    time_zone: str = 'UTC',
) -> Dict[str, Any]:
    """Calendar payload for a timeline item, blocking one hour from its due time."""
    start = datetime.fromisoformat(f"{item.due_date}T{format_time_for_calendar(item.due_time)}")
    end = start + timedelta(minutes=DEFAULT_TASK_MINUTES)
    return build_calendar_event(
        event_name=event.name,
        task_name=item.title,
        start_date=start.date().isoformat(),
        start_time=start.strftime('%H:%M'),
        end_date=end.date().isoformat(),
        end_time=end.strftime('%H:%M'),
        location=event.location,
        description=item.description,
        attendees=attendees,
        time_zone=time_zone,
    )


class SimulatedCalendarClient:
    """Stand-in calendar client that accepts every event."""

    def __init__(self, delay_seconds: float = 0):
        """
        Initialize the simulated client.

        Args:
            delay_seconds: Artificial latency per create call
        """
        self.delay_seconds = delay_seconds

    def create_event(self, payload: Dict[str, Any]) -> str:
        """
        Pretend to create a calendar event.

        Args:
            payload: Calendar event payload from build_calendar_event

        Returns:
            Opaque calendar event ID
        """
        logger.info(f"Creating calendar event: {payload['summary']}")
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
        event_id = f"gcal_{int(time.time() * 1000)}_{suffix}"
        logger.info(f"Calendar event created with ID: {event_id}")
        return event_id

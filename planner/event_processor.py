"""Event processor for validating wizard form data and building events."""
import logging
import re
import uuid
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from planner.models import (
    EVENT_SCOPES,
    EVENT_STATUSES,
    MARKETING_CHANNELS,
    PROFILE_TYPES,
    TICKETING_OPTIONS,
    Event,
    PointOfContact,
)

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class ValidationError(Exception):
    """Raised when client-supplied data fails validation."""

    def __init__(self, errors: Dict[str, str]):
        """
        Args:
            errors: Mapping of field path to error message
        """
        super().__init__(f"Invalid data: {', '.join(sorted(errors))}")
        self.errors = errors


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class EventProcessor:
    """Processor for validating and normalizing event form data."""

    MAX_NAME_LENGTH = 100
    MIN_PURPOSE_LENGTH = 10
    FIXED_FIELDS = frozenset({'id', 'created_by', 'profile_type', 'created_at', 'updated_at'})

    def validate(self, form: Dict[str, Any]) -> Dict[str, str]:
        """
        Validate event form data.

        Args:
            form: Raw form fields from the event setup wizard

        Returns:
            Mapping of field path to error message, empty when valid
        """
        errors = {}

        name = (form.get('event_name') or '').strip()
        if not name:
            errors['event_name'] = 'Event name is required'
        elif len(name) > self.MAX_NAME_LENGTH:
            errors['event_name'] = 'Event name must be less than 100 characters'

        event_date = form.get('event_date') or ''
        if not event_date.strip():
            errors['event_date'] = 'Event date is required'
        elif not self._normalize_date(event_date):
            errors['event_date'] = 'Event date must be a valid date'

        for key, label in (('event_time', 'Event time'), ('event_end_time', 'Event end time')):
            value = form.get(key) or ''
            if not value.strip():
                errors[key] = f"{label} is required"
            elif not self._normalize_time(value):
                errors[key] = f"{label} must be a valid time"

        if not (form.get('event_location') or '').strip():
            errors['event_location'] = 'Event location is required'

        if form.get('event_scope') not in EVENT_SCOPES:
            errors['event_scope'] = 'Please select event scope'

        contact = form.get('point_of_contact') or {}
        if not (contact.get('name') or '').strip():
            errors['point_of_contact.name'] = 'Contact name is required'
        if not _EMAIL.match((contact.get('email') or '').strip()):
            errors['point_of_contact.email'] = 'Valid email is required'

        purpose = (form.get('event_purpose') or '').strip()
        if len(purpose) < self.MIN_PURPOSE_LENGTH:
            errors['event_purpose'] = (
                'Please provide a detailed event purpose (at least 10 characters)'
            )

        if not form.get('team_roles'):
            errors['team_roles'] = 'At least one team role is required'

        channels = form.get('marketing_channels') or []
        if not channels:
            errors['marketing_channels'] = 'Select at least one marketing channel'
        else:
            unknown = [channel for channel in channels if channel not in MARKETING_CHANNELS]
            if unknown:
                errors['marketing_channels'] = f"Unknown marketing channel: {', '.join(unknown)}"

        ticketing = form.get('ticketing_needs') or ''
        if ticketing and ticketing not in TICKETING_OPTIONS:
            errors['ticketing_needs'] = "Ticketing needs must be 'yes' or 'no'"

        if errors:
            logger.warning(f"Event form failed validation: {sorted(errors)}")
        return errors

    def build_event(
        self,
        form: Dict[str, Any],
        profile_type: str,
        user_id: Optional[str] = None,
    ) -> Event:
        """
        Validate form data and build a new draft Event.

        Args:
            form: Raw form fields from the event setup wizard
            profile_type: 'team' or 'individual'
            user_id: ID of the creating user

        Returns:
            Event with a fresh ID and normalized date/times

        Raises:
            ValidationError: If any field is invalid
        """
        errors = self.validate(form)
        if profile_type not in PROFILE_TYPES:
            errors['profile_type'] = 'Profile type must be team or individual'
        if errors:
            raise ValidationError(errors)

        contact = form['point_of_contact']
        now = utc_now_iso()
        return Event(
            id=self.generate_event_id(),
            name=form['event_name'].strip(),
            date=self._normalize_date(form['event_date']),
            time=self._normalize_time(form['event_time']),
            event_end_time=self._normalize_time(form['event_end_time']),
            location=form['event_location'].strip(),
            point_of_contact=PointOfContact(
                name=contact['name'].strip(),
                email=contact['email'].strip(),
                phone=contact.get('phone') or '',
            ),
            event_purpose=form['event_purpose'].strip(),
            coach_support=form.get('coach_support') or '',
            marketing_channels=list(form['marketing_channels']),
            ticketing_needs=form.get('ticketing_needs') or '',
            gems_details=form.get('gems_details') or '',
            special_requirements=form.get('special_requirements') or '',
            other_notes=form.get('other_notes') or '',
            event_type=form.get('event_type') or '',
            event_scope=form['event_scope'],
            team_roles=list(form['team_roles']),
            status='draft',
            color=form.get('color'),
            profile_type=profile_type,
            created_by=user_id or 'unknown',
            created_at=now,
            updated_at=now,
        )

    def validate_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and normalize edits to an existing event.

        Identity, ownership and timestamps are fixed after creation, and
        timeline items are only replaced through the timeline operations.

        Args:
            changes: Event field names mapped to new values

        Returns:
            Normalized changes ready to store

        Raises:
            ValidationError: If any change is not allowed or not valid
        """
        errors = {}
        normalized = {}
        editable = {f.name for f in fields(Event)} - self.FIXED_FIELDS - {'timeline_items'}

        for key, value in changes.items():
            if key == 'timeline_items':
                errors[key] = 'Timeline items are saved through the timeline actions'
            elif key in self.FIXED_FIELDS:
                errors[key] = f"{key} cannot be changed"
            elif key not in editable:
                errors[key] = f"Unknown event field: {key}"
            else:
                normalized[key] = value

        if 'name' in normalized:
            name = (normalized['name'] or '').strip()
            if not name or len(name) > self.MAX_NAME_LENGTH:
                errors['name'] = 'Event name is required and must be less than 100 characters'
            normalized['name'] = name

        if 'date' in normalized:
            event_date = self._normalize_date(normalized['date'] or '')
            if not event_date:
                errors['date'] = 'Event date must be a valid date'
            normalized['date'] = event_date

        for key in ('time', 'event_end_time'):
            if key in normalized:
                event_time = self._normalize_time(normalized[key] or '')
                if not event_time:
                    errors[key] = 'Time must be a valid time'
                normalized[key] = event_time

        if 'location' in normalized and not (normalized['location'] or '').strip():
            errors['location'] = 'Event location is required'

        if 'status' in normalized and normalized['status'] not in EVENT_STATUSES:
            errors['status'] = f"Status must be one of {', '.join(EVENT_STATUSES)}"

        if 'event_scope' in normalized and normalized['event_scope'] not in EVENT_SCOPES:
            errors['event_scope'] = 'Please select event scope'

        ticketing = normalized.get('ticketing_needs')
        if ticketing and ticketing not in TICKETING_OPTIONS:
            errors['ticketing_needs'] = "Ticketing needs must be 'yes' or 'no'"

        if 'marketing_channels' in normalized:
            channels = normalized['marketing_channels']
            if not isinstance(channels, list) or not channels:
                errors['marketing_channels'] = 'Select at least one marketing channel'
            elif any(channel not in MARKETING_CHANNELS for channel in channels):
                errors['marketing_channels'] = 'Unknown marketing channel'

        if 'team_roles' in normalized:
            roles = normalized['team_roles']
            if not isinstance(roles, list) or not roles:
                errors['team_roles'] = 'At least one team role is required'

        if 'point_of_contact' in normalized:
            contact = normalized['point_of_contact']
            if not isinstance(contact, dict) or not (contact.get('name') or '').strip():
                errors['point_of_contact.name'] = 'Contact name is required'
            elif not _EMAIL.match((contact.get('email') or '').strip()):
                errors['point_of_contact.email'] = 'Valid email is required'

        if 'event_purpose' in normalized:
            if len((normalized['event_purpose'] or '').strip()) < self.MIN_PURPOSE_LENGTH:
                errors['event_purpose'] = (
                    'Please provide a detailed event purpose (at least 10 characters)'
                )

        if errors:
            logger.warning(f"Event changes failed validation: {sorted(errors)}")
            raise ValidationError(errors)
        return normalized

    def _normalize_date(self, date_str: str) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        date_formats = [
            '%Y-%m-%d',      # ISO 8601 (date inputs)
            '%m/%d/%Y',      # US format
            '%B %d, %Y',     # Full month name
            '%b %d, %Y',     # Abbreviated month name
        ]

        for fmt in date_formats:
            try:
                date_obj = datetime.strptime(date_str.strip(), fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def _normalize_time(self, time_str: str) -> Optional[str]:
        """
        Normalize time to 24-hour format (HH:MM).

        Args:
            time_str: Time string in various formats

        Returns:
            24-hour formatted time string or None if parsing fails
        """
        time_formats = [
            '%H:%M',         # 24-hour format (time inputs)
            '%I:%M %p',      # 12-hour format with AM/PM
            '%I:%M%p',       # 12-hour format without space
        ]

        time_str = time_str.strip()

        for fmt in time_formats:
            try:
                time_obj = datetime.strptime(time_str, fmt)
                return time_obj.strftime('%H:%M')
            except ValueError:
                continue

        return None

    def generate_event_id(self) -> str:
        """Generate an opaque document ID for a new record."""
        return uuid.uuid4().hex

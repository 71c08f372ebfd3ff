"""Unit tests for EventProcessor."""
import pytest

from planner.event_processor import EventProcessor, ValidationError


@pytest.fixture
def valid_form():
    """Form data as submitted by the event setup wizard."""
    return {
        'event_name': 'Spring Bootcamp',
        'event_date': '2025-06-15',
        'event_time': '9:00 AM',
        'event_end_time': '11:30',
        'event_location': 'Riverside Park',
        'event_scope': 'team',
        'point_of_contact': {
            'name': 'Sam Rivera',
            'email': 'sam@example.com',
            'phone': '555-0100',
        },
        'event_purpose': 'Outdoor strength session for members',
        'team_roles': ['Event Lead', 'Setup Coordinator'],
        'marketing_channels': ['media', 'email'],
        'ticketing_needs': 'yes',
        'gems_details': '',
        'event_type': 'popup-class',
    }


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_validate_valid_form(self, valid_form):
        assert EventProcessor().validate(valid_form) == {}

    def test_validate_reports_field_keyed_errors(self):
        """Every missing required field gets its own message."""
        errors = EventProcessor().validate({})

        assert errors['event_name'] == 'Event name is required'
        assert errors['event_date'] == 'Event date is required'
        assert errors['event_time'] == 'Event time is required'
        assert errors['event_end_time'] == 'Event end time is required'
        assert errors['event_location'] == 'Event location is required'
        assert errors['event_scope'] == 'Please select event scope'
        assert errors['point_of_contact.name'] == 'Contact name is required'
        assert errors['point_of_contact.email'] == 'Valid email is required'
        assert 'event_purpose' in errors
        assert errors['team_roles'] == 'At least one team role is required'
        assert errors['marketing_channels'] == 'Select at least one marketing channel'

    def test_validate_name_too_long(self, valid_form):
        valid_form['event_name'] = 'x' * 101

        errors = EventProcessor().validate(valid_form)

        assert errors == {'event_name': 'Event name must be less than 100 characters'}

    def test_validate_short_purpose(self, valid_form):
        valid_form['event_purpose'] = 'Fun run'

        assert 'event_purpose' in EventProcessor().validate(valid_form)

    def test_validate_invalid_date_and_time(self, valid_form):
        valid_form['event_date'] = '2025-13-45'
        valid_form['event_time'] = '25:99'

        errors = EventProcessor().validate(valid_form)

        assert errors['event_date'] == 'Event date must be a valid date'
        assert errors['event_time'] == 'Event time must be a valid time'

    def test_validate_unknown_channel(self, valid_form):
        valid_form['marketing_channels'] = ['media', 'billboard']

        errors = EventProcessor().validate(valid_form)

        assert errors['marketing_channels'] == 'Unknown marketing channel: billboard'

    def test_validate_invalid_email(self, valid_form):
        valid_form['point_of_contact']['email'] = 'not-an-email'

        assert 'point_of_contact.email' in EventProcessor().validate(valid_form)

    def test_validate_ticketing_option(self, valid_form):
        valid_form['ticketing_needs'] = 'maybe'

        assert 'ticketing_needs' in EventProcessor().validate(valid_form)

    def test_build_event_normalizes_fields(self, valid_form):
        event = EventProcessor().build_event(valid_form, 'team', 'user-1')

        assert event.id
        assert event.name == 'Spring Bootcamp'
        assert event.date == '2025-06-15'
        assert event.time == '09:00'
        assert event.event_end_time == '11:30'
        assert event.point_of_contact.phone == '555-0100'
        assert event.marketing_channels == ['media', 'email']
        assert event.status == 'draft'
        assert event.profile_type == 'team'
        assert event.created_by == 'user-1'
        assert event.created_at == event.updated_at
        assert event.timeline_items == []

    def test_build_event_defaults_creator(self, valid_form):
        event = EventProcessor().build_event(valid_form, 'individual')

        assert event.created_by == 'unknown'
        assert event.profile_type == 'individual'

    def test_build_event_raises_validation_error(self, valid_form):
        valid_form['event_location'] = '  '

        with pytest.raises(ValidationError) as exc_info:
            EventProcessor().build_event(valid_form, 'team', 'user-1')

        assert exc_info.value.errors == {'event_location': 'Event location is required'}

    def test_build_event_rejects_profile_type(self, valid_form):
        with pytest.raises(ValidationError) as exc_info:
            EventProcessor().build_event(valid_form, 'club', 'user-1')

        assert 'profile_type' in exc_info.value.errors

    def test_normalize_date_us_format(self):
        assert EventProcessor()._normalize_date('06/15/2025') == '2025-06-15'

    def test_normalize_date_full_month_name(self):
        assert EventProcessor()._normalize_date('June 15, 2025') == '2025-06-15'

    def test_normalize_time_12_hour_format_pm(self):
        assert EventProcessor()._normalize_time('2:30 PM') == '14:30'

    def test_normalize_time_no_space(self):
        assert EventProcessor()._normalize_time('7:00am') == '07:00'

    def test_generate_event_id_uniqueness(self):
        processor = EventProcessor()

        assert processor.generate_event_id() != processor.generate_event_id()


class TestValidateChanges:
    """Test cases for edits to existing events."""

    def test_normalizes_allowed_changes(self):
        changes = EventProcessor().validate_changes({
            'name': '  Summer Bootcamp ',
            'date': '07/04/2025',
            'time': '2:30 PM',
            'status': 'active',
            'color': '#10B981',
        })

        assert changes == {
            'name': 'Summer Bootcamp',
            'date': '2025-07-04',
            'time': '14:30',
            'status': 'active',
            'color': '#10B981',
        }

    def test_rejects_fixed_and_unknown_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            EventProcessor().validate_changes({
                'id': 'x',
                'created_by': 'someone-else',
                'profile_type': 'individual',
                'timeline_items': [{'title': 'no id'}],
                'venue': 'Somewhere',
            })

        assert set(exc_info.value.errors) == {
            'id', 'created_by', 'profile_type', 'timeline_items', 'venue',
        }

    def test_rejects_invalid_values(self):
        with pytest.raises(ValidationError) as exc_info:
            EventProcessor().validate_changes({
                'status': 'archived',
                'date': 'soon',
                'marketing_channels': ['billboards'],
                'point_of_contact': {'name': 'Sam', 'email': 'nope'},
            })

        assert set(exc_info.value.errors) == {
            'status', 'date', 'marketing_channels', 'point_of_contact.email',
        }

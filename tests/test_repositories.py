"""Tests for cached repositories over mocked DynamoDB."""
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from conftest import make_event
from planner.models import Coach, Contact, EventLogistics, TeamMember, TimelineItem
from planner.timeline import generate_timeline
from storage.repositories import (
    CoachRepository,
    ContactRepository,
    EventRepository,
    LogisticsRepository,
    NotFoundError,
    PersistenceError,
)


@pytest.fixture
def events(dynamodb_manager, cache_gate):
    return EventRepository(dynamodb_manager, cache_gate)


@pytest.fixture
def contacts(dynamodb_manager, cache_gate):
    return ContactRepository(dynamodb_manager, cache_gate)


def client_error(code: str = 'InternalServerError') -> ClientError:
    return ClientError({'Error': {'Code': code, 'Message': 'boom'}}, 'Scan')


class TestEventRepository:
    """Test cases for EventRepository."""

    def test_get_events_newest_first(self, events):
        events.create_event(make_event(id='old', created_at='2025-01-01T00:00:00+00:00'))
        events.create_event(make_event(id='new', created_at='2025-03-01T00:00:00+00:00'))

        assert [event.id for event in events.get_events('team')] == ['new', 'old']

    def test_get_events_served_from_cache(self, events, dynamodb_manager):
        events.create_event(make_event(id='a'))
        events.get_events('team')

        # Written behind the repository's back: not visible until the cache expires
        dynamodb_manager.put_document('events', make_event(id='b').to_dict())

        assert [event.id for event in events.get_events('team')] == ['a']

    def test_get_events_refetched_after_timeout(self, events, dynamodb_manager, clock):
        events.create_event(make_event(id='a'))
        events.get_events('team')
        dynamodb_manager.put_document('events', make_event(id='b').to_dict())

        clock.advance(601)

        assert {event.id for event in events.get_events('team')} == {'a', 'b'}

    def test_create_writes_through_to_cached_list(self, events):
        events.get_events('team')

        events.create_event(make_event(id='fresh'))

        assert [event.id for event in events.get_events('team')] == ['fresh']

    def test_individual_events_filtered_by_creator(self, events):
        events.create_event(make_event(id='mine', profile_type='individual', created_by='u1'))
        events.create_event(make_event(id='theirs', profile_type='individual', created_by='u2'))
        events.create_event(make_event(id='team', profile_type='team', created_by='u1'))

        assert [event.id for event in events.get_events('individual', 'u1')] == ['mine']

    def test_individual_events_without_user(self, events):
        assert events.get_events('individual', '') == []

    def test_unknown_profile_type(self, events):
        with pytest.raises(ValueError):
            events.get_events('club')

    def test_update_event_writes_through(self, events, clock):
        events.create_event(make_event(id='a'))
        events.get_events('team')

        updated = events.update_event('a', 'team', {'name': 'Renamed', 'status': 'active'})

        assert updated.name == 'Renamed'
        assert events.get_events('team')[0].name == 'Renamed'
        assert events.get_events('team')[0].status == 'active'

    def test_update_missing_event(self, events):
        with pytest.raises(NotFoundError):
            events.update_event('missing', 'team', {'name': 'x'})

    def test_save_timeline_replaces_whole_list(self, events):
        event = make_event(id='a', marketing_channels=['media'])
        events.create_event(event)
        events.get_events('team')
        timeline = generate_timeline(event)
        timeline[0].status = 'confirmed'

        saved = events.save_timeline('a', 'team', timeline[:2])

        assert [item.id for item in saved.timeline_items] == ['a-1', 'a-2']
        assert saved.timeline_items[0].status == 'confirmed'
        cached = events.get_events('team')[0]
        assert cached.timeline_items == saved.timeline_items
        assert events.get_event('a', 'team').timeline_items == saved.timeline_items

    def test_delete_event_writes_through(self, events):
        events.create_event(make_event(id='a'))
        events.create_event(make_event(id='b'))
        events.get_events('team')

        events.delete_event('a', 'team')

        assert [event.id for event in events.get_events('team')] == ['b']
        assert events.get_event('a', 'team') is None

    def test_delete_missing_event(self, events):
        with pytest.raises(NotFoundError):
            events.delete_event('missing', 'team')

    def test_remote_failure_surfaces_as_persistence_error(self, cache_gate):
        manager = Mock()
        manager.scan_documents.side_effect = client_error()
        repository = EventRepository(manager, cache_gate)

        with pytest.raises(PersistenceError, match='Failed to get team events'):
            repository.get_events('team')

    def test_failed_write_leaves_cache_untouched(self, cache_gate):
        manager = Mock()
        manager.scan_documents.return_value = []
        manager.put_document.side_effect = client_error()
        repository = EventRepository(manager, cache_gate)
        repository.get_events('team')

        with pytest.raises(PersistenceError, match='Failed to create team event'):
            repository.create_event(make_event(id='a'))

        assert repository.get_events('team') == []


class TestListRepositories:
    """Test cases for coaches and contacts."""

    def test_coach_crud(self, dynamodb_manager, cache_gate):
        coaches = CoachRepository(dynamodb_manager, cache_gate)
        coaches.list_all()

        coaches.create(Coach(id='c1', name='Alex', email='alex@example.com'))
        coaches.update('c1', {'phone': '555-0101'})

        listed = coaches.list_all()
        assert [coach.phone for coach in listed] == ['555-0101']
        assert coaches.get('c1').phone == '555-0101'
        assert listed[0].created_at

        coaches.delete('c1')
        assert coaches.list_all() == []
        assert coaches.get('c1') is None

    def test_update_missing_coach(self, dynamodb_manager, cache_gate):
        with pytest.raises(NotFoundError):
            CoachRepository(dynamodb_manager, cache_gate).update('nope', {'name': 'x'})

    def test_contacts_by_category(self, contacts):
        contacts.create(Contact(id='v', name='Park Office', category='venue'))
        contacts.create(Contact(id='e', name='Medic', category='emergency'))

        assert [contact.id for contact in contacts.list_by_category('venue')] == ['v']


class TestLogisticsRepository:
    """Test cases for per-event logistics bundles."""

    def test_missing_bundle(self, dynamodb_manager, cache_gate):
        assert LogisticsRepository(dynamodb_manager, cache_gate).get('event-1') is None

    def test_save_creates_then_updates(self, dynamodb_manager, cache_gate):
        logistics = LogisticsRepository(dynamodb_manager, cache_gate)
        logistics.get('event-1')

        first = logistics.save(EventLogistics(
            event_id='event-1',
            team_members=[TeamMember(id='m1', name='Jo', role='Event Lead')],
            activities=[{'name': 'Warmup', 'minutes': 15}],
        ))
        second = logistics.save(EventLogistics(
            event_id='event-1',
            day_of_schedule=[{'time': '08:00', 'task': 'Setup'}],
        ))

        loaded = logistics.get('event-1')
        assert second.created_at == first.created_at
        assert loaded.team_members == []
        assert loaded.day_of_schedule == [{'time': '08:00', 'task': 'Setup'}]
        assert dynamodb_manager.get_document('event-logistics', 'event-1')['updated_at'] == second.updated_at


def test_timeline_item_roundtrip_through_storage(events):
    event = make_event(id='a', timeline_items=[
        TimelineItem(id='1', title='Legacy', description='', due_date='2025-06-01', notes='n'),
    ])
    events.create_event(event)

    stored = events.get_event('a', 'team')

    assert stored.timeline_items[0].notes == 'n'
    assert stored.timeline_items[0].assigned_to is None


class TestRepositoryGuards:
    """Test cases for transport failures, fixed fields and cache refresh."""

    def test_transport_failure_on_single_read(self, cache_gate):
        manager = Mock()
        manager.get_document.side_effect = EndpointConnectionError(endpoint_url='https://local')

        with pytest.raises(PersistenceError, match='Failed to get event'):
            EventRepository(manager, cache_gate).get_event('a', 'team')

    def test_transport_failure_on_update_is_not_a_missing_event(self, cache_gate):
        manager = Mock()
        manager.update_document.side_effect = NoCredentialsError()

        with pytest.raises(PersistenceError) as exc_info:
            EventRepository(manager, cache_gate).update_event('a', 'team', {'name': 'x'})

        assert not isinstance(exc_info.value, NotFoundError)

    @pytest.mark.parametrize('field', ['id', 'created_by', 'profile_type', 'created_at'])
    def test_event_ownership_fields_are_fixed(self, events, field):
        events.create_event(make_event(id='a'))

        with pytest.raises(ValueError):
            events.update_event('a', 'team', {field: 'other'})

        assert events.get_event('a', 'team').created_by == 'user-1'

    def test_invalidate_refetches_event_list(self, events, dynamodb_manager):
        events.create_event(make_event(id='a'))
        events.get_events('team')
        dynamodb_manager.put_document('events', make_event(id='b').to_dict())

        events.invalidate('team')

        assert {event.id for event in events.get_events('team')} == {'a', 'b'}

    def test_delete_missing_contact(self, contacts):
        with pytest.raises(NotFoundError):
            contacts.delete('nope')

    def test_contact_id_is_fixed(self, contacts):
        contacts.create(Contact(id='v', name='Park Office', category='venue'))

        with pytest.raises(ValueError):
            contacts.update('v', {'id': 'w'})

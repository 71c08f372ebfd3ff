"""Cached repositories for planner documents.

Every read goes through the cache gate. Every successful remote write is
written through to the cached copy before returning, so the local cache
never lags a completed write.
"""
import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from planner.event_processor import utc_now_iso
from planner.models import Coach, Contact, Event, EventLogistics, TimelineItem
from storage.cache import CacheGate, cache_key
from storage.dynamodb_manager import (
    COACHES,
    CONTACTS,
    EVENT_LOGISTICS,
    INDIVIDUAL_EVENTS,
    TEAM_EVENTS,
    DynamoDBManager,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A remote storage operation failed; the message is safe to show users."""


class NotFoundError(PersistenceError):
    """The requested document does not exist."""


def _is_missing(error: Exception) -> bool:
    """
    Check whether a failed conditional write means the document is absent.

    Args:
        error: ClientError or BotoCoreError from the manager

    Returns:
        True for a ConditionalCheckFailedException
    """
    if not isinstance(error, ClientError):
        return False
    return error.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException'


def _newest_first(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Order documents by creation time, newest first.

    Args:
        documents: Raw documents

    Returns:
        New sorted list; documents without created_at sort last
    """
    return sorted(documents, key=lambda doc: doc.get('created_at', ''), reverse=True)


def _replace_in(documents: List[Dict[str, Any]], document: Dict[str, Any], key: str = 'id'):
    """Return a copy of ``documents`` with the one sharing ``document``'s key replaced."""
    return [document if doc.get(key) == document[key] else doc for doc in documents]


def _remove_from(documents: List[Dict[str, Any]], doc_id: str, key: str = 'id'):
    """Return a copy of ``documents`` without the one keyed ``doc_id``."""
    return [doc for doc in documents if doc.get(key) != doc_id]


class EventRepository:
    """Team and individual events, cached per profile."""

    # Identity and ownership decide the table and cache key of an event
    IMMUTABLE_FIELDS = frozenset({'id', 'created_by', 'profile_type', 'created_at'})

    def __init__(self, manager: DynamoDBManager, cache: CacheGate):
        self.manager = manager
        self.cache = cache

    @staticmethod
    def collection_for(profile_type: str) -> str:
        """
        Map a profile type to its events collection.

        Args:
            profile_type: 'team' or 'individual'

        Returns:
            Collection name

        Raises:
            ValueError: For any other profile type
        """
        if profile_type == 'team':
            return TEAM_EVENTS
        if profile_type == 'individual':
            return INDIVIDUAL_EVENTS
        raise ValueError(f"Unknown profile type: {profile_type}")

    @staticmethod
    def list_key(profile_type: str, user_id: str = '') -> str:
        """
        Build the cache key of a profile's event list.

        Args:
            profile_type: 'team' or 'individual'
            user_id: Owner of individual events; ignored for team events

        Returns:
            Cache key
        """
        if profile_type == 'individual':
            return cache_key('events', 'individual', user_id)
        return cache_key('events', profile_type)

    def invalidate(self, profile_type: str, user_id: str = '') -> None:
        """Drop the cached event list so the next read refetches it."""
        self.cache.invalidate(self.list_key(profile_type, user_id))

    def get_events(self, profile_type: str, user_id: str = '') -> List[Event]:
        """
        Load events for a profile, newest first.

        Team events are shared; individual events are those created by
        ``user_id``.

        Args:
            profile_type: 'team' or 'individual'
            user_id: Current user ID, required for individual events

        Returns:
            List of Event objects

        Raises:
            PersistenceError: If the remote fetch fails
        """
        collection = self.collection_for(profile_type)
        if profile_type == 'individual' and not user_id:
            logger.warning('No user ID provided for individual events')
            return []

        def fetch():
            logger.info(f"Fetching fresh {profile_type} events")
            filters = {'created_by': user_id} if profile_type == 'individual' else None
            return _newest_first(self.manager.scan_documents(collection, filters))

        try:
            documents = self.cache.read_through(self.list_key(profile_type, user_id), fetch)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting {profile_type} events: {e}", exc_info=True)
            raise PersistenceError(f"Failed to get {profile_type} events") from e
        return [Event.from_dict(doc) for doc in documents]

    def get_event(self, event_id: str, profile_type: str) -> Optional[Event]:
        """
        Load a single event straight from the table.

        Args:
            event_id: Event ID
            profile_type: 'team' or 'individual'

        Returns:
            Event, or None if it does not exist
        """
        try:
            document = self.manager.get_document(self.collection_for(profile_type), event_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting event {event_id}: {e}", exc_info=True)
            raise PersistenceError('Failed to get event') from e
        return Event.from_dict(document) if document else None

    def create_event(self, event: Event) -> str:
        """
        Store a new event and add it to the cached list for its profile.

        Returns:
            The event ID
        """
        document = event.to_dict()
        try:
            self.manager.put_document(self.collection_for(event.profile_type), document)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating event: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create {event.profile_type} event") from e

        self.cache.update(
            self.list_key(event.profile_type, event.created_by),
            lambda documents: [document] + _remove_from(documents, event.id),
        )
        return event.id

    def update_event(
        self, event_id: str, profile_type: str, changes: Dict[str, Any]
    ) -> Event:
        """
        Apply field changes to an event and refresh its cached copy.

        Args:
            event_id: Event ID
            profile_type: 'team' or 'individual'
            changes: Field values to set

        Returns:
            The updated Event

        Raises:
            ValueError: If ``changes`` touches an identity or ownership field
            NotFoundError: If the event does not exist
            PersistenceError: If the write fails
        """
        immutable = self.IMMUTABLE_FIELDS & set(changes)
        if immutable:
            raise ValueError(f"Event fields cannot be changed: {', '.join(sorted(immutable))}")
        changes = dict(changes, updated_at=utc_now_iso())
        try:
            document = self.manager.update_document(
                self.collection_for(profile_type), event_id, changes
            )
        except (ClientError, BotoCoreError) as e:
            if _is_missing(e):
                raise NotFoundError(f"Event not found: {event_id}") from e
            logger.error(f"Error updating event {event_id}: {e}", exc_info=True)
            raise PersistenceError('Failed to update event') from e

        self.cache.update(
            self.list_key(profile_type, document.get('created_by', '')),
            lambda documents: _replace_in(documents, document),
        )
        return Event.from_dict(document)

    def save_timeline(
        self, event_id: str, profile_type: str, items: List[TimelineItem]
    ) -> Event:
        """Replace an event's whole timeline list."""
        try:
            return self.update_event(
                event_id, profile_type,
                {'timeline_items': [item.to_dict() for item in items]},
            )
        except NotFoundError:
            raise
        except PersistenceError as e:
            raise PersistenceError('Failed to update event timeline items') from e

    def delete_event(self, event_id: str, profile_type: str) -> None:
        """
        Delete an event and drop it from the cached list.

        Raises:
            NotFoundError: If the event does not exist
            PersistenceError: If the delete fails
        """
        if not event_id:
            raise ValueError('Event ID is required for deletion')
        try:
            old = self.manager.delete_document(self.collection_for(profile_type), event_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting event {event_id}: {e}", exc_info=True)
            raise PersistenceError('Failed to delete event') from e

        if old is None:
            raise NotFoundError('Event not found: The event may have already been deleted')

        self.cache.update(
            self.list_key(profile_type, old.get('created_by', '')),
            lambda documents: _remove_from(documents, event_id),
        )


class _ListRepository:
    """Shared collection cached as a single list."""

    collection = ''
    model = None
    label = ''

    IMMUTABLE_FIELDS = frozenset({'id', 'created_at'})

    def __init__(self, manager: DynamoDBManager, cache: CacheGate):
        """
        Initialize the repository.

        Args:
            manager: DynamoDB document manager
            cache: Cache gate holding the collection's list
        """
        self.manager = manager
        self.cache = cache
        self.key = cache_key(self.collection)

    def list_all(self) -> list:
        """
        Load every record in the collection, newest first.

        Returns:
            List of model instances

        Raises:
            PersistenceError: If the remote fetch fails
        """
        def fetch():
            return _newest_first(self.manager.scan_documents(self.collection))

        try:
            documents = self.cache.read_through(self.key, fetch)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting {self.label}s: {e}", exc_info=True)
            raise PersistenceError(f"Failed to get {self.label}s") from e
        return [self.model.from_dict(doc) for doc in documents]

    def get(self, doc_id: str):
        """
        Load one record straight from the table.

        Args:
            doc_id: Record ID

        Returns:
            Model instance, or None if it does not exist
        """
        try:
            document = self.manager.get_document(self.collection, doc_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting {self.label} {doc_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to get {self.label}") from e
        return self.model.from_dict(document) if document else None

    def create(self, record) -> str:
        """
        Store a new record and add it to the cached list.

        Args:
            record: Model instance; timestamps are filled in

        Returns:
            The record ID
        """
        now = utc_now_iso()
        record.created_at = record.created_at or now
        record.updated_at = now
        document = record.to_dict()
        try:
            self.manager.put_document(self.collection, document)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating {self.label}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create {self.label}") from e

        self.cache.update(
            self.key,
            lambda documents: [document] + _remove_from(documents, record.id),
        )
        return record.id

    def update(self, doc_id: str, changes: Dict[str, Any]):
        """
        Apply field changes to a record and refresh the cached list.

        Args:
            doc_id: Record ID
            changes: Field values to set

        Returns:
            The updated model instance

        Raises:
            ValueError: If ``changes`` touches the id or creation time
            NotFoundError: If the record does not exist
            PersistenceError: If the write fails
        """
        immutable = self.IMMUTABLE_FIELDS & set(changes)
        if immutable:
            raise ValueError(
                f"{self.label.capitalize()} fields cannot be changed: "
                f"{', '.join(sorted(immutable))}"
            )
        changes = dict(changes, updated_at=utc_now_iso())
        try:
            document = self.manager.update_document(self.collection, doc_id, changes)
        except (ClientError, BotoCoreError) as e:
            if _is_missing(e):
                raise NotFoundError(f"{self.label.capitalize()} not found: {doc_id}") from e
            logger.error(f"Error updating {self.label} {doc_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update {self.label}") from e

        self.cache.update(self.key, lambda documents: _replace_in(documents, document))
        return self.model.from_dict(document)

    def delete(self, doc_id: str) -> None:
        """
        Delete a record and drop it from the cached list.

        Args:
            doc_id: Record ID

        Raises:
            NotFoundError: If the record does not exist
            PersistenceError: If the delete fails
        """
        try:
            old = self.manager.delete_document(self.collection, doc_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {self.label} {doc_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete {self.label}") from e

        self.cache.update(self.key, lambda documents: _remove_from(documents, doc_id))
        if old is None:
            raise NotFoundError(f"{self.label.capitalize()} not found: {doc_id}")

    def invalidate(self) -> None:
        """Drop the cached list so the next read refetches it."""
        self.cache.invalidate(self.key)


class CoachRepository(_ListRepository):
    collection = COACHES
    model = Coach
    label = 'coach'


class ContactRepository(_ListRepository):
    collection = CONTACTS
    model = Contact
    label = 'contact'

    def list_by_category(self, category: str) -> List[Contact]:
        """
        Load contacts of one category, newest first.

        Args:
            category: Contact category, e.g. 'venue'

        Returns:
            Matching contacts
        """
        return [contact for contact in self.list_all() if contact.category == category]


class LogisticsRepository:
    """Per-event logistics bundles (team members, activities, schedule, contacts)."""

    def __init__(self, manager: DynamoDBManager, cache: CacheGate):
        self.manager = manager
        self.cache = cache

    @staticmethod
    def key_for(event_id: str) -> str:
        """
        Build the cache key of an event's bundle.

        Args:
            event_id: Owning event ID

        Returns:
            Cache key
        """
        return cache_key('logistics', event_id)

    def get(self, event_id: str) -> Optional[EventLogistics]:
        """
        Load the logistics bundle for an event.

        Args:
            event_id: Owning event ID

        Returns:
            EventLogistics, or None if the event has none yet
        """
        def fetch():
            return self.manager.get_document(EVENT_LOGISTICS, event_id)

        try:
            document = self.cache.read_through(self.key_for(event_id), fetch)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting logistics for event {event_id}: {e}", exc_info=True)
            raise PersistenceError('Failed to get event logistics') from e
        return EventLogistics.from_dict(document) if document else None

    def save(self, logistics: EventLogistics) -> EventLogistics:
        """
        Create or replace the bundle for its event.

        The first save stamps ``created_at``; later saves keep it.

        Args:
            logistics: Complete bundle to store

        Returns:
            The stored bundle with timestamps set
        """
        now = utc_now_iso()
        if not logistics.created_at:
            existing = self.get(logistics.event_id)
            logistics.created_at = existing.created_at if existing else now
        logistics.updated_at = now
        document = logistics.to_dict()

        try:
            self.manager.put_document(EVENT_LOGISTICS, document)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Error saving logistics for event {logistics.event_id}: {e}", exc_info=True
            )
            raise PersistenceError('Failed to save event logistics') from e

        self.cache.write_through(self.key_for(logistics.event_id), document)
        return logistics

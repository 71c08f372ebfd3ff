"""Dashboard loading: events and contacts fetched concurrently."""
import logging
from concurrent.futures import ThreadPoolExecutor

from planner.models import LoadResult
from planner.timeline import resolve_timeline
from storage.repositories import ContactRepository, EventRepository, PersistenceError

logger = logging.getLogger(__name__)


def load_dashboard(
    events: EventRepository,
    contacts: ContactRepository,
    profile_type: str,
    user_id: str = '',
) -> LoadResult:
    """
    Load events, their timelines and contacts for the dashboard.

    Both collections are fetched in parallel. Each one fails independently:
    a failed fetch is logged, recorded in ``errors`` and replaced by an
    empty list, while the other collection is still returned.

    Args:
        events: Event repository
        contacts: Contact repository
        profile_type: 'team' or 'individual'
        user_id: Current user ID

    Returns:
        LoadResult with events, timelines keyed by event ID, contacts and errors
    """
    errors = []

    with ThreadPoolExecutor(max_workers=2) as executor:
        events_future = executor.submit(events.get_events, profile_type, user_id)
        contacts_future = executor.submit(contacts.list_all)

        try:
            loaded_events = events_future.result()
        except PersistenceError as e:
            logger.error(f"Error loading events: {e}")
            errors.append(str(e))
            loaded_events = []

        try:
            loaded_contacts = contacts_future.result()
        except PersistenceError as e:
            logger.error(f"Error loading contacts: {e}")
            errors.append(str(e))
            loaded_contacts = []

    timelines = {event.id: resolve_timeline(event) for event in loaded_events}

    logger.info(
        f"Loaded {len(loaded_events)} {profile_type} events and "
        f"{len(loaded_contacts)} contacts",
        extra={'errors': len(errors)}
    )
    return LoadResult(
        events=loaded_events,
        timelines=timelines,
        contacts=loaded_contacts,
        errors=errors,
    )

"""AWS Lambda handler for the EventFlow planner."""
import json
import logging
import os
import time
from dataclasses import dataclass, fields
from datetime import date
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from planner.calendar_sync import SimulatedCalendarClient, build_timeline_calendar_event
from planner.event_processor import EventProcessor, ValidationError
from planner.models import CONTACT_CATEGORIES, Coach, Contact, Event, EventLogistics, TimelineItem
from planner.roles import get_responsible_person, get_role_assignments, get_suggested_assignee
from planner.timeline import (
    TimelineItemNotFoundError,
    add_item,
    delete_item,
    generate_timeline,
    overdue_items,
    parse_items,
    resolve_timeline,
    set_item_status,
    update_item,
)
from storage.cache import CacheGate, InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from storage.dynamodb_manager import DynamoDBManager
from storage.repositories import (
    CoachRepository,
    ContactRepository,
    EventRepository,
    LogisticsRepository,
    NotFoundError,
    PersistenceError,
)
from storage.startup import load_dashboard

logger = logging.getLogger(__name__)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class Config:
    """Runtime configuration read from the environment."""
    table_prefix: str
    log_level: str
    deploy_mode: str
    cache_timeout_seconds: float
    cache_file: Optional[str]
    calendar_delay_seconds: float


CACHE_TIMEOUT_DEV_SECONDS = 300
CACHE_TIMEOUT_PROD_SECONDS = 600


def load_config() -> Config:
    """Read configuration from environment variables."""
    deploy_mode = os.environ.get('DEPLOY_MODE', 'production')
    default_timeout = (
        CACHE_TIMEOUT_DEV_SECONDS if deploy_mode == 'development'
        else CACHE_TIMEOUT_PROD_SECONDS
    )
    return Config(
        table_prefix=os.environ.get('TABLE_PREFIX', 'eventflow'),
        log_level=os.environ.get('LOG_LEVEL', 'INFO'),
        deploy_mode=deploy_mode,
        cache_timeout_seconds=float(
            os.environ.get('CACHE_TIMEOUT_SECONDS', default_timeout)
        ),
        cache_file=os.environ.get('CACHE_FILE') or None,
        calendar_delay_seconds=float(os.environ.get('CALENDAR_SYNC_DELAY_SECONDS', '0')),
    )


# Kept at module level so warm invocations reuse cached snapshots
_memory_store = InMemoryKeyValueStore()
_file_stores: Dict[str, JsonFileKeyValueStore] = {}


def get_cache_store(config: Config) -> KeyValueStore:
    if not config.cache_file:
        return _memory_store
    if config.cache_file not in _file_stores:
        _file_stores[config.cache_file] = JsonFileKeyValueStore(Path(config.cache_file))
    return _file_stores[config.cache_file]


@dataclass
class Services:
    """Collaborators shared by the action handlers."""
    events: EventRepository
    coaches: CoachRepository
    contacts: ContactRepository
    logistics: LogisticsRepository
    processor: EventProcessor
    calendar: SimulatedCalendarClient


def build_services(config: Config) -> Services:
    manager = DynamoDBManager(table_prefix=config.table_prefix)
    cache = CacheGate(get_cache_store(config), timeout=config.cache_timeout_seconds)
    return Services(
        events=EventRepository(manager, cache),
        coaches=CoachRepository(manager, cache),
        contacts=ContactRepository(manager, cache),
        logistics=LogisticsRepository(manager, cache),
        processor=EventProcessor(),
        calendar=SimulatedCalendarClient(delay_seconds=config.calendar_delay_seconds),
    )


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _require(payload: Dict[str, Any], *names: str) -> None:
    missing = [name for name in names if not payload.get(name)]
    if missing:
        raise ValidationError({name: f"{name} is required" for name in missing})


def _object(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return ``payload[name]`` if it is a JSON object, else reject the request."""
    value = payload.get(name)
    if not isinstance(value, dict):
        raise ValidationError({name: f"{name} must be an object"})
    return value


def handle_load_dashboard(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Load events, timelines and contacts for the dashboard.

    ``refresh`` drops the cached lists first. Overdue item ids are reported
    per event relative to ``today`` (ISO date, defaults to the current date).
    """
    _require(payload, 'profile_type')
    profile_type = payload['profile_type']
    user_id = payload.get('user_id', '')
    today = date.fromisoformat(payload['today']) if payload.get('today') else date.today()

    if payload.get('refresh'):
        services.events.invalidate(profile_type, user_id)
        services.contacts.invalidate()

    result = load_dashboard(services.events, services.contacts, profile_type, user_id)
    return _response(200, {
        'events': [event.to_dict() for event in result.events],
        'timelines': {
            event_id: [item.to_dict() for item in items]
            for event_id, items in result.timelines.items()
        },
        'overdue': {
            event_id: [item.id for item in overdue_items(items, today)]
            for event_id, items in result.timelines.items()
        },
        'contacts': [contact.to_dict() for contact in result.contacts],
        'errors': result.errors,
    })


def handle_create_event(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'profile_type')
    event = services.processor.build_event(
        payload.get('form') or {}, payload['profile_type'], payload.get('user_id')
    )
    services.events.create_event(event)
    return _response(201, {
        'event': event.to_dict(),
        'timeline': [item.to_dict() for item in generate_timeline(event)],
    })


def handle_update_event(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type', 'changes')
    changes = services.processor.validate_changes(_object(payload, 'changes'))
    event = services.events.update_event(payload['event_id'], payload['profile_type'], changes)
    return _response(200, {'event': event.to_dict()})


def handle_delete_event(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type')
    services.events.delete_event(payload['event_id'], payload['profile_type'])
    return _response(200, {'message': 'Event deleted', 'event_id': payload['event_id']})


def _load_event(services: Services, payload: Dict[str, Any]) -> Event:
    """
    Fetch the event named in the payload.

    Raises:
        NotFoundError: If it does not exist
    """
    event = services.events.get_event(payload['event_id'], payload['profile_type'])
    if event is None:
        raise NotFoundError(f"Event not found: {payload['event_id']}")
    return event


def _persist_timeline(
    services: Services, event: Event, items: List[TimelineItem], profile_type: str
) -> Dict[str, Any]:
    """Replace the event's stored timeline and respond with the saved list."""
    saved = services.events.save_timeline(event.id, profile_type, items)
    return _response(200, {'timeline': [item.to_dict() for item in saved.timeline_items]})


def handle_save_timeline(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type')
    raw_items = payload.get('items') or []
    if not isinstance(raw_items, list):
        raise ValidationError({'items': 'Timeline items must be a list'})
    items = parse_items(raw_items)
    event = services.events.save_timeline(payload['event_id'], payload['profile_type'], items)
    return _response(200, {'timeline': [item.to_dict() for item in event.timeline_items]})


def _confirm_item(
    services: Services,
    event: Event,
    items: List[TimelineItem],
    item_id: str,
    attendees: Optional[List[str]] = None,
) -> List[TimelineItem]:
    """
    Finish confirming a timeline item.

    An unassigned item gets the suggested team member for its category from
    the event's logistics. The first confirmation creates the calendar entry;
    the assignee is invited when no attendees are given.

    Args:
        services: Shared collaborators
        event: Owning event
        items: Timeline with the item already confirmed
        item_id: Confirmed item
        attendees: Calendar attendee emails

    Returns:
        Updated timeline items
    """
    item = next(item for item in items if item.id == item_id)
    assignee = None
    if not item.assigned_to:
        logistics = services.logistics.get(event.id)
        if logistics:
            assignee = get_suggested_assignee(logistics.team_members, item.category)
        if assignee:
            items = update_item(items, item.id, assigned_to=assignee.name)
            logger.info(f"Assigned {item.id} to {assignee.name} ({assignee.role})")

    if not item.calendar_event_id:
        if attendees is None and assignee and assignee.email:
            attendees = [assignee.email]
        calendar_payload = build_timeline_calendar_event(event, item, attendees=attendees)
        calendar_id = services.calendar.create_event(calendar_payload)
        items = update_item(items, item.id, calendar_event_id=calendar_id)
    return items


def handle_update_timeline_item(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Edit one timeline item and persist the whole list."""
    _require(payload, 'event_id', 'profile_type', 'item_id', 'changes')
    event = _load_event(services, payload)

    changes = dict(_object(payload, 'changes'))
    items = update_item(resolve_timeline(event), payload['item_id'], **changes)
    if changes.get('status') == 'confirmed':
        items = _confirm_item(services, event, items, payload['item_id'], payload.get('attendees'))
    return _persist_timeline(services, event, items, payload['profile_type'])


def handle_set_timeline_item_status(
    services: Services, payload: Dict[str, Any]
) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type', 'item_id', 'status')
    event = _load_event(services, payload)

    items = set_item_status(resolve_timeline(event), payload['item_id'], payload['status'])
    if payload['status'] == 'confirmed':
        items = _confirm_item(services, event, items, payload['item_id'], payload.get('attendees'))
    return _persist_timeline(services, event, items, payload['profile_type'])


def handle_add_timeline_item(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type', 'item')
    item = _object(payload, 'item')
    _require(item, 'title', 'due_date')
    event = _load_event(services, payload)

    options = {
        key: item[key]
        for key in ('description', 'due_time', 'category', 'priority')
        if item.get(key)
    }
    items = add_item(resolve_timeline(event), event.id, item['title'], item['due_date'], **options)
    return _persist_timeline(services, event, items, payload['profile_type'])


def handle_delete_timeline_item(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id', 'profile_type', 'item_id')
    event = _load_event(services, payload)

    items = delete_item(resolve_timeline(event), payload['item_id'])
    return _persist_timeline(services, event, items, payload['profile_type'])


def handle_get_logistics(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, 'event_id')
    logistics = services.logistics.get(payload['event_id'])
    if logistics is None:
        raise NotFoundError(f"No logistics for event: {payload['event_id']}")
    assignments = get_role_assignments(logistics.team_members)
    return _response(200, {
        'logistics': logistics.to_dict(),
        'role_assignments': {role: member.name for role, member in assignments.items()},
    })


def handle_save_logistics(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Store a logistics bundle, filling schedule owners from the team roles."""
    _require(payload, 'event_id')
    data = dict(payload.get('logistics') or {}, event_id=payload['event_id'])
    logistics = EventLogistics.from_dict(data)

    schedule = []
    for entry in logistics.day_of_schedule:
        if not entry.get('responsible_person'):
            person = get_responsible_person(logistics.team_members, entry.get('type'))
            if person:
                entry = dict(entry, responsible_person=person.name)
        schedule.append(entry)
    logistics.day_of_schedule = schedule

    logistics = services.logistics.save(logistics)
    return _response(200, {'logistics': logistics.to_dict()})


def _check_contact_category(data: Dict[str, Any]) -> None:
    category = data.get('category')
    if category is not None and category not in CONTACT_CATEGORIES:
        raise ValidationError({
            'category': f"Category must be one of {', '.join(CONTACT_CATEGORIES)}"
        })


def handle_create_coach(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get('coach') or {}
    _require(data, 'name', 'email')
    coach = Coach.from_dict(dict(data, id=services.processor.generate_event_id()))
    services.coaches.create(coach)
    return _response(201, {'coach': coach.to_dict()})


def handle_create_contact(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get('contact') or {}
    _require(data, 'name')
    _check_contact_category(data)
    contact = Contact.from_dict(dict(data, id=services.processor.generate_event_id()))
    services.contacts.create(contact)
    return _response(201, {'contact': contact.to_dict()})


# resource name -> (Services attribute, model)
RECORD_TYPES = {
    'coach': ('coaches', Coach),
    'contact': ('contacts', Contact),
}


def handle_list_records(
    resource: str, services: Services, payload: Dict[str, Any]
) -> Dict[str, Any]:
    """List coaches or contacts; contacts may be narrowed by ``category``."""
    attribute, _ = RECORD_TYPES[resource]
    repository = getattr(services, attribute)
    if resource == 'contact' and payload.get('category'):
        _check_contact_category(payload)
        records = repository.list_by_category(payload['category'])
    else:
        records = repository.list_all()
    return _response(200, {attribute: [record.to_dict() for record in records]})


def handle_get_record(
    resource: str, services: Services, payload: Dict[str, Any]
) -> Dict[str, Any]:
    _require(payload, 'id')
    attribute, _ = RECORD_TYPES[resource]
    record = getattr(services, attribute).get(payload['id'])
    if record is None:
        raise NotFoundError(f"{resource.capitalize()} not found: {payload['id']}")
    return _response(200, {resource: record.to_dict()})


def handle_update_record(
    resource: str, services: Services, payload: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Apply field changes to a coach or contact.

    Unknown fields are rejected; the id and creation time are fixed.
    """
    _require(payload, 'id', 'changes')
    attribute, model = RECORD_TYPES[resource]
    changes = _object(payload, 'changes')
    allowed = {f.name for f in fields(model)} - {'id', 'created_at', 'updated_at'}
    rejected = sorted(set(changes) - allowed)
    if rejected:
        raise ValidationError({key: f"{key} cannot be changed" for key in rejected})
    if resource == 'contact':
        _check_contact_category(changes)

    record = getattr(services, attribute).update(payload['id'], changes)
    return _response(200, {resource: record.to_dict()})


def handle_delete_record(
    resource: str, services: Services, payload: Dict[str, Any]
) -> Dict[str, Any]:
    _require(payload, 'id')
    attribute, _ = RECORD_TYPES[resource]
    getattr(services, attribute).delete(payload['id'])
    return _response(200, {'message': f"{resource.capitalize()} deleted", 'id': payload['id']})


ACTIONS: Dict[str, Callable[[Services, Dict[str, Any]], Dict[str, Any]]] = {
    'load_dashboard': handle_load_dashboard,
    'create_event': handle_create_event,
    'update_event': handle_update_event,
    'delete_event': handle_delete_event,
    'save_timeline': handle_save_timeline,
    'update_timeline_item': handle_update_timeline_item,
    'set_timeline_item_status': handle_set_timeline_item_status,
    'add_timeline_item': handle_add_timeline_item,
    'delete_timeline_item': handle_delete_timeline_item,
    'get_logistics': handle_get_logistics,
    'save_logistics': handle_save_logistics,
    'create_coach': handle_create_coach,
    'create_contact': handle_create_contact,
}
for _resource, (_attribute, _) in RECORD_TYPES.items():
    ACTIONS[f"list_{_attribute}"] = partial(handle_list_records, _resource)
    ACTIONS[f"get_{_resource}"] = partial(handle_get_record, _resource)
    ACTIONS[f"update_{_resource}"] = partial(handle_update_record, _resource)
    ACTIONS[f"delete_{_resource}"] = partial(handle_delete_record, _resource)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the planner.

    Args:
        event: Invocation payload with an 'action' and its parameters
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    config = load_config()
    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = event.get('action')
    handler = ACTIONS.get(action)
    if handler is None:
        logger.warning(f"Unknown action: {action}")
        return _response(400, {
            'message': f"Unknown action: {action}",
            'actions': sorted(ACTIONS),
        })

    logger.info(f"Handling action {action}", extra={'deploy_mode': config.deploy_mode})

    try:
        services = build_services(config)
        response = handler(services, event)
    except ValidationError as e:
        return _response(400, {'message': 'Validation failed', 'errors': e.errors})
    except NotFoundError as e:
        return _response(404, {'message': str(e)})
    except TimelineItemNotFoundError as e:
        return _response(404, {'message': e.args[0]})
    except ValueError as e:
        return _response(400, {'message': str(e)})
    except PersistenceError as e:
        logger.error(
            f"Action {action} failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(time.time() - start_time, 2)
        })
    except Exception as e:
        logger.error(
            f"Action {action} failed unexpectedly: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Request failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(time.time() - start_time, 2)
        })

    logger.info(
        f"Action {action} completed",
        extra={
            'status_code': response['statusCode'],
            'duration_seconds': round(time.time() - start_time, 2)
        }
    )
    return response

"""Timeline generation for event preparation tasks."""
import logging
import re
from dataclasses import dataclass, fields, replace
from datetime import date, timedelta
from typing import Any, Callable, List, Optional

from planner.event_processor import ValidationError
from planner.models import (
    DEFAULT_DUE_TIME,
    TASK_CATEGORIES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Event,
    TimelineItem,
)

logger = logging.getLogger(__name__)

DEFAULT_GEMS_REQUEST = 'Tables, chairs, and supplies'


class TimelineItemNotFoundError(KeyError):
    """No timeline item has the requested id."""


_LEGACY_ID = re.compile(r'^\d+$')
_SEQUENCE_ID = re.compile(r'-(\d+)$')


@dataclass(frozen=True)
class TimelineRule:
    """Template for one generated timeline item."""
    title: str
    offset_days: int
    category: str
    priority: str
    applies: Callable[[Event], bool]
    describe: Callable[[Event], str]


def _has_channel(channel: str) -> Callable[[Event], bool]:
    """Predicate: the event is marketed through ``channel``."""
    return lambda event: channel in event.marketing_channels


def _always(event: Event) -> bool:
    """Predicate for unconditional items."""
    return True


def _fixed(text: str) -> Callable[[Event], str]:
    """Description that does not depend on the event."""
    return lambda event: text


# Declaration order matters: ids are numbered in this order before sorting.
TIMELINE_RULES = (
    TimelineRule(
        title='Create Social Media Content',
        offset_days=30,
        category='marketing',
        priority='high',
        applies=_has_channel('media'),
        describe=_fixed('Design and schedule social media posts for event promotion'),
    ),
    TimelineRule(
        title='Design and Print Flyers',
        offset_days=30,
        category='marketing',
        priority='high',
        applies=_has_channel('flyers'),
        describe=_fixed('Create event flyers and arrange printing'),
    ),
    TimelineRule(
        title='Submit GEMS Ticket',
        offset_days=21,
        category='logistics',
        priority='high',
        applies=lambda event: event.ticketing_needs == 'yes',
        describe=lambda event: f"Request: {event.gems_details or DEFAULT_GEMS_REQUEST}",
    ),
    TimelineRule(
        title='Send Email Campaign',
        offset_days=14,
        category='marketing',
        priority='high',
        applies=_has_channel('email'),
        describe=_fixed('Send promotional emails to target audience'),
    ),
    TimelineRule(
        title='Prepare Event Materials',
        offset_days=7,
        category='preparation',
        priority='medium',
        applies=_always,
        describe=_fixed('Gather all materials, signage, and equipment'),
    ),
    TimelineRule(
        title='Final Venue Walkthrough',
        offset_days=3,
        category='logistics',
        priority='high',
        applies=_always,
        describe=_fixed('Visit venue to confirm setup and logistics'),
    ),
    TimelineRule(
        title='Team Briefing',
        offset_days=1,
        category='preparation',
        priority='high',
        applies=_always,
        describe=_fixed('Meet with team to review roles and responsibilities'),
    ),
    TimelineRule(
        title='Event Setup',
        offset_days=0,
        category='execution',
        priority='high',
        applies=_always,
        describe=_fixed('Arrive early to set up venue and equipment'),
    ),
)


def generate_timeline(event: Event) -> List[TimelineItem]:
    """
    Generate the preparation timeline for an event.

    Each applicable rule yields one pending item due ``offset_days`` before
    the event date. Items are numbered ``{event.id}-{n}`` in rule order and
    then sorted by due date.

    Args:
        event: Event to plan for

    Returns:
        Timeline items sorted ascending by due date, or an empty list when
        the event has no usable date
    """
    if not event.date:
        logger.warning(f"Event '{event.name}' has no date, cannot generate timeline")
        return []

    try:
        event_date = date.fromisoformat(event.date)
    except ValueError:
        logger.warning(
            f"Invalid date for event '{event.name}': {event.date}, "
            f"cannot generate timeline"
        )
        return []

    timeline = []
    counter = 1
    for rule in TIMELINE_RULES:
        if not rule.applies(event):
            continue
        due_date = event_date - timedelta(days=rule.offset_days)
        timeline.append(TimelineItem(
            id=f"{event.id}-{counter}",
            title=rule.title,
            description=rule.describe(event),
            due_date=due_date.isoformat(),
            due_time=DEFAULT_DUE_TIME,
            category=rule.category,
            status='pending',
            priority=rule.priority,
        ))
        counter += 1

    timeline.sort(key=lambda item: item.due_date)
    logger.debug(f"Generated {len(timeline)} timeline items for event {event.id}")
    return timeline


def migrate_legacy_ids(event_id: str, items: List[TimelineItem]) -> List[TimelineItem]:
    """
    Re-derive bare numeric item ids as ``{event_id}-{index}``.

    Older timelines were stored with ids "1", "2", ... which collide across
    events. Only the id changes; every other field is kept.

    Args:
        event_id: Owning event ID
        items: Persisted timeline items

    Returns:
        New list with migrated ids
    """
    migrated = []
    for index, item in enumerate(items, start=1):
        if _LEGACY_ID.match(item.id):
            migrated.append(replace(item, id=f"{event_id}-{index}"))
        else:
            migrated.append(item)
    return migrated


def resolve_timeline(event: Event) -> List[TimelineItem]:
    """
    Return the authoritative timeline for an event.

    A persisted timeline always wins over a generated one; generation only
    happens for events that have never had a timeline stored.
    """
    if event.timeline_items:
        return migrate_legacy_ids(event.id, event.timeline_items)
    logger.info(f"Generating new timeline for event '{event.name}'")
    return generate_timeline(event)


def _find_index(items: List[TimelineItem], item_id: str) -> int:
    """
    Locate an item by id.

    Args:
        items: Timeline items
        item_id: Item ID to look for

    Returns:
        Index of the item in ``items``

    Raises:
        TimelineItemNotFoundError: If no item has ``item_id``
    """
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    raise TimelineItemNotFoundError(f"Timeline item not found: {item_id}")


def update_item(items: List[TimelineItem], item_id: str, **changes) -> List[TimelineItem]:
    """
    Return a copy of ``items`` with one item's fields replaced.

    Raises:
        TimelineItemNotFoundError: If no item has ``item_id``
        ValueError: If a category, status or priority is outside its enumeration
    """
    if 'id' in changes:
        raise ValueError('Timeline item id cannot be changed')
    unknown = set(changes) - {f.name for f in fields(TimelineItem)}
    if unknown:
        raise ValueError(f"Unknown timeline item fields: {', '.join(sorted(unknown))}")
    _check_enum('category', changes.get('category'), TASK_CATEGORIES)
    _check_enum('status', changes.get('status'), TASK_STATUSES)
    _check_enum('priority', changes.get('priority'), TASK_PRIORITIES)

    index = _find_index(items, item_id)
    updated = list(items)
    updated[index] = replace(items[index], **changes)
    return updated


def set_item_status(items: List[TimelineItem], item_id: str, status: str) -> List[TimelineItem]:
    """
    Move one item to a new status.

    Any transition is allowed, including back to pending.

    Args:
        items: Timeline items
        item_id: Item to change
        status: 'pending', 'confirmed' or 'completed'

    Returns:
        New list with the item's status replaced
    """
    return update_item(items, item_id, status=status)


def delete_item(items: List[TimelineItem], item_id: str) -> List[TimelineItem]:
    """
    Remove one item regardless of its status.

    Args:
        items: Timeline items
        item_id: Item to remove

    Returns:
        New list without the item; remaining ids are not renumbered
    """
    index = _find_index(items, item_id)
    return items[:index] + items[index + 1:]


def add_item(
    items: List[TimelineItem],
    event_id: str,
    title: str,
    due_date: str,
    description: str = '',
    due_time: str = DEFAULT_DUE_TIME,
    category: str = 'preparation',
    priority: str = 'medium',
) -> List[TimelineItem]:
    """
    Append a user-created item, numbered after the highest existing sequence.

    The list is re-sorted by due date so it stays in timeline order.
    """
    _check_enum('category', category, TASK_CATEGORIES)
    _check_enum('priority', priority, TASK_PRIORITIES)
    date.fromisoformat(due_date)

    highest = 0
    for item in items:
        match = _SEQUENCE_ID.search(item.id)
        if match:
            highest = max(highest, int(match.group(1)))

    new_item = TimelineItem(
        id=f"{event_id}-{highest + 1}",
        title=title,
        description=description,
        due_date=due_date,
        due_time=due_time,
        category=category,
        status='pending',
        priority=priority,
    )
    return sorted(list(items) + [new_item], key=lambda item: item.due_date)


def overdue_items(items: List[TimelineItem], today: date) -> List[TimelineItem]:
    """Items due before ``today`` that are not completed."""
    cutoff = today.isoformat()
    return [
        item for item in items
        if item.due_date < cutoff and item.status != 'completed'
    ]


def parse_items(raw_items: List[Any]) -> List[TimelineItem]:
    """
    Build timeline items from client-supplied dicts.

    Every item needs a unique id, a title and an ISO due date; category,
    status and priority must come from their enumerations.

    Args:
        raw_items: List of item dicts

    Returns:
        Parsed TimelineItem list in the given order

    Raises:
        ValidationError: Keyed ``items[i].field`` for every problem found
    """
    errors = {}
    seen = set()
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            errors[prefix] = 'Timeline item must be an object'
            continue

        item_id = raw.get('id')
        if not isinstance(item_id, str) or not item_id.strip():
            errors[f"{prefix}.id"] = 'Timeline item id is required'
        elif item_id in seen:
            errors[f"{prefix}.id"] = f"Duplicate timeline item id: {item_id}"
        else:
            seen.add(item_id)

        if not (raw.get('title') or '').strip():
            errors[f"{prefix}.title"] = 'Timeline item title is required'

        try:
            date.fromisoformat(raw.get('due_date') or '')
        except (TypeError, ValueError):
            errors[f"{prefix}.due_date"] = 'Due date must be a valid YYYY-MM-DD date'

        for name, allowed in (
            ('category', TASK_CATEGORIES),
            ('status', TASK_STATUSES),
            ('priority', TASK_PRIORITIES),
        ):
            try:
                _check_enum(name, raw.get(name), allowed)
            except ValueError as e:
                errors[f"{prefix}.{name}"] = str(e)

    if errors:
        logger.warning(f"Rejected timeline items: {sorted(errors)}")
        raise ValidationError(errors)
    return [TimelineItem.from_dict(raw) for raw in raw_items]


def _check_enum(name: str, value: Optional[str], allowed: tuple) -> None:
    """
    Reject a value outside its enumeration; None means unchanged.

    Raises:
        ValueError: If ``value`` is set and not in ``allowed``
    """
    if value is not None and value not in allowed:
        raise ValueError(f"Invalid {name} '{value}', expected one of {', '.join(allowed)}")

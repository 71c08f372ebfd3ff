"""Data models for event planning."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


MARKETING_CHANNELS = ('media', 'email', 'flyers', 'collaborations', 'showy')
EVENT_SCOPES = ('team', 'individual')
PROFILE_TYPES = ('team', 'individual')
EVENT_STATUSES = ('draft', 'active', 'completed')
TICKETING_OPTIONS = ('yes', 'no')

TASK_CATEGORIES = ('marketing', 'logistics', 'preparation', 'execution')
TASK_STATUSES = ('pending', 'confirmed', 'completed')
TASK_PRIORITIES = ('high', 'medium', 'low')

CONTACT_CATEGORIES = ('team', 'venue', 'emergency', 'vendor', 'other')

TEAM_ROLES = (
    'Event Lead',
    'Setup Coordinator',
    'Registration Lead',
    'Activities Coordinator',
    'Safety Monitor',
    'Cleanup Coordinator',
    'Tech Support',
    'Photography/Media',
    'Guest Relations',
    'Equipment Manager',
)

DEFAULT_DUE_TIME = '07:00'


@dataclass
class PointOfContact:
    """Primary contact for an event."""
    name: str
    email: str
    phone: str = ''


@dataclass
class TimelineItem:
    """Single dated task derived from an event."""
    id: str
    title: str
    description: str
    due_date: str
    due_time: str = DEFAULT_DUE_TIME
    category: str = 'preparation'
    status: str = 'pending'
    priority: str = 'medium'
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    calendar_event_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict, dropping unset optional fields."""
        data = asdict(self)
        for key in ('assigned_to', 'notes', 'calendar_event_id'):
            if data[key] is None:
                del data[key]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimelineItem':
        """Build from a stored document; missing fields take their defaults."""
        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            description=data.get('description', ''),
            due_date=data.get('due_date', ''),
            due_time=data.get('due_time', DEFAULT_DUE_TIME),
            category=data.get('category', 'preparation'),
            status=data.get('status', 'pending'),
            priority=data.get('priority', 'medium'),
            assigned_to=data.get('assigned_to'),
            notes=data.get('notes'),
            calendar_event_id=data.get('calendar_event_id'),
        )


@dataclass
class Event:
    """Planned coaching event."""
    id: str
    name: str
    date: str
    time: str
    event_end_time: str
    location: str
    point_of_contact: PointOfContact
    event_purpose: str = ''
    coach_support: str = ''
    marketing_channels: List[str] = field(default_factory=list)
    ticketing_needs: str = ''
    gems_details: str = ''
    special_requirements: str = ''
    other_notes: str = ''
    event_type: str = ''
    event_scope: str = 'team'
    team_roles: List[str] = field(default_factory=list)
    status: str = 'draft'
    color: Optional[str] = None
    profile_type: str = 'team'
    created_by: str = 'unknown'
    created_at: str = ''
    updated_at: str = ''
    timeline_items: List[TimelineItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a storage document."""
        data = asdict(self)
        data['timeline_items'] = [item.to_dict() for item in self.timeline_items]
        if data['color'] is None:
            del data['color']
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Build from a stored document; missing fields take their defaults."""
        contact = data.get('point_of_contact') or {}
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            date=data.get('date', ''),
            time=data.get('time', ''),
            event_end_time=data.get('event_end_time', ''),
            location=data.get('location', ''),
            point_of_contact=PointOfContact(
                name=contact.get('name', ''),
                email=contact.get('email', ''),
                phone=contact.get('phone', ''),
            ),
            event_purpose=data.get('event_purpose', ''),
            coach_support=data.get('coach_support', ''),
            marketing_channels=list(data.get('marketing_channels') or []),
            ticketing_needs=data.get('ticketing_needs', ''),
            gems_details=data.get('gems_details', ''),
            special_requirements=data.get('special_requirements', ''),
            other_notes=data.get('other_notes', ''),
            event_type=data.get('event_type', ''),
            event_scope=data.get('event_scope', 'team'),
            team_roles=list(data.get('team_roles') or []),
            status=data.get('status', 'draft'),
            color=data.get('color'),
            profile_type=data.get('profile_type', 'team'),
            created_by=data.get('created_by', 'unknown'),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
            timeline_items=[
                TimelineItem.from_dict(item)
                for item in data.get('timeline_items') or []
            ],
        )


@dataclass
class Coach:
    """Coach available to support events."""
    id: str
    name: str
    email: str
    phone: str = ''
    specialties: List[str] = field(default_factory=list)
    availability: str = ''
    bio: str = ''
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a storage document."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Coach':
        """Build from a stored document; missing fields take their defaults."""
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            specialties=list(data.get('specialties') or []),
            availability=data.get('availability', ''),
            bio=data.get('bio', ''),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
        )


@dataclass
class Contact:
    """Shared contact (venue, vendor, emergency...)."""
    id: str
    name: str
    role: str = ''
    phone: str = ''
    email: str = ''
    category: str = 'other'
    notes: str = ''
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a storage document."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contact':
        """Build from a stored document; missing fields take their defaults."""
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            role=data.get('role', ''),
            phone=data.get('phone', ''),
            email=data.get('email', ''),
            category=data.get('category', 'other'),
            notes=data.get('notes', ''),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
        )


@dataclass
class TeamMember:
    """Person filling a day-of role."""
    id: str
    name: str
    role: str
    email: str = ''
    phone: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TeamMember':
        """Build from a stored document; missing fields take their defaults."""
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            role=data.get('role', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
        )


@dataclass
class EventLogistics:
    """Day-of logistics bundle, one per event."""
    event_id: str
    team_members: List[TeamMember] = field(default_factory=list)
    activities: List[Dict[str, Any]] = field(default_factory=list)
    day_of_schedule: List[Dict[str, Any]] = field(default_factory=list)
    contacts: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a storage document."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventLogistics':
        """Build from a stored document; missing fields take their defaults."""
        return cls(
            event_id=str(data['event_id']),
            team_members=[
                TeamMember.from_dict(member)
                for member in data.get('team_members') or []
            ],
            activities=list(data.get('activities') or []),
            day_of_schedule=list(data.get('day_of_schedule') or []),
            contacts=list(data.get('contacts') or []),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
        )


@dataclass
class LoadResult:
    """Result of the startup load."""
    events: List[Event]
    timelines: Dict[str, List[TimelineItem]]
    contacts: List[Contact]
    errors: List[str]

"""Role assignment helpers linking logistics team members to tasks."""
from typing import Dict, List, Optional

from planner.models import TeamMember

EVENT_LEAD = 'Event Lead'

CATEGORY_ROLES = {
    'marketing': ['Photography/Media', 'Guest Relations'],
    'logistics': ['Setup Coordinator', 'Equipment Manager'],
    'preparation': ['Activities Coordinator', 'Setup Coordinator'],
    'execution': ['Event Lead', 'Activities Coordinator'],
}

SCHEDULE_ROLES = {
    'setup': 'Setup Coordinator',
    'registration': 'Registration Lead',
    'cleanup': 'Cleanup Coordinator',
    'activity': 'Activities Coordinator',
}


def get_role_assignments(team_members: List[TeamMember]) -> Dict[str, TeamMember]:
    """Map each role to its member; a later member wins a shared role."""
    return {member.role: member for member in team_members}


def get_event_lead(team_members: List[TeamMember]) -> Optional[TeamMember]:
    """First member holding the Event Lead role, or None."""
    for member in team_members:
        if member.role == EVENT_LEAD:
            return member
    return None


def get_assigned_person(team_members: List[TeamMember], role: str) -> Optional[TeamMember]:
    """
    Find the member holding ``role``, falling back to the Event Lead.

    Args:
        team_members: Members from the event's logistics bundle
        role: Role name to look up

    Returns:
        Matching member, the Event Lead, or None when neither exists
    """
    for member in team_members:
        if member.role == role:
            return member
    return get_event_lead(team_members)


def get_suggested_assignee(team_members: List[TeamMember], category: str) -> Optional[TeamMember]:
    """Suggest an assignee for a timeline item of the given category."""
    for role in CATEGORY_ROLES.get(category, []):
        member = get_assigned_person(team_members, role)
        if member:
            return member
    return get_event_lead(team_members)


def get_responsible_person(
    team_members: List[TeamMember], schedule_type: Optional[str] = None
) -> Optional[TeamMember]:
    """Suggest who owns a day-of schedule entry."""
    role = SCHEDULE_ROLES.get(schedule_type or '', EVENT_LEAD)
    return get_assigned_person(team_members, role)

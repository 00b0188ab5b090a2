"""
Project matching and multi-project classification for new communications.
"""

import re
from typing import Protocol

from ..actions.contacts import canonical_role
from ..logging import get_logger
from ..models.communication import Communication
from ..repository import CommsRepository

logger = get_logger(__name__)

_NON_DIGITS = re.compile(r'\D')

PROJECT_MANAGER_ROLES = frozenset({'projectmanager', 'project_manager', 'pm', 'bidlist_pm'})
FIELD_ROLES = frozenset({'roofer', 'contractor', 'vendor', 'installer'})


def normalize_phone(value: str | None) -> str | None:
    """Digits only; 10-digit North American numbers gain a leading 1."""
    if not value:
        return None
    digits = _NON_DIGITS.sub('', value)
    if len(digits) == 10:
        digits = '1' + digits
    return digits or None


def phone_suffix(value: str | None) -> str | None:
    digits = normalize_phone(value)
    return digits[-10:] if digits else None


class ProjectFinder:
    """Assigns a project to a communication by participant phone number."""

    def __init__(self, repository: CommsRepository):
        self.repository = repository

    async def find_project_id(self, communication: Communication) -> str | None:
        if communication.project_id:
            return communication.project_id
        for number in communication.phone_numbers():
            suffix = phone_suffix(number)
            if not suffix:
                continue
            project_ids = await self.repository.find_project_ids_by_phone(suffix)
            if project_ids:
                logger.info(
                    'project_finder.matched',
                    communication_id=communication.id,
                    project_id=project_ids[0],
                    candidates=len(project_ids),
                )
                return project_ids[0]
        logger.info('project_finder.unmatched', communication_id=communication.id)
        return None


class MultiProjectClassifier(Protocol):
    """Decides whether a communication may concern several projects."""

    async def is_multi_project(self, communication: Communication) -> bool:
        ...


def _role_key(role: str) -> str:
    return role.strip().lower().replace(' ', '')


class RoleBasedClassifier:
    """
    Flags PM-to-field conversations.

    A communication qualifies when it has at least two phone participants,
    one belonging to a project-manager contact and another to a
    roofer/contractor/vendor contact.
    """

    def __init__(self, repository: CommsRepository):
        self.repository = repository

    async def _roles_for(self, number: str) -> set[str]:
        suffix = phone_suffix(number)
        if not suffix:
            return set()
        return {_role_key(r) for r in await self.repository.find_contact_roles_by_phone(suffix)}

    def _is_pm(self, roles: set[str]) -> bool:
        return any(r in PROJECT_MANAGER_ROLES or canonical_role(r) == 'Project Manager' for r in roles)

    def _is_field(self, roles: set[str]) -> bool:
        return any(r in FIELD_ROLES or canonical_role(r) == 'Roofer' for r in roles)

    async def is_multi_project(self, communication: Communication) -> bool:
        numbers = communication.phone_numbers()
        if len(numbers) < 2:
            return False
        role_sets = [await self._roles_for(n) for n in numbers]
        for i, roles in enumerate(role_sets):
            if not self._is_pm(roles):
                continue
            if any(self._is_field(other) for j, other in enumerate(role_sets) if j != i):
                return True
        return False

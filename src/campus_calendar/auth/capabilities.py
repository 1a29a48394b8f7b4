"""Role to capability mapping."""

from dataclasses import dataclass
from typing import Union

from ..models.user import Role
from ..utils.exceptions import UnknownRoleError


@dataclass(frozen=True)
class CapabilitySet:
    """What a role may do with events and calendars."""

    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_share: bool = False


READ_ONLY = CapabilitySet()
EDITOR = CapabilitySet(can_create=True, can_edit=True, can_delete=True)
MANAGER = CapabilitySet(can_create=True, can_edit=True, can_delete=True, can_share=True)

ROLE_CAPABILITIES: dict[Role, CapabilitySet] = {
    Role.STUDENT: READ_ONLY,
    Role.TEACHER: EDITOR,
    Role.PROGRAM_OPS: MANAGER,
    Role.PM: MANAGER,
    Role.COS: MANAGER,
    Role.ORG_ADMIN: MANAGER,
    Role.GUEST: READ_ONLY,
}

# Non-admin roles whose default calendar prefers the academic one
EDITOR_ROLES = frozenset({Role.TEACHER, Role.PROGRAM_OPS, Role.PM, Role.COS})


def parse_role(value: Union[Role, str]) -> Role:
    """
    Convert a role tag to a Role.

    Raises:
        UnknownRoleError: If the tag is not one of the known roles
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError as e:
        raise UnknownRoleError(f"Unknown role: {value!r}") from e


def resolve_capabilities(role: Union[Role, str]) -> CapabilitySet:
    """
    Resolve the capability set for a role.

    Args:
        role: Role or its string value

    Returns:
        CapabilitySet for the role

    Raises:
        UnknownRoleError: If the role is not one of the known roles
    """
    return ROLE_CAPABILITIES[parse_role(role)]

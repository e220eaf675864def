"""
Static RBAC permission matrix.

Two tables map a role to the set of resources it may create, update and
delete: one for global roles, one for workspace roles. Both are frozen at
import time. A role missing from both tables has no permissions.

Reads are not gated by the matrix, and ``MANAGE`` is reserved for the
OWNER and ADMIN role names regardless of resource.
"""

from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from .models import (
    Action, ActionLike, Resource, ResourceLike, Role, RoleLike, RoleScope,
    ScopedRole, WorkspaceRole,
)

_USER_CONTENT = frozenset({Resource.USER, Resource.ARTICLE})

GLOBAL_ROLE_PERMISSIONS: Mapping[str, FrozenSet[Resource]] = MappingProxyType({
    Role.OWNER.value: frozenset(Resource),
    Role.ADMIN.value: frozenset({
        Resource.TENANT,
        Resource.WORKSPACE,
        Resource.USER,
        Resource.ARTICLE,
        Resource.WORKFLOW,
        Resource.PLUGIN,
        Resource.FEATURE_FLAG,
        Resource.EXPERIMENT,
        Resource.ANALYTICS,
        Resource.STORE,
        Resource.SETTINGS,
    }),
    Role.MANAGER.value: frozenset({
        Resource.WORKSPACE,
        Resource.USER,
        Resource.ARTICLE,
        Resource.WORKFLOW,
        Resource.ANALYTICS,
    }),
    Role.EDITOR.value: _USER_CONTENT,
    Role.AUTHOR.value: _USER_CONTENT,
    Role.USER.value: _USER_CONTENT,
    Role.WRITER.value: frozenset(),
    Role.PUBLISHER.value: frozenset(),
    Role.CREATOR.value: frozenset(),
    Role.GUEST.value: frozenset(),
})

WORKSPACE_ROLE_PERMISSIONS: Mapping[str, FrozenSet[Resource]] = MappingProxyType({
    WorkspaceRole.OWNER.value: frozenset({
        Resource.WORKSPACE,
        Resource.USER,
        Resource.ARTICLE,
        Resource.WORKFLOW,
        Resource.ANALYTICS,
        Resource.SETTINGS,
    }),
    WorkspaceRole.ADMIN.value: frozenset({
        Resource.WORKSPACE,
        Resource.USER,
        Resource.ARTICLE,
        Resource.WORKFLOW,
        Resource.ANALYTICS,
    }),
    WorkspaceRole.EDITOR.value: _USER_CONTENT,
    WorkspaceRole.AUTHOR.value: _USER_CONTENT,
    WorkspaceRole.VIEWER.value: _USER_CONTENT,
})

# Coarse ordering for "at least X" checks; not consulted by the matrix.
ROLE_HIERARCHY: Mapping[str, int] = MappingProxyType({
    Role.OWNER.value: 6,
    Role.ADMIN.value: 5,
    Role.MANAGER.value: 4,
    Role.PUBLISHER.value: 3,
    Role.EDITOR.value: 3,
    Role.AUTHOR.value: 2,
    Role.WRITER.value: 2,
    Role.CREATOR.value: 2,
    Role.USER.value: 1,
    Role.GUEST.value: 0,
})

_MANAGE_ROLES = frozenset({Role.OWNER.value, Role.ADMIN.value})

_TABLES = MappingProxyType({
    RoleScope.GLOBAL: GLOBAL_ROLE_PERMISSIONS,
    RoleScope.WORKSPACE: WORKSPACE_ROLE_PERMISSIONS,
})


def normalize_role(role: Optional[RoleLike]) -> str:
    """Upper-case role name; empty string for None."""
    if role is None:
        return ""
    value = role.value if isinstance(role, Enum) else str(role)
    return value.strip().upper()


def parse_resource(resource: Optional[ResourceLike]) -> Optional[Resource]:
    """Resource member for ``resource``, or None if unrecognized."""
    if isinstance(resource, Resource):
        return resource
    if not isinstance(resource, str):
        return None
    try:
        return Resource(resource.strip().lower())
    except ValueError:
        return None


def parse_action(action: Optional[ActionLike]) -> Optional[Action]:
    """Action member for ``action``, or None if unrecognized."""
    if isinstance(action, Action):
        return action
    if not isinstance(action, str):
        return None
    try:
        return Action(action.strip().lower())
    except ValueError:
        return None


def has_role_permission(role: RoleLike, resource: ResourceLike) -> bool:
    """True if ``role`` may mutate ``resource`` per either permission table.

    The role string is matched case-insensitively against the global table
    first, then the workspace table.
    """
    normalized = normalize_role(role)
    target = parse_resource(resource)
    if target is None:
        return False

    for table in (GLOBAL_ROLE_PERMISSIONS, WORKSPACE_ROLE_PERMISSIONS):
        if target in table.get(normalized, frozenset()):
            return True
    return False


def has_action_permission(role: RoleLike, resource: ResourceLike, action: ActionLike) -> bool:
    """True if ``role`` may perform ``action`` on ``resource``."""
    parsed = parse_action(action)

    if parsed == Action.READ:
        return True

    if parsed in (Action.CREATE, Action.UPDATE, Action.DELETE):
        return has_role_permission(role, resource)

    if parsed == Action.MANAGE:
        return normalize_role(role) in _MANAGE_ROLES

    return False


def has_scoped_permission(
    scoped_role: ScopedRole,
    resource: ResourceLike,
    action: Optional[ActionLike] = None
) -> bool:
    """Like ``has_action_permission`` but against the tagged table only.

    With ``action`` omitted this answers the resource-membership question
    of ``has_role_permission``. A workspace OWNER or ADMIN may MANAGE only
    resources its workspace row lists.
    """
    table = _TABLES.get(scoped_role.scope)
    if table is None:
        return False

    normalized = normalize_role(scoped_role.name)
    target = parse_resource(resource)
    in_table = target is not None and target in table.get(normalized, frozenset())

    if action is None:
        return in_table

    parsed = parse_action(action)
    if parsed == Action.READ:
        return True
    if parsed in (Action.CREATE, Action.UPDATE, Action.DELETE):
        return in_table
    if parsed == Action.MANAGE:
        if scoped_role.scope == RoleScope.WORKSPACE and not in_table:
            return False
        return normalized in _MANAGE_ROLES
    return False


def role_rank(role: Optional[RoleLike]) -> int:
    """Hierarchy rank of a global role; -1 when unknown."""
    rank = ROLE_HIERARCHY.get(normalize_role(role))
    return -1 if rank is None else rank


def has_minimum_role(role: Optional[RoleLike], minimum: RoleLike) -> bool:
    """True if ``role`` ranks at or above ``minimum``."""
    required = role_rank(minimum)
    return required >= 0 and role_rank(role) >= required


def permitted_resources(scope: RoleScope, role: RoleLike) -> FrozenSet[Resource]:
    """Resources ``role`` may mutate within one table."""
    return _TABLES[scope].get(normalize_role(role), frozenset())

"""
Access policy package.

Defines the role/resource/action vocabulary, the static permission
matrix, and the evaluator that layers tenant, workspace and self scopes
on top of it.

Modules of interest:
- models: Enums, actor context, decision and API models.
- matrix: Frozen permission tables and the pure permission checks.
- evaluator: PolicyEvaluator producing allow/deny decisions with reasons.
"""

from .evaluator import PolicyEvaluator
from .matrix import (
    GLOBAL_ROLE_PERMISSIONS, ROLE_HIERARCHY, WORKSPACE_ROLE_PERMISSIONS,
    has_action_permission, has_minimum_role, has_role_permission,
    has_scoped_permission, role_rank,
)
from .models import (
    AccessDecision, Action, ActorContext, Resource, Role, RoleScope,
    ScopedRole, WorkspaceRole,
)

__all__ = [
    "AccessDecision",
    "Action",
    "ActorContext",
    "GLOBAL_ROLE_PERMISSIONS",
    "PolicyEvaluator",
    "ROLE_HIERARCHY",
    "Resource",
    "Role",
    "RoleScope",
    "ScopedRole",
    "WORKSPACE_ROLE_PERMISSIONS",
    "WorkspaceRole",
    "has_action_permission",
    "has_minimum_role",
    "has_role_permission",
    "has_scoped_permission",
    "role_rank",
]

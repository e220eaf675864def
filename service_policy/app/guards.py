"""
FastAPI dependencies enforcing access policy on routes.

The upstream gateway authenticates the caller and forwards the actor as
headers; these dependencies rebuild an ``ActorContext`` from them and
run it through a ``PolicyEvaluator`` before the route body executes.
"""

from typing import Callable, Optional

from fastapi import Depends, Header

from access_shared.errors import ValidationError
from access_shared.logging import set_actor_context

from .policy.evaluator import PolicyEvaluator
from .policy.models import ActionLike, ActorContext, ResourceLike, Role, WorkspaceRole


async def get_actor_context(
    x_user_id: Optional[str] = Header(None),
    x_user_role: str = Header(Role.GUEST.value),
    x_tenant_id: Optional[str] = Header(None),
    x_workspace_id: Optional[str] = Header(None),
    x_workspace_role: Optional[str] = Header(None),
    x_session_id: Optional[str] = Header(None),
) -> ActorContext:
    """Build the acting user from forwarded identity headers."""
    memberships = {}
    if x_workspace_id and x_workspace_role:
        try:
            memberships[x_workspace_id] = WorkspaceRole(x_workspace_role.strip().upper())
        except ValueError:
            raise ValidationError(
                "Unknown workspace role",
                details={"workspace_role": x_workspace_role}
            )

    set_actor_context(x_user_id, x_tenant_id, x_workspace_id)
    return ActorContext(
        user_id=x_user_id,
        role=x_user_role,
        tenant_id=x_tenant_id,
        workspace_id=x_workspace_id,
        workspace_memberships=memberships,
        session_id=x_session_id,
    )


class PolicyGuard:
    """Produces route dependencies that require a permission."""

    def __init__(self, evaluator: PolicyEvaluator):
        self.evaluator = evaluator

    def require(self, resource: ResourceLike, action: ActionLike) -> Callable:
        """Dependency that raises ``AuthorizationError`` unless permitted."""
        evaluator = self.evaluator

        async def dependency(actor: ActorContext = Depends(get_actor_context)) -> ActorContext:
            evaluator.assert_allowed(actor, action, resource, workspace_id=actor.workspace_id)
            return actor

        return dependency

"""
Access policy evaluator for the Policy Service.
"""

import time
from collections import Counter
from typing import Any, Dict, Optional

from access_shared.errors import AuthorizationError
from access_shared.logging import get_logger

from .matrix import (
    has_action_permission, has_scoped_permission, normalize_role,
    parse_action, parse_resource,
)
from .models import (
    AccessDecision, Action, ActionLike, ActorContext, Resource, ResourceLike,
    Role, RoleScope, ScopedRole,
)


class PolicyEvaluator:
    """Combines the static matrix with tenant, workspace and self scopes.

    Evaluation order:

    1. unknown action or resource: deny
    2. resource owned by another tenant and actor is not OWNER: deny
    3. global role permits the action: allow
    4. actor is a member of the target workspace and the workspace role
       permits the action: allow
    5. actor updates their own USER record: allow
    6. otherwise deny

    ``evaluate`` never raises. ``assert_allowed`` turns a deny into an
    ``AuthorizationError`` after writing an audit log entry.
    """

    def __init__(self):
        self.logger = get_logger("policy.evaluator")
        self._decisions: Counter = Counter()

    def evaluate(
        self,
        actor: ActorContext,
        action: ActionLike,
        resource: ResourceLike,
        resource_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        resource_tenant_id: Optional[str] = None,
    ) -> AccessDecision:
        """Decide whether ``actor`` may perform ``action`` on ``resource``."""
        start_time = time.time()

        try:
            decision = self._decide(
                actor, action, resource, resource_id, workspace_id, resource_tenant_id
            )
        except Exception as e:
            self.logger.error("Policy evaluation error", error=str(e), exc_info=True)
            decision = AccessDecision(allow=False, reason="Policy evaluation error")

        decision.evaluation_time_ms = (time.time() - start_time) * 1000
        self._decisions["allowed" if decision.allow else "denied"] += 1

        self.logger.debug(
            "Policy decision",
            user_id=actor.user_id,
            role=actor.role,
            action=_label(action),
            resource=_label(resource),
            allow=decision.allow,
            reason=decision.reason
        )
        return decision

    def assert_allowed(
        self,
        actor: ActorContext,
        action: ActionLike,
        resource: ResourceLike,
        resource_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        resource_tenant_id: Optional[str] = None,
    ) -> AccessDecision:
        """Evaluate and raise ``AuthorizationError`` on deny."""
        decision = self.evaluate(
            actor, action, resource, resource_id, workspace_id, resource_tenant_id
        )
        if decision.allow:
            return decision
        self.reject(actor, action, resource, decision, resource_id, workspace_id)

    def reject(
        self,
        actor: ActorContext,
        action: ActionLike,
        resource: ResourceLike,
        decision: AccessDecision,
        resource_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ):
        """Audit-log a denied decision and raise ``AuthorizationError``."""
        self.logger.warning(
            "access_denied",
            user_id=actor.user_id,
            role=actor.role,
            tenant_id=actor.tenant_id,
            attempted_action=_label(action),
            target_type=_label(resource),
            target_id=resource_id,
            workspace_id=workspace_id,
            reason=decision.reason
        )
        raise AuthorizationError(
            "You do not have permission to perform this action.",
            details={
                "reason": decision.reason,
                "action": _label(action),
                "resource": _label(resource),
            }
        )

    def _decide(
        self,
        actor: ActorContext,
        action: ActionLike,
        resource: ResourceLike,
        resource_id: Optional[str],
        workspace_id: Optional[str],
        resource_tenant_id: Optional[str],
    ) -> AccessDecision:
        parsed_action = parse_action(action)
        if parsed_action is None:
            return AccessDecision(allow=False, reason=f"Unknown action '{action}'")

        parsed_resource = parse_resource(resource)
        if parsed_resource is None:
            return AccessDecision(allow=False, reason=f"Unknown resource '{resource}'")

        role = normalize_role(actor.role)

        if (
            resource_tenant_id is not None
            and str(resource_tenant_id) != str(actor.tenant_id)
            and role != Role.OWNER.value
        ):
            return AccessDecision(allow=False, reason="Cross-tenant access denied")

        if has_action_permission(role, parsed_resource, parsed_action):
            if parsed_action == Action.READ:
                reason = "Read access is not gated by role"
            else:
                reason = f"Role '{role}' permits {parsed_action.value} on {parsed_resource.value}"
            return AccessDecision(allow=True, reason=reason, matched_scope=RoleScope.GLOBAL)

        workspace_role = actor.workspace_role(workspace_id)
        scoped = ScopedRole.workspace(workspace_role) if workspace_role is not None else None
        if scoped is not None and has_scoped_permission(scoped, parsed_resource, parsed_action):
            return AccessDecision(
                allow=True,
                reason=(
                    f"Workspace role '{scoped.name}' permits "
                    f"{parsed_action.value} on {parsed_resource.value}"
                ),
                matched_scope=RoleScope.WORKSPACE,
            )

        if (
            parsed_resource == Resource.USER
            and parsed_action == Action.UPDATE
            and resource_id is not None
            and actor.user_id is not None
            and str(resource_id) == str(actor.user_id)
        ):
            return AccessDecision(allow=True, reason="Actor owns the resource")

        return AccessDecision(
            allow=False,
            reason=f"Role '{role or 'UNKNOWN'}' lacks {parsed_action.value} permission on {parsed_resource.value}"
        )

    def get_evaluator_stats(self) -> Dict[str, Any]:
        """Get evaluator statistics."""
        allowed = self._decisions["allowed"]
        denied = self._decisions["denied"]
        return {
            "total_decisions": allowed + denied,
            "allowed": allowed,
            "denied": denied,
        }


def _label(value: Any) -> str:
    return value.value if isinstance(value, (Action, Resource)) else str(value)

"""
Policy service for the Publishing Access Layer.
"""

from datetime import datetime

from access_shared.base_service import BaseService

from .policy.evaluator import PolicyEvaluator
from .policy.matrix import (
    GLOBAL_ROLE_PERMISSIONS, ROLE_HIERARCHY, WORKSPACE_ROLE_PERMISSIONS,
    parse_action, parse_resource, permitted_resources,
)
from .policy.models import (
    AccessCheckRequest, AccessDecision, AccessDecisionResponse, RoleInfo,
    RoleListResponse, RoleScope,
)


class PolicyService(BaseService):
    """Policy service implementation."""

    def __init__(self):
        super().__init__("policy", 8013)

        self.evaluator = PolicyEvaluator()

        self._setup_policy_routes()

    def _setup_policy_routes(self):
        """Set up policy-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "policy",
                "message": "Publishing Access Layer - Policy Service",
                "version": "1.0.0",
                "capabilities": ["rbac_matrix", "workspace_scope", "tenant_scope"]
            }

        @self.app.post("/policy/check", response_model=AccessDecisionResponse)
        async def check_access(request: AccessCheckRequest):
            """Evaluate an access request; denials are returned, not raised."""
            decision = self._evaluate(request, enforce=False)
            return _to_response(decision)

        @self.app.post("/policy/enforce", response_model=AccessDecisionResponse)
        async def enforce_access(request: AccessCheckRequest):
            """Evaluate an access request; denials become HTTP 403."""
            decision = self._evaluate(request, enforce=True)
            return _to_response(decision)

        @self.app.get("/policy/matrix")
        async def get_matrix():
            """Both permission tables, resources sorted by name."""
            return {
                "global": {
                    role: sorted(r.value for r in resources)
                    for role, resources in GLOBAL_ROLE_PERMISSIONS.items()
                },
                "workspace": {
                    role: sorted(r.value for r in resources)
                    for role, resources in WORKSPACE_ROLE_PERMISSIONS.items()
                },
            }

        @self.app.get("/policy/roles", response_model=RoleListResponse)
        async def get_roles():
            """Known roles, highest rank first."""
            global_roles = [
                RoleInfo(
                    name=role,
                    rank=ROLE_HIERARCHY.get(role),
                    resources=sorted(permitted_resources(RoleScope.GLOBAL, role), key=lambda r: r.value)
                )
                for role in sorted(GLOBAL_ROLE_PERMISSIONS, key=lambda r: -ROLE_HIERARCHY.get(r, -1))
            ]
            workspace_roles = [
                RoleInfo(
                    name=role,
                    resources=sorted(permitted_resources(RoleScope.WORKSPACE, role), key=lambda r: r.value)
                )
                for role in WORKSPACE_ROLE_PERMISSIONS
            ]
            return RoleListResponse(global_roles=global_roles, workspace_roles=workspace_roles)

        @self.app.get("/policy/stats")
        async def get_stats():
            """Get policy service statistics."""
            return {
                "evaluator": self.evaluator.get_evaluator_stats(),
                "timestamp": datetime.now().isoformat()
            }

    def _evaluate(self, request: AccessCheckRequest, enforce: bool) -> AccessDecision:
        self.observability.trace_request(
            user_id=request.user_id,
            tenant_id=request.tenant_id,
            workspace_id=request.workspace_id
        )
        actor = request.to_actor()

        with self.observability.measure_operation("policy_evaluation_duration_seconds"):
            decision = self.evaluator.evaluate(
                actor,
                request.action,
                request.resource,
                resource_id=request.resource_id,
                workspace_id=request.workspace_id,
                resource_tenant_id=request.resource_tenant_id
            )

        self.metrics.increment_counter(
            "policy_decisions_total",
            decision="allow" if decision.allow else "deny",
            action=_metric_label(parse_action(request.action)),
            resource=_metric_label(parse_resource(request.resource))
        )
        self.observability.log_business_event(
            "policy_check_completed",
            user_id=request.user_id,
            action=request.action,
            resource=request.resource,
            allow=decision.allow,
            reason=decision.reason,
            evaluation_time_ms=decision.evaluation_time_ms
        )

        if enforce and not decision.allow:
            self.evaluator.reject(
                actor, request.action, request.resource, decision,
                request.resource_id, request.workspace_id
            )
        return decision


def _to_response(decision: AccessDecision) -> AccessDecisionResponse:
    return AccessDecisionResponse(
        allow=decision.allow,
        reason=decision.reason,
        matched_scope=decision.matched_scope,
        evaluation_time_ms=decision.evaluation_time_ms
    )


def _metric_label(value) -> str:
    # Unrecognized vocabulary shares one series.
    return value.value if value is not None else "unknown"


def create_app():
    """Create policy service application."""
    service = PolicyService()
    return service.app


if __name__ == "__main__":
    service = PolicyService()
    service.run()

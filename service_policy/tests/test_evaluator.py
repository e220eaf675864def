"""
Unit tests for PolicyEvaluator.
"""

import pytest
from unittest.mock import patch

from access_shared.errors import AuthorizationError
from service_policy.app.policy.evaluator import PolicyEvaluator
from service_policy.app.policy.models import (
    Action, ActorContext, Resource, RoleScope, WorkspaceRole,
)


class TestPolicyEvaluator:
    """Test cases for PolicyEvaluator."""

    @pytest.fixture
    def evaluator(self):
        """Create PolicyEvaluator instance."""
        return PolicyEvaluator()

    @pytest.fixture
    def author(self):
        """AUTHOR who is workspace ADMIN of ws-1."""
        return ActorContext(
            user_id="user-1",
            role="AUTHOR",
            tenant_id="tenant-1",
            workspace_id="ws-1",
            workspace_memberships={"ws-1": WorkspaceRole.ADMIN}
        )

    def test_global_role_allows(self, evaluator):
        """Test an allow from the global table."""
        actor = ActorContext(user_id="user-1", role="ADMIN", tenant_id="tenant-1")

        decision = evaluator.evaluate(actor, Action.CREATE, Resource.EXPERIMENT)

        assert decision.allow is True
        assert decision.matched_scope == RoleScope.GLOBAL
        assert decision.reason == "Role 'ADMIN' permits create on experiment"
        assert decision.evaluation_time_ms >= 0

    def test_read_always_allowed(self, evaluator):
        """Test that reads are not gated."""
        decision = evaluator.evaluate(ActorContext(user_id=None), "read", "billing")

        assert decision.allow is True
        assert decision.reason == "Read access is not gated by role"

    def test_guest_denied_with_reason(self, evaluator):
        """Test a deny names role, action and resource."""
        decision = evaluator.evaluate(ActorContext(user_id="user-1"), "create", "experiment")

        assert decision.allow is False
        assert decision.reason == "Role 'GUEST' lacks create permission on experiment"
        assert decision.matched_scope is None

    def test_unknown_action_and_resource(self, evaluator):
        """Test vocabulary misses."""
        actor = ActorContext(user_id="user-1", role="OWNER")

        action_decision = evaluator.evaluate(actor, "publish", "article")
        resource_decision = evaluator.evaluate(actor, "update", "spaceship")

        assert action_decision.allow is False
        assert action_decision.reason == "Unknown action 'publish'"
        assert resource_decision.allow is False
        assert resource_decision.reason == "Unknown resource 'spaceship'"

    def test_cross_tenant_denied_for_admin(self, evaluator):
        """Test that ADMIN cannot touch another tenant's resource."""
        actor = ActorContext(user_id="user-1", role="ADMIN", tenant_id="tenant-1")

        decision = evaluator.evaluate(
            actor, Action.UPDATE, Resource.ARTICLE, resource_tenant_id="tenant-2"
        )

        assert decision.allow is False
        assert decision.reason == "Cross-tenant access denied"

    def test_cross_tenant_allowed_for_owner(self, evaluator):
        """Test that OWNER crosses tenants."""
        actor = ActorContext(user_id="user-1", role="OWNER", tenant_id="tenant-1")

        decision = evaluator.evaluate(
            actor, Action.UPDATE, Resource.ARTICLE, resource_tenant_id="tenant-2"
        )

        assert decision.allow is True

    def test_same_tenant_passes_tenant_check(self, evaluator):
        """Test that a matching tenant is not rejected."""
        actor = ActorContext(user_id="user-1", role="ADMIN", tenant_id="tenant-1")

        decision = evaluator.evaluate(
            actor, Action.UPDATE, Resource.ARTICLE, resource_tenant_id="tenant-1"
        )

        assert decision.allow is True

    def test_workspace_role_allows_in_own_workspace(self, evaluator, author):
        """Test that the workspace role widens access inside its workspace."""
        decision = evaluator.evaluate(author, Action.UPDATE, Resource.WORKFLOW, workspace_id="ws-1")

        assert decision.allow is True
        assert decision.matched_scope == RoleScope.WORKSPACE
        assert decision.reason == "Workspace role 'ADMIN' permits update on workflow"

    def test_workspace_role_ignored_elsewhere(self, evaluator, author):
        """Test that membership of one workspace does not leak to another."""
        other = evaluator.evaluate(author, Action.UPDATE, Resource.WORKFLOW, workspace_id="ws-2")
        none = evaluator.evaluate(author, Action.UPDATE, Resource.WORKFLOW)

        assert other.allow is False
        assert none.allow is False

    def test_workspace_owner_cannot_update_tenant_via_workspace(self, evaluator):
        """Test that a workspace OWNER is not treated as global OWNER."""
        actor = ActorContext(
            user_id="user-1",
            role="USER",
            workspace_memberships={"ws-1": WorkspaceRole.OWNER}
        )

        decision = evaluator.evaluate(actor, Action.UPDATE, Resource.TENANT, workspace_id="ws-1")

        assert decision.allow is False

    @pytest.mark.parametrize("workspace_role", [WorkspaceRole.OWNER, WorkspaceRole.ADMIN])
    @pytest.mark.parametrize("resource", [Resource.TENANT, Resource.BILLING, Resource.STORE])
    def test_workspace_admin_cannot_manage_outside_workspace_row(self, evaluator, workspace_role, resource):
        """Test that workspace membership never grants MANAGE on tenant-level resources."""
        actor = ActorContext(
            user_id="user-1",
            role="USER",
            workspace_memberships={"ws-1": workspace_role}
        )

        decision = evaluator.evaluate(actor, Action.MANAGE, resource, workspace_id="ws-1")

        assert decision.allow is False
        assert decision.matched_scope is None
        assert decision.reason == f"Role 'USER' lacks manage permission on {resource.value}"

    def test_workspace_owner_manages_workspace_resources(self, evaluator):
        """Test MANAGE through a workspace role on a resource its row lists."""
        actor = ActorContext(
            user_id="user-1",
            role="USER",
            workspace_memberships={"ws-1": WorkspaceRole.OWNER}
        )

        decision = evaluator.evaluate(actor, Action.MANAGE, Resource.WORKFLOW, workspace_id="ws-1")

        assert decision.allow is True
        assert decision.matched_scope == RoleScope.WORKSPACE

    def test_self_scope(self, evaluator):
        """Test that a user may update their own USER record."""
        actor = ActorContext(user_id="user-7", role="GUEST")

        own = evaluator.evaluate(actor, Action.UPDATE, Resource.USER, resource_id="user-7")
        other = evaluator.evaluate(actor, Action.UPDATE, Resource.USER, resource_id="user-8")
        delete = evaluator.evaluate(actor, Action.DELETE, Resource.USER, resource_id="user-7")

        assert own.allow is True
        assert own.reason == "Actor owns the resource"
        assert other.allow is False
        assert delete.allow is False

    def test_evaluation_error_becomes_deny(self, evaluator):
        """Test that unexpected errors never escape evaluate."""
        actor = ActorContext(user_id="user-1", role="ADMIN")

        with patch(
            "service_policy.app.policy.evaluator.has_action_permission",
            side_effect=RuntimeError("boom")
        ):
            decision = evaluator.evaluate(actor, Action.UPDATE, Resource.ARTICLE)

        assert decision.allow is False
        assert decision.reason == "Policy evaluation error"

    def test_assert_allowed_returns_decision(self, evaluator):
        """Test assert_allowed on allow."""
        actor = ActorContext(user_id="user-1", role="ADMIN")

        decision = evaluator.assert_allowed(actor, Action.DELETE, Resource.EXPERIMENT)

        assert decision.allow is True

    def test_assert_allowed_raises_on_deny(self, evaluator):
        """Test assert_allowed on deny."""
        actor = ActorContext(user_id="user-1", role="EDITOR")

        with patch.object(evaluator, "logger") as mock_logger:
            with pytest.raises(AuthorizationError) as exc_info:
                evaluator.assert_allowed(actor, Action.DELETE, Resource.EXPERIMENT, resource_id="exp-1")

        error = exc_info.value
        assert error.status_code == 403
        assert error.code == "AUTHORIZATION_ERROR"
        assert error.details["reason"] == "Role 'EDITOR' lacks delete permission on experiment"
        assert error.details["action"] == "delete"
        assert error.details["resource"] == "experiment"

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "access_denied"
        assert mock_logger.warning.call_args.kwargs["target_id"] == "exp-1"

    def test_evaluator_stats(self, evaluator):
        """Test decision counters."""
        admin = ActorContext(user_id="user-1", role="ADMIN")
        guest = ActorContext(user_id="user-2")

        evaluator.evaluate(admin, Action.CREATE, Resource.EXPERIMENT)
        evaluator.evaluate(guest, Action.CREATE, Resource.EXPERIMENT)
        evaluator.evaluate(guest, Action.READ, Resource.EXPERIMENT)

        stats = evaluator.get_evaluator_stats()
        assert stats == {"total_decisions": 3, "allowed": 2, "denied": 1}

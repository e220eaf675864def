"""
Access policy data models for the Policy Service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Global (platform-wide) actor roles."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EDITOR = "EDITOR"
    AUTHOR = "AUTHOR"
    WRITER = "WRITER"
    PUBLISHER = "PUBLISHER"
    CREATOR = "CREATOR"
    USER = "USER"
    GUEST = "GUEST"


class WorkspaceRole(str, Enum):
    """Roles held inside a single workspace."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    AUTHOR = "AUTHOR"
    VIEWER = "VIEWER"


class Resource(str, Enum):
    """Protected resource types."""
    TENANT = "tenant"
    WORKSPACE = "workspace"
    USER = "user"
    ARTICLE = "article"
    WORKFLOW = "workflow"
    PLUGIN = "plugin"
    FEATURE_FLAG = "feature_flag"
    EXPERIMENT = "experiment"
    ANALYTICS = "analytics"
    STORE = "store"
    SETTINGS = "settings"
    BILLING = "billing"
    WEBHOOK = "webhook"
    LOGS = "logs"
    AI = "ai"
    QUEUE = "queue"
    DLQ = "dlq"


class Action(str, Enum):
    """Operations checked against the permission matrix."""
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class RoleScope(str, Enum):
    """Which permission table a role name refers to."""
    GLOBAL = "global"
    WORKSPACE = "workspace"


RoleLike = Union[Role, WorkspaceRole, str]
ResourceLike = Union[Resource, str]
ActionLike = Union[Action, str]


@dataclass(frozen=True)
class ScopedRole:
    """A role name tagged with the table it must be looked up in."""
    scope: RoleScope
    name: str

    @classmethod
    def global_role(cls, role: RoleLike) -> "ScopedRole":
        return cls(RoleScope.GLOBAL, _role_name(role))

    @classmethod
    def workspace(cls, role: RoleLike) -> "ScopedRole":
        return cls(RoleScope.WORKSPACE, _role_name(role))


def _role_name(role: RoleLike) -> str:
    value = role.value if isinstance(role, Enum) else str(role)
    return value.strip().upper()


@dataclass
class ActorContext:
    """Authenticated caller, as produced by upstream middleware."""
    user_id: Optional[str]
    role: str = Role.GUEST.value
    tenant_id: Optional[str] = None
    workspace_id: Optional[str] = None
    workspace_memberships: Dict[str, WorkspaceRole] = field(default_factory=dict)
    session_id: Optional[str] = None

    def workspace_role(self, workspace_id: Optional[str]) -> Optional[WorkspaceRole]:
        """Role held in ``workspace_id``, or None when not a member."""
        if workspace_id is None:
            return None
        return self.workspace_memberships.get(str(workspace_id))


@dataclass
class AccessDecision:
    """Result of an access policy evaluation."""
    allow: bool
    reason: str
    matched_scope: Optional[RoleScope] = None
    evaluation_time_ms: float = 0.0


class AccessCheckRequest(BaseModel):
    """Request model for an access check."""
    user_id: Optional[str] = Field(None, description="Acting user ID")
    role: str = Field(Role.GUEST.value, description="Global role of the actor")
    tenant_id: Optional[str] = Field(None, description="Tenant of the actor")
    workspace_id: Optional[str] = Field(None, description="Workspace the request targets")
    workspace_role: Optional[WorkspaceRole] = Field(None, description="Actor role in the targeted workspace")
    action: str = Field(..., description="Action to perform")
    resource: str = Field(..., description="Resource type")
    resource_id: Optional[str] = Field(None, description="Specific resource instance")
    resource_tenant_id: Optional[str] = Field(None, description="Tenant owning the resource")

    def to_actor(self) -> ActorContext:
        memberships: Dict[str, WorkspaceRole] = {}
        if self.workspace_id is not None and self.workspace_role is not None:
            memberships[self.workspace_id] = self.workspace_role
        return ActorContext(
            user_id=self.user_id,
            role=self.role,
            tenant_id=self.tenant_id,
            workspace_id=self.workspace_id,
            workspace_memberships=memberships,
        )


class AccessDecisionResponse(BaseModel):
    """Response model for an access check."""
    allow: bool
    reason: str
    matched_scope: Optional[RoleScope] = None
    evaluation_time_ms: float = 0.0


class RoleInfo(BaseModel):
    name: str
    rank: Optional[int] = None
    resources: List[Resource]


class RoleListResponse(BaseModel):
    """Known roles with their rank and permitted resources."""
    global_roles: List[RoleInfo]
    workspace_roles: List[RoleInfo]

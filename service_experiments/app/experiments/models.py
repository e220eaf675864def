"""
Experiment data models for the Experiments Service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ExperimentStatus(str, Enum):
    """Experiment lifecycle states."""
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


ExperimentId = Union[int, str]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Experiment:
    """A/B experiment.

    ``traffic_allocation`` maps variant key to weight; its insertion order
    is the order buckets are walked in.
    """
    id: ExperimentId
    traffic_allocation: Dict[str, Any] = field(default_factory=dict)
    key: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    status: ExperimentStatus = ExperimentStatus.DRAFT
    variants: Dict[str, Any] = field(default_factory=dict)
    workspace_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Exposure:
    """An identity observed in a variant."""
    experiment_id: ExperimentId
    variant: str
    identity: str
    user_id: Optional[str] = None
    recorded_at: datetime = field(default_factory=utc_now)


class ExperimentCreateRequest(BaseModel):
    """Request model for creating an experiment."""
    key: str = Field(..., min_length=1, description="Unique experiment key")
    name: str = Field(..., description="Human readable name")
    description: Optional[str] = Field(None, description="Experiment description")
    status: ExperimentStatus = Field(ExperimentStatus.DRAFT, description="Initial status")
    traffic_allocation: Dict[str, Any] = Field(default_factory=dict, description="Variant -> weight")
    variants: Dict[str, Any] = Field(default_factory=dict, description="Variant payloads")
    workspace_id: Optional[str] = Field(None, description="Owning workspace")


class ExperimentUpdateRequest(BaseModel):
    """Request model for updating an experiment."""
    name: Optional[str] = Field(None, description="Human readable name")
    description: Optional[str] = Field(None, description="Experiment description")
    status: Optional[ExperimentStatus] = Field(None, description="Experiment status")
    traffic_allocation: Optional[Dict[str, Any]] = Field(None, description="Variant -> weight")
    variants: Optional[Dict[str, Any]] = Field(None, description="Variant payloads")


class ExperimentResponse(BaseModel):
    """Response model for experiment operations."""
    id: ExperimentId
    key: Optional[str]
    name: Optional[str]
    description: Optional[str]
    status: ExperimentStatus
    traffic_allocation: Dict[str, Any]
    variants: Dict[str, Any]
    workspace_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_experiment(cls, experiment: Experiment) -> "ExperimentResponse":
        return cls(
            id=experiment.id,
            key=experiment.key,
            name=experiment.name,
            description=experiment.description,
            status=experiment.status,
            traffic_allocation=experiment.traffic_allocation,
            variants=experiment.variants,
            workspace_id=experiment.workspace_id,
            created_at=experiment.created_at,
            updated_at=experiment.updated_at,
        )


class ExperimentListResponse(BaseModel):
    """Response model for experiment list."""
    experiments: List[ExperimentResponse]
    total: int
    page: int
    limit: int


class AssignmentRequest(BaseModel):
    """Request model for a variant assignment."""
    user_id: Optional[str] = Field(None, description="Authenticated user ID")
    session_id: Optional[str] = Field(None, description="Anonymous session ID")
    record_exposure: bool = Field(True, description="Record the exposure after assigning")


class AssignmentResponse(BaseModel):
    """Response model for a variant assignment."""
    experiment_id: ExperimentId
    variant: str
    identity: str
    exposure_recorded: bool = False

"""
Experiments service for the Publishing Access Layer.
"""

import uuid
from dataclasses import replace
from typing import Optional

from fastapi import Depends, Query

from access_shared.base_service import BaseService
from access_shared.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from service_policy.app.guards import PolicyGuard, get_actor_context
from service_policy.app.policy.evaluator import PolicyEvaluator
from service_policy.app.policy.models import Action, ActorContext, Resource

from .cache.redis_exposures import RedisExposureStore
from .experiments.allocator import assign_variant, resolve_identity
from .experiments.models import (
    AssignmentRequest, AssignmentResponse, Experiment, ExperimentCreateRequest,
    ExperimentListResponse, ExperimentResponse, ExperimentStatus,
    ExperimentUpdateRequest, Exposure, utc_now,
)
from .experiments.registry import ExperimentRegistry
from .persistence.postgres import ExperimentPersistence


class ExperimentsService(BaseService):
    """Experiments service implementation."""

    def __init__(self):
        super().__init__("experiments", 8014)

        # Initialize components
        self.registry = ExperimentRegistry()
        self.persistence = ExperimentPersistence(self.config.postgres_dsn)
        self.exposures = RedisExposureStore(
            self.config.redis_url,
            ttl_seconds=self.config.exposure_ttl_seconds
        )
        self.guard = PolicyGuard(PolicyEvaluator())

        self._setup_experiments_routes()

    def _setup_experiments_routes(self):
        """Set up experiments-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "experiments",
                "message": "Publishing Access Layer - Experiments Service",
                "version": "1.0.0",
                "capabilities": ["deterministic_assignment", "exposure_tracking", "persistence"]
            }

        @self.app.get("/experiments", response_model=ExperimentListResponse)
        async def list_experiments(
            workspace_id: Optional[str] = Query(None, description="Filter by workspace"),
            status: Optional[ExperimentStatus] = Query(None, description="Filter by status"),
            page: int = Query(1, ge=1, description="Page number"),
            limit: int = Query(50, ge=1, le=100, description="Items per page")
        ):
            """List experiments with filtering and pagination."""
            experiments = self.registry.list_experiments(workspace_id=workspace_id, status=status)

            start_idx = (page - 1) * limit
            paginated = experiments[start_idx:start_idx + limit]

            return ExperimentListResponse(
                experiments=[ExperimentResponse.from_experiment(e) for e in paginated],
                total=len(experiments),
                page=page,
                limit=limit
            )

        @self.app.post("/experiments", response_model=ExperimentResponse, status_code=201)
        async def create_experiment(
            request: ExperimentCreateRequest,
            actor: ActorContext = Depends(self.guard.require(Resource.EXPERIMENT, Action.CREATE))
        ):
            """Create a new experiment."""
            if self.registry.get_by_key(request.key):
                raise ConflictError("Experiment key already exists", details={"key": request.key})
            if len(self.registry.experiments) >= self.config.max_experiments:
                raise ValidationError(
                    "Experiment limit reached",
                    details={"max_experiments": self.config.max_experiments}
                )

            now = utc_now()
            experiment = Experiment(
                id=str(uuid.uuid4()),
                key=request.key,
                name=request.name,
                description=request.description,
                status=request.status,
                traffic_allocation=dict(request.traffic_allocation),
                variants=dict(request.variants),
                workspace_id=request.workspace_id or actor.workspace_id,
                created_at=now,
                updated_at=now
            )

            if not await self.persistence.save_experiment(experiment):
                raise ServiceError("Failed to save experiment", details={"key": experiment.key})
            self.registry.add_experiment(experiment)
            self._update_loaded_gauge()

            self.observability.log_business_event(
                "experiment_created",
                experiment_id=experiment.id,
                key=experiment.key,
                user_id=actor.user_id
            )
            return ExperimentResponse.from_experiment(experiment)

        @self.app.get("/experiments/stats")
        async def get_stats():
            """Get experiments service statistics."""
            return {
                "registry": self.registry.get_registry_stats(),
                "persistence": await self.persistence.get_stats(),
                "exposures": await self.exposures.get_cache_stats(),
                "timestamp": utc_now().isoformat()
            }

        @self.app.get("/experiments/{experiment_id}", response_model=ExperimentResponse)
        async def get_experiment(experiment_id: str):
            """Get an experiment by ID."""
            return ExperimentResponse.from_experiment(self._get_or_404(experiment_id))

        @self.app.put("/experiments/{experiment_id}", response_model=ExperimentResponse)
        async def update_experiment(
            experiment_id: str,
            request: ExperimentUpdateRequest,
            actor: ActorContext = Depends(self.guard.require(Resource.EXPERIMENT, Action.UPDATE))
        ):
            """Update an experiment.

            Changing the traffic allocation drops the recorded exposures,
            since identities may now land in different variants.
            """
            current = self._get_or_404(experiment_id)

            changes = request.model_dump(exclude_unset=True, exclude_none=True)
            updated = replace(current, **changes, updated_at=utc_now())

            if not await self.persistence.save_experiment(updated):
                raise ServiceError("Failed to save experiment", details={"experiment_id": experiment_id})
            self.registry.update_experiment(updated)

            allocation_changed = (
                list(updated.traffic_allocation.items()) != list(current.traffic_allocation.items())
            )
            if allocation_changed:
                await self.exposures.invalidate_experiment(updated.id)

            self.observability.log_business_event(
                "experiment_updated",
                experiment_id=updated.id,
                user_id=actor.user_id,
                fields=sorted(changes),
                allocation_changed=allocation_changed
            )
            return ExperimentResponse.from_experiment(updated)

        @self.app.delete("/experiments/{experiment_id}")
        async def delete_experiment(
            experiment_id: str,
            actor: ActorContext = Depends(self.guard.require(Resource.EXPERIMENT, Action.DELETE))
        ):
            """Delete an experiment and its recorded exposures."""
            experiment = self._get_or_404(experiment_id)

            if not await self.persistence.delete_experiment(str(experiment.id)):
                raise ServiceError("Failed to delete experiment", details={"experiment_id": experiment_id})
            self.registry.remove_experiment(experiment.id)
            await self.exposures.invalidate_experiment(experiment.id)
            self._update_loaded_gauge()

            self.observability.log_business_event(
                "experiment_deleted",
                experiment_id=experiment.id,
                user_id=actor.user_id
            )
            return {"message": "Experiment deleted successfully"}

        @self.app.post("/experiments/{experiment_id}/assign", response_model=AssignmentResponse)
        async def assign(
            experiment_id: str,
            request: AssignmentRequest,
            actor: ActorContext = Depends(get_actor_context)
        ):
            """Assign a variant to the caller.

            Body identities take precedence over the forwarded actor headers.
            """
            experiment = self._get_or_404(experiment_id)
            if experiment.status != ExperimentStatus.RUNNING:
                raise ConflictError(
                    "Experiment is not running",
                    details={"experiment_id": experiment_id, "status": experiment.status.value}
                )

            user_id = request.user_id if request.user_id is not None else actor.user_id
            session_id = request.session_id if request.session_id is not None else actor.session_id

            variant = assign_variant(experiment, user_id=user_id, session_id=session_id)
            identity = resolve_identity(user_id, session_id)

            self.metrics.increment_counter(
                "experiment_assignments_total",
                experiment=experiment.key or str(experiment.id),
                variant=variant
            )

            recorded = False
            if request.record_exposure:
                recorded = await self.exposures.record_exposure(
                    Exposure(
                        experiment_id=experiment.id,
                        variant=variant,
                        identity=identity,
                        user_id=user_id
                    )
                )
                self.metrics.increment_counter(
                    "exposures_recorded_total",
                    status="ok" if recorded else "error"
                )

            return AssignmentResponse(
                experiment_id=experiment.id,
                variant=variant,
                identity=identity,
                exposure_recorded=recorded
            )

        @self.app.get("/experiments/{experiment_id}/exposures")
        async def get_exposures(experiment_id: str):
            """Exposure counts per variant."""
            experiment = self._get_or_404(experiment_id)
            counts = await self.exposures.get_exposure_counts(experiment.id)
            return {
                "experiment_id": experiment.id,
                "counts": counts,
                "total": sum(counts.values())
            }

        @self.app.get("/experiments/{experiment_id}/exposures/{identity}")
        async def get_exposure(experiment_id: str, identity: str):
            """Variant recorded for one identity while its exposure is live."""
            experiment = self._get_or_404(experiment_id)
            variant = await self.exposures.get_recorded_variant(experiment.id, identity)
            if variant is None:
                raise NotFoundError(
                    "Exposure not found",
                    details={"experiment_id": experiment_id, "identity": identity}
                )
            return {
                "experiment_id": experiment.id,
                "identity": identity,
                "variant": variant
            }

    def _get_or_404(self, experiment_id: str) -> Experiment:
        experiment = self.registry.get_experiment(experiment_id)
        if experiment is None:
            raise NotFoundError("Experiment not found", details={"experiment_id": experiment_id})
        return experiment

    def _update_loaded_gauge(self):
        self.metrics.set_gauge("experiments_loaded", len(self.registry.experiments))

    async def _check_dependencies(self):
        """Check experiments service dependencies."""
        dependencies = {}

        # Check Redis
        try:
            if await self.exposures.health_check():
                dependencies["redis"] = "ok"
            else:
                dependencies["redis"] = "error"
        except Exception:
            dependencies["redis"] = "error"

        # Check PostgreSQL
        try:
            if await self.persistence.health_check():
                dependencies["postgres"] = "ok"
            else:
                dependencies["postgres"] = "error"
        except Exception:
            dependencies["postgres"] = "error"

        return dependencies

    async def start(self):
        """Start experiments service components."""
        await self.persistence.start()
        await self.exposures.start()

        experiments = await self.persistence.load_all_experiments()
        for experiment in experiments:
            self.registry.add_experiment(experiment)
        self._update_loaded_gauge()

        self.logger.info("Experiments service started", experiments=len(experiments))

    async def stop(self):
        """Stop experiments service components."""
        await self.persistence.stop()
        await self.exposures.stop()

        self.logger.info("Experiments service stopped")


def create_app():
    """Create experiments service application."""
    service = ExperimentsService()
    return service.app


if __name__ == "__main__":
    service = ExperimentsService()
    service.run()

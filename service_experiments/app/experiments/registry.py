"""
In-memory experiment registry for the Experiments Service.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from access_shared.logging import get_logger

from .models import Experiment, ExperimentId, ExperimentStatus


class ExperimentRegistry:
    """Holds the experiments assignments are computed from.

    Hydrated from persistence at start-up and kept in step with every
    create, update and delete handled by the service.
    """

    def __init__(self):
        self.logger = get_logger("experiments.registry")
        self.experiments: Dict[str, Experiment] = {}
        self._key_index: Dict[str, str] = {}

    def add_experiment(self, experiment: Experiment) -> bool:
        """Add or replace an experiment. Fails if its key belongs to another id."""
        experiment_id = str(experiment.id)
        owner = self._key_index.get(experiment.key) if experiment.key else None
        if owner is not None and owner != experiment_id:
            self.logger.warning("Duplicate experiment key", key=experiment.key, experiment_id=experiment_id)
            return False

        previous = self.experiments.get(experiment_id)
        if previous is not None and previous.key and previous.key != experiment.key:
            self._key_index.pop(previous.key, None)

        self.experiments[experiment_id] = experiment
        if experiment.key:
            self._key_index[experiment.key] = experiment_id
        self.logger.info("Experiment added", experiment_id=experiment_id, key=experiment.key)
        return True

    def update_experiment(self, experiment: Experiment) -> bool:
        """Update an experiment in the registry."""
        if str(experiment.id) not in self.experiments:
            return False
        return self.add_experiment(experiment)

    def remove_experiment(self, experiment_id: ExperimentId) -> bool:
        """Remove an experiment from the registry."""
        experiment = self.experiments.pop(str(experiment_id), None)
        if experiment is None:
            return False
        if experiment.key:
            self._key_index.pop(experiment.key, None)
        self.logger.info("Experiment removed", experiment_id=str(experiment_id), key=experiment.key)
        return True

    def get_experiment(self, experiment_id: ExperimentId) -> Optional[Experiment]:
        """Get an experiment by ID."""
        return self.experiments.get(str(experiment_id))

    def get_by_key(self, key: str) -> Optional[Experiment]:
        """Get an experiment by its unique key."""
        experiment_id = self._key_index.get(key)
        return self.experiments.get(experiment_id) if experiment_id else None

    def list_experiments(
        self,
        workspace_id: Optional[str] = None,
        status: Optional[ExperimentStatus] = None
    ) -> List[Experiment]:
        """Experiments matching the filters, newest first."""
        experiments = [
            e for e in self.experiments.values()
            if (workspace_id is None or e.workspace_id == workspace_id)
            and (status is None or e.status == status)
        ]
        experiments.sort(key=lambda e: _as_utc(e.created_at), reverse=True)
        return experiments

    def clear(self):
        """Clear all experiments from the registry."""
        self.experiments.clear()
        self._key_index.clear()
        self.logger.info("All experiments cleared")

    def get_registry_stats(self) -> Dict[str, Any]:
        """Get registry statistics."""
        by_status: Dict[str, int] = {}
        for experiment in self.experiments.values():
            by_status[experiment.status.value] = by_status.get(experiment.status.value, 0) + 1
        return {
            "total_experiments": len(self.experiments),
            "by_status": by_status,
            "workspaces": sorted({e.workspace_id for e in self.experiments.values() if e.workspace_id}),
        }


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

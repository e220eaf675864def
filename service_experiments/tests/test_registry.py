"""
Unit tests for ExperimentRegistry.
"""

import pytest
from datetime import datetime, timedelta, timezone

from service_experiments.app.experiments.models import Experiment, ExperimentStatus
from service_experiments.app.experiments.registry import ExperimentRegistry


class TestExperimentRegistry:
    """Test cases for ExperimentRegistry."""

    @pytest.fixture
    def registry(self):
        """Create ExperimentRegistry instance."""
        return ExperimentRegistry()

    @pytest.fixture
    def sample_experiment(self):
        """Create sample experiment."""
        return Experiment(
            id="exp-1",
            key="homepage-hero",
            name="Homepage hero",
            status=ExperimentStatus.RUNNING,
            traffic_allocation={"control": 0.5, "v1": 0.5},
            workspace_id="ws-1"
        )

    def test_add_experiment_success(self, registry, sample_experiment):
        """Test successful experiment addition."""
        assert registry.add_experiment(sample_experiment) is True
        assert registry.get_experiment("exp-1") is sample_experiment
        assert registry.get_by_key("homepage-hero") is sample_experiment

    def test_integer_ids_are_normalised(self, registry):
        """Test that integer and string ids address the same entry."""
        registry.add_experiment(Experiment(id=1, key="k"))
        assert registry.get_experiment("1") is not None
        assert registry.get_experiment(1) is not None

    def test_duplicate_key_rejected(self, registry, sample_experiment):
        """Test that a second experiment cannot reuse a key."""
        registry.add_experiment(sample_experiment)
        clash = Experiment(id="exp-2", key="homepage-hero")

        assert registry.add_experiment(clash) is False
        assert registry.get_experiment("exp-2") is None

    def test_update_experiment(self, registry, sample_experiment):
        """Test experiment update, including a key change."""
        registry.add_experiment(sample_experiment)
        updated = Experiment(id="exp-1", key="new-key", status=ExperimentStatus.PAUSED)

        assert registry.update_experiment(updated) is True
        assert registry.get_experiment("exp-1").status == ExperimentStatus.PAUSED
        assert registry.get_by_key("homepage-hero") is None
        assert registry.get_by_key("new-key") is updated

    def test_update_unknown_experiment(self, registry):
        """Test updating an experiment that was never added."""
        assert registry.update_experiment(Experiment(id="missing")) is False

    def test_remove_experiment(self, registry, sample_experiment):
        """Test experiment removal."""
        registry.add_experiment(sample_experiment)

        assert registry.remove_experiment("exp-1") is True
        assert registry.get_experiment("exp-1") is None
        assert registry.get_by_key("homepage-hero") is None
        assert registry.remove_experiment("exp-1") is False

    def test_list_filters_and_order(self, registry):
        """Test workspace and status filters, newest first."""
        now = datetime.now(timezone.utc)
        registry.add_experiment(Experiment(
            id="a", key="a", workspace_id="ws-1", status=ExperimentStatus.RUNNING,
            created_at=now - timedelta(days=2)
        ))
        registry.add_experiment(Experiment(
            id="b", key="b", workspace_id="ws-1", status=ExperimentStatus.DRAFT,
            created_at=now - timedelta(days=1)
        ))
        registry.add_experiment(Experiment(
            id="c", key="c", workspace_id="ws-2", status=ExperimentStatus.RUNNING,
            created_at=now
        ))

        assert [e.id for e in registry.list_experiments()] == ["c", "b", "a"]
        assert [e.id for e in registry.list_experiments(workspace_id="ws-1")] == ["b", "a"]
        assert [e.id for e in registry.list_experiments(status=ExperimentStatus.RUNNING)] == ["c", "a"]
        assert registry.list_experiments(workspace_id="ws-3") == []

    def test_list_mixes_loaded_and_new_experiments(self, registry):
        """Test ordering across database rows and freshly created experiments."""
        loaded_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        registry.add_experiment(Experiment(id="loaded", key="loaded", created_at=loaded_at))
        registry.add_experiment(Experiment(id="legacy", key="legacy", created_at=datetime(2023, 6, 1)))
        registry.add_experiment(Experiment(id="new", key="new"))

        assert registry.get_experiment("new").created_at.tzinfo is not None
        assert [e.id for e in registry.list_experiments()] == ["new", "loaded", "legacy"]

    def test_clear(self, registry, sample_experiment):
        """Test clearing the registry."""
        registry.add_experiment(sample_experiment)
        registry.clear()

        assert registry.experiments == {}
        assert registry.get_by_key("homepage-hero") is None

    def test_registry_stats(self, registry, sample_experiment):
        """Test registry statistics."""
        registry.add_experiment(sample_experiment)
        registry.add_experiment(Experiment(id="exp-2", key="other", workspace_id="ws-2"))

        stats = registry.get_registry_stats()

        assert stats["total_experiments"] == 2
        assert stats["by_status"] == {"running": 1, "draft": 1}
        assert stats["workspaces"] == ["ws-1", "ws-2"]

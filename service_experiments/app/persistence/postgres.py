"""
PostgreSQL persistence layer for Experiments Service.
"""

import json
from typing import Any, Dict, List, Optional

import asyncpg

from access_shared.errors import ServiceError
from access_shared.logging import get_logger
from access_shared.tracing import trace_function

from ..experiments.models import Experiment, ExperimentStatus


class ExperimentPersistence:
    """PostgreSQL persistence layer for experiments.

    Allocation and variant maps are stored as ``JSON`` rather than
    ``JSONB`` so that key order survives the round trip.
    """

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("experiments.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise ServiceError("Failed to start PostgreSQL persistence", details={"error": str(e)})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS experiments (
                    id VARCHAR(255) PRIMARY KEY,
                    key VARCHAR(255) UNIQUE,
                    name VARCHAR(255),
                    description TEXT,
                    status VARCHAR(20) NOT NULL DEFAULT 'draft',
                    traffic_allocation JSON NOT NULL DEFAULT '{}',
                    variants JSON NOT NULL DEFAULT '{}',
                    workspace_id VARCHAR(255),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_experiments_workspace ON experiments(workspace_id);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_experiments_status ON experiments(status);
            """)

    @trace_function("experiments.persistence.save")
    async def save_experiment(self, experiment: Experiment) -> bool:
        """Insert or update an experiment."""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO experiments (
                        id, key, name, description, status, traffic_allocation,
                        variants, workspace_id, created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    ON CONFLICT (id) DO UPDATE SET
                        key = EXCLUDED.key,
                        name = EXCLUDED.name,
                        description = EXCLUDED.description,
                        status = EXCLUDED.status,
                        traffic_allocation = EXCLUDED.traffic_allocation,
                        variants = EXCLUDED.variants,
                        workspace_id = EXCLUDED.workspace_id,
                        updated_at = EXCLUDED.updated_at
                """,
                    str(experiment.id), experiment.key, experiment.name, experiment.description,
                    experiment.status.value, json.dumps(experiment.traffic_allocation),
                    json.dumps(experiment.variants), experiment.workspace_id,
                    experiment.created_at, experiment.updated_at
                )

                self.logger.info("Experiment saved", experiment_id=str(experiment.id), key=experiment.key)
                return True

        except Exception as e:
            self.logger.error("Error saving experiment", experiment_id=str(experiment.id), error=str(e))
            return False

    @trace_function("experiments.persistence.load_all")
    async def load_all_experiments(self) -> List[Experiment]:
        """Load all experiments from the database."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT * FROM experiments ORDER BY created_at ASC
                """)

                return [self._row_to_experiment(row) for row in rows]

        except Exception as e:
            self.logger.error("Error loading all experiments", error=str(e))
            return []

    @trace_function("experiments.persistence.delete")
    async def delete_experiment(self, experiment_id: str) -> bool:
        """Delete an experiment from the database."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute("""
                    DELETE FROM experiments WHERE id = $1
                """, experiment_id)

                if result == "DELETE 1":
                    self.logger.info("Experiment deleted", experiment_id=experiment_id)
                    return True
                else:
                    self.logger.warning("Experiment not found for deletion", experiment_id=experiment_id)
                    return False

        except Exception as e:
            self.logger.error("Error deleting experiment", experiment_id=experiment_id, error=str(e))
            return False

    async def get_stats(self) -> Dict[str, Any]:
        """Get experiment statistics."""
        try:
            async with self.pool.acquire() as conn:
                stats = await conn.fetchrow("""
                    SELECT
                        COUNT(*) as total_experiments,
                        COUNT(*) FILTER (WHERE status = 'running') as running_experiments,
                        COUNT(DISTINCT workspace_id) as unique_workspaces
                    FROM experiments
                """)

                return dict(stats)

        except Exception as e:
            self.logger.error("Error getting experiment stats", error=str(e))
            return {}

    def _row_to_experiment(self, row) -> Experiment:
        """Convert database row to Experiment object."""
        return Experiment(
            id=row['id'],
            key=row['key'],
            name=row['name'],
            description=row['description'],
            status=ExperimentStatus(row['status']),
            traffic_allocation=_load_json(row['traffic_allocation']),
            variants=_load_json(row['variants']),
            workspace_id=row['workspace_id'],
            created_at=row['created_at'],
            updated_at=row['updated_at']
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


def _load_json(value: Any) -> Dict[str, Any]:
    # asyncpg hands JSON columns back as text unless a codec is registered
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)

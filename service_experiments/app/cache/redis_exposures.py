"""
Redis exposure store for Experiments Service.
"""

from typing import Any, Dict, Optional

import redis.asyncio as redis

from access_shared.errors import ServiceError
from access_shared.logging import get_logger
from access_shared.tracing import trace_function

from ..experiments.models import ExperimentId, Exposure


class RedisExposureStore:
    """Records which variant each identity was exposed to."""

    EXPOSURE_PREFIX = "exposure:"
    COUNTS_PREFIX = "exposure_counts:"

    def __init__(self, redis_url: str, ttl_seconds: int = 3600):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("experiments.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis exposure store."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis exposure store started")

        except Exception as e:
            self.logger.error("Failed to start Redis exposure store", error=str(e))
            raise ServiceError("Failed to start Redis exposure store", details={"error": str(e)})

    async def stop(self):
        """Stop the Redis exposure store."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis exposure store stopped")

    @trace_function("experiments.exposures.record")
    async def record_exposure(self, exposure: Exposure) -> bool:
        """Remember an exposure.

        The per-variant counter only moves the first time an identity is
        seen within the TTL. Returns ``False`` on Redis errors.
        """
        try:
            key = self._exposure_key(exposure.experiment_id, exposure.identity)
            first_seen = await self.redis.set(key, exposure.variant, ex=self.ttl_seconds, nx=True)
            if first_seen:
                await self.redis.hincrby(self._counts_key(exposure.experiment_id), exposure.variant, 1)

            self.logger.debug(
                "Exposure recorded",
                experiment_id=str(exposure.experiment_id),
                variant=exposure.variant,
                first_seen=bool(first_seen)
            )
            return True

        except Exception as e:
            self.logger.error(
                "Error recording exposure",
                experiment_id=str(exposure.experiment_id),
                error=str(e)
            )
            return False

    async def get_recorded_variant(self, experiment_id: ExperimentId, identity: str) -> Optional[str]:
        """Variant previously recorded for an identity, if still cached."""
        try:
            return await self.redis.get(self._exposure_key(experiment_id, identity))
        except Exception as e:
            self.logger.error("Error reading exposure", experiment_id=str(experiment_id), error=str(e))
            return None

    async def get_exposure_counts(self, experiment_id: ExperimentId) -> Dict[str, int]:
        """Exposure counts per variant."""
        try:
            counts = await self.redis.hgetall(self._counts_key(experiment_id))
            return {variant: int(count) for variant, count in counts.items()}
        except Exception as e:
            self.logger.error("Error reading exposure counts", experiment_id=str(experiment_id), error=str(e))
            return {}

    async def invalidate_experiment(self, experiment_id: ExperimentId) -> int:
        """Drop every recorded exposure and counter for an experiment."""
        try:
            keys = await self.redis.keys(f"{self.EXPOSURE_PREFIX}{experiment_id}:*")
            keys.append(self._counts_key(experiment_id))

            deleted = await self.redis.delete(*keys)
            self.logger.info("Invalidated experiment exposures", experiment_id=str(experiment_id), count=deleted)
            return deleted

        except Exception as e:
            self.logger.error("Error invalidating exposures", experiment_id=str(experiment_id), error=str(e))
            return 0

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        try:
            info = await self.redis.info()
            exposure_keys = await self.redis.keys(f"{self.EXPOSURE_PREFIX}*")

            return {
                "redis_version": info.get("redis_version"),
                "used_memory": info.get("used_memory_human"),
                "connected_clients": info.get("connected_clients"),
                "exposure_keys": len(exposure_keys),
                "ttl_seconds": self.ttl_seconds
            }

        except Exception as e:
            self.logger.error("Error getting cache stats", error=str(e))
            return {}

    def _exposure_key(self, experiment_id: ExperimentId, identity: str) -> str:
        return f"{self.EXPOSURE_PREFIX}{experiment_id}:{identity}"

    def _counts_key(self, experiment_id: ExperimentId) -> str:
        return f"{self.COUNTS_PREFIX}{experiment_id}"

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False

"""
Deterministic variant allocation.

An identity is hashed together with the experiment id into a point in
[0, 1], and the point is located on the cumulative weight line of the
experiment's traffic allocation. No assignment state is kept: the same
identity always lands in the same variant while the allocation is
unchanged.
"""

import hashlib
import math
from collections.abc import Mapping
from typing import Any, Optional

DEFAULT_VARIANT = "control"
ANONYMOUS_IDENTITY = "anon"

_HASH_SPACE = 0xFFFFFFFF


def resolve_identity(user_id: Optional[Any] = None, session_id: Optional[Any] = None) -> str:
    """User id, else session id, else ``"anon"``. Only ``None`` falls through."""
    if user_id is not None:
        return str(user_id)
    if session_id is not None:
        return str(session_id)
    return ANONYMOUS_IDENTITY


def identity_key(experiment_id: Any, user_id: Optional[Any] = None, session_id: Optional[Any] = None) -> str:
    """Hash input for an identity: ``"<experiment id>:<user|session|anon>"``."""
    return f"{experiment_id}:{resolve_identity(user_id, session_id)}"


def bucket_value(key: str) -> float:
    """Uniform value in [0, 1] from the first 32 bits of SHA-256(key)."""
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) / _HASH_SPACE


def _weight(value: Any) -> float:
    # bool is an int subclass but not a weight
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        weight = float(value)
    except OverflowError:
        return 0.0
    return weight if math.isfinite(weight) else 0.0


def assign_variant(experiment: Any, user_id: Optional[Any] = None, session_id: Optional[Any] = None) -> str:
    """Pick the variant for an identity.

    Walks ``experiment.traffic_allocation`` in insertion order and returns
    the first variant whose cumulative weight reaches the identity's bucket
    value. Weights are not normalised: when they sum below the bucket value
    the first variant is returned, and an empty allocation yields
    ``"control"``. Non-numeric weights count as zero.
    """
    allocation = getattr(experiment, "traffic_allocation", None)
    if not isinstance(allocation, Mapping) or not allocation:
        return DEFAULT_VARIANT

    value = bucket_value(identity_key(experiment.id, user_id, session_id))

    cumulative = 0.0
    for variant, weight in allocation.items():
        cumulative += _weight(weight)
        if cumulative >= value:
            return variant

    return next(iter(allocation))

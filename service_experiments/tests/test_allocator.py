"""
Unit tests for the variant allocator.
"""

import hashlib
from collections import OrderedDict
from types import SimpleNamespace

import pytest

from service_experiments.app.experiments.allocator import (
    assign_variant, bucket_value, identity_key, resolve_identity,
)
from service_experiments.app.experiments.models import Experiment


def _experiment(allocation, experiment_id=1):
    return Experiment(id=experiment_id, traffic_allocation=allocation)


def _identity_above(experiment_id, threshold):
    """First synthetic user id whose bucket value exceeds ``threshold``."""
    for n in range(10_000):
        user_id = f"user-{n}"
        if bucket_value(identity_key(experiment_id, user_id)) > threshold:
            return user_id
    raise AssertionError("no identity found")


class TestIdentity:
    """Test cases for identity resolution."""

    def test_user_id_wins(self):
        assert identity_key(1, user_id=42, session_id="s-1") == "1:42"

    def test_session_fallback(self):
        assert identity_key("exp", session_id="s-1") == "exp:s-1"

    def test_anonymous(self):
        assert identity_key(7) == "7:anon"
        assert resolve_identity() == "anon"

    def test_falsy_identities_are_kept(self):
        """Only None falls through to the next identity."""
        assert identity_key(1, user_id=0, session_id="s-1") == "1:0"
        assert identity_key(1, user_id="", session_id="s-1") == "1:"


class TestBucketValue:
    """Test cases for bucket_value."""

    def test_matches_sha256_prefix(self):
        key = "1:42"
        expected = int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:8], 16) / 0xFFFFFFFF
        assert bucket_value(key) == expected

    def test_range(self):
        for n in range(200):
            assert 0.0 <= bucket_value(f"exp:{n}") <= 1.0


class TestAssignVariant:
    """Test cases for assign_variant."""

    def test_deterministic(self):
        """Same experiment and user twice gives the same variant."""
        experiment = _experiment({"control": 0.5, "v1": 0.5})

        first = assign_variant(experiment, user_id=42)
        second = assign_variant(experiment, user_id=42)

        assert first == second
        assert first in ("control", "v1")

    def test_empty_allocation_returns_control(self):
        experiment = _experiment({})
        for user_id in ("a", "b", None):
            assert assign_variant(experiment, user_id=user_id) == "control"

    @pytest.mark.parametrize("allocation", [None, [("a", 1)], "control"])
    def test_malformed_allocation_returns_control(self, allocation):
        experiment = SimpleNamespace(id=1, traffic_allocation=allocation)
        assert assign_variant(experiment, user_id="u") == "control"

    def test_under_allocated_falls_back_to_first_entry(self):
        """Weights summing below the bucket value return the first variant."""
        experiment = _experiment({"only": 0.1})
        user_id = _identity_above(experiment.id, 0.1)

        assert assign_variant(experiment, user_id=user_id) == "only"

    def test_fallback_is_first_key_not_last(self):
        experiment = _experiment(OrderedDict([("first", 0.05), ("second", 0.05)]))
        user_id = _identity_above(experiment.id, 0.1)

        assert assign_variant(experiment, user_id=user_id) == "first"

    def test_cumulative_walk(self):
        """A bucket value lands in the entry whose cumulative weight reaches it."""
        experiment = _experiment({"a": 0.2, "b": 0.3, "c": 0.5})

        for n in range(500):
            user_id = f"u{n}"
            v = bucket_value(identity_key(experiment.id, user_id))
            expected = "a" if v <= 0.2 else "b" if v <= 0.5 else "c"
            assert assign_variant(experiment, user_id=user_id) == expected

    def test_insertion_order_matters(self):
        """Reordering the allocation moves identities between variants."""
        forward = _experiment({"control": 0.5, "v1": 0.5})
        backward = _experiment({"v1": 0.5, "control": 0.5})

        moved = sum(
            assign_variant(forward, user_id=n) != assign_variant(backward, user_id=n)
            for n in range(200)
        )
        assert moved > 0

    def test_roughly_uniform_split(self):
        """10k synthetic users split close to 50/50."""
        experiment = _experiment({"control": 0.5, "v1": 0.5})

        counts = {"control": 0, "v1": 0}
        for n in range(10_000):
            counts[assign_variant(experiment, user_id=f"user-{n}")] += 1

        assert abs(counts["control"] / 10_000 - 0.5) < 0.03

    def test_anonymous_is_stable(self):
        """Calls without user or session collapse to the same bucket."""
        experiment = _experiment({"control": 0.5, "v1": 0.5}, experiment_id="exp-9")

        variants = {assign_variant(experiment) for _ in range(5)}

        assert len(variants) == 1
        assert variants.pop() == assign_variant(experiment, user_id="anon")

    def test_session_used_when_no_user(self):
        experiment = _experiment({"control": 0.5, "v1": 0.5})
        assert assign_variant(experiment, session_id="s-1") == assign_variant(experiment, user_id="s-1")

    def test_experiment_id_salts_the_hash(self):
        """The same user is bucketed independently per experiment."""
        values = {bucket_value(identity_key(exp_id, "user-1")) for exp_id in range(20)}
        assert len(values) > 1

    @pytest.mark.parametrize("bad_weight", ["0.5", None, True, float("nan"), float("inf"), [1]])
    def test_non_numeric_weights_count_as_zero(self, bad_weight):
        """Unusable weights contribute nothing to the cumulative sum."""
        experiment = _experiment({"broken": bad_weight, "fine": 1.0})

        for n in range(100):
            assert assign_variant(experiment, user_id=n) == "fine"

    def test_huge_int_weight(self):
        experiment = _experiment({"huge": 10 ** 400, "fine": 1.0})
        assert assign_variant(experiment, user_id=1) == "fine"

    def test_weights_are_not_normalised(self):
        """Weights above 1 saturate the first variant."""
        experiment = _experiment({"heavy": 5, "light": 5})
        for n in range(100):
            assert assign_variant(experiment, user_id=n) == "heavy"

    def test_zero_weights_fall_back(self):
        experiment = _experiment({"a": 0, "b": 0})
        results = {assign_variant(experiment, user_id=n) for n in range(50)}
        assert results == {"a"}

"""
Experiments Service package.

Hands out deterministic A/B variant assignments for running experiments,
records exposures in Redis and stores experiments in PostgreSQL. Mutations
are guarded by the access policy from ``service_policy``.
"""

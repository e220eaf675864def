"""
Persistence package for Experiments Service.

Stores experiments in PostgreSQL through an asyncpg pool; the service
hydrates its in-memory registry from it at start-up.
"""

"""
Policy Service package for the Publishing Access Layer.

This package decides whether an actor may perform an action on a
resource. It provides:

- app.main: API surface for policy checks, the matrix, and health.
- app.policy: Role vocabulary, permission matrix, and evaluator.
- app.guards: FastAPI dependencies other services use to enforce policy.

Guidelines:
- Decisions are pure functions of the actor and the static tables.
- Denials carry a reason string; the HTTP layer maps them to 403.
"""

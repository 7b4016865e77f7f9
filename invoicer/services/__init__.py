"""Services Layer — transactional orchestration around the pure core.

Invariants:
    - Each public write operation runs inside exactly one infrastructure.database.atomic block
    - Services raise core/errors.py types only (never HTTPException)

Design Decisions:
    - Small classes constructed per request with the request's AsyncSession
    - Clock and lookups injected, defaulting to the production implementations
"""

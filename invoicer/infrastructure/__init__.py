"""Infrastructure Layer — database sessions, transactions, logging, clock.

Invariants:
    - Only this layer talks to the database driver and the system clock
    - Storage exceptions are translated to core/errors.py types here

Design Decisions:
    - Imperative shell around the pure core
"""

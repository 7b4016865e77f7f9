"""Pydantic Schemas — request/response validation for the billing API.

Invariants:
    - Schemas validate at the system boundary; services receive plain values
    - Money crosses the boundary as integer cents, quantities and rates as Decimal

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""

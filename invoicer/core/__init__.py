"""Core Layer — pure billing rules, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic (time is passed in, never read)
    - Money is integer cents; quantities and rates are Decimal

Design Decisions:
    - Functional core separated from imperative shell: services/ load rows,
      call these rules, and write the result inside one transaction
"""

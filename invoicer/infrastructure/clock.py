"""System Clock — the production time source for all duration math.

Invariants:
    - now() is timezone-aware UTC
    - Nothing else in the engine reads the wall clock directly

Design Decisions:
    - Injected into services (core.repository_protocols.Clock) so tests can pin time
"""

from datetime import datetime, timezone


class SystemClock:
    """Wall clock backed by datetime.now(timezone.utc)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def get_clock() -> SystemClock:
    """FastAPI dependency; tests override it with a pinned clock."""
    return SystemClock()

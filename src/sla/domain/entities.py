"""
SLA Domain Entities
====================

Derived SLA results. Verdicts are recomputed on every query against the
current clock and never persisted.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SLAVerdict:
    """
    SLA state of one conversation at one instant.

    ``remaining_minutes`` goes negative once the deadline has passed.
    """

    kind: str
    is_breached: bool
    is_warning: bool
    remaining_minutes: int

    @property
    def needs_attention(self) -> bool:
        """Breached or inside the warning band."""
        return self.is_breached or self.is_warning

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        from src.sla.domain.value_objects import format_remaining

        return {
            "kind": self.kind,
            "is_breached": self.is_breached,
            "is_warning": self.is_warning,
            "remaining_minutes": self.remaining_minutes,
            "remaining_display": format_remaining(self.remaining_minutes),
            "needs_attention": self.needs_attention,
        }

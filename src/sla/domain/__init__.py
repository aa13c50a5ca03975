"""
SLA Domain Layer
================

Domain layer for SLA deadline tracking.

Contains:
- Entities: SLAVerdict
- Value Objects: SLAConfig
- Domain Services: SLACalculator (stateless deadline evaluation)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.entities import SLAVerdict
from src.sla.domain.value_objects import (
    SLACalculator,
    SLAConfig,
    format_remaining,
    round_half_up,
)

__all__ = [
    # Entities
    "SLAVerdict",
    # Value Objects & Services
    "SLACalculator",
    "SLAConfig",
    "format_remaining",
    "round_half_up",
]

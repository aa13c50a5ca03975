"""
Monitoring Infrastructure Layer
================================

External service integrations for status monitoring:
- HTTPStatusLookup: status endpoint client
- SlackStatusNotifier: status change notifications
- CircuitBreaker: failure isolation for both
"""

from src.monitoring.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    HTTPStatusLookup,
    SlackStatusNotifier,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "HTTPStatusLookup",
    "SlackStatusNotifier",
]

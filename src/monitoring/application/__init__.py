"""
Monitoring Application Layer
=============================

Contains:
- AdaptiveStatusPoller: sweep scheduling, transition detection, cadence
- IStatusLookup: interface the status endpoint adapter implements
"""

from src.monitoring.application.poller import AdaptiveStatusPoller, IStatusLookup

__all__ = [
    "AdaptiveStatusPoller",
    "IStatusLookup",
]

"""
Status Monitoring Module
========================

Bounded Context for the liveness of external instances.

Responsibilities:
- Poll instance status with an adaptive cadence
- Detect status transitions and publish them on an event channel
- Forward transitions to Slack
"""

__version__ = "1.0.0"

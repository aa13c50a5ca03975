"""
Policy Module
=============

Composition root of the temporal policies.

Responsibilities:
- Load business hours and SLA records for the owner, refresh on demand
- Answer open/closed, auto-reply and SLA verdict queries
- Own the status poller and its subscription point
- Expose all of it over HTTP
"""

__version__ = "1.0.0"

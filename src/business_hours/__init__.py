"""
Business Hours Module
=====================

Bounded Context for the weekly opening schedule.

Responsibilities:
- Decide whether an instant falls inside the configured opening window
- Build the out-of-hours auto-reply naming the next opening day
"""

__version__ = "1.0.0"

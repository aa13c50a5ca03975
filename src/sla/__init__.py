"""
SLA Module
==========

Bounded Context for Service Level Agreement deadlines.

Responsibilities:
- Scale first-response and resolution deadlines by priority
- Classify a conversation as on track, in the warning band or breached
- Report remaining (or overdue) minutes against the current clock
"""

__version__ = "1.0.0"

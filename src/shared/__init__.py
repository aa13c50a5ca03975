"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Business Hours, SLA, Monitoring and the Policy orchestrator).

Architecture Pattern: Modular Monolith
- Each module (business_hours, sla, monitoring, policy) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from any bounded context to shared kernel.
"""

__version__ = "1.0.0"

"""
Policy Interfaces Layer
========================

FastAPI routers for the temporal policies.
"""

from src.policy.interfaces.controllers import router as policy_router

__all__ = ["policy_router"]

"""
Core Module
============

Framework-agnostic building blocks shared by every bounded context:
the application exception hierarchy.
"""

from src.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ConfigurationException,
    ConfigUnavailableException,
    InvalidScheduleEntryException,
    ExternalServiceException,
    StatusLookupException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ConfigurationException",
    "ConfigUnavailableException",
    "InvalidScheduleEntryException",
    "ExternalServiceException",
    "StatusLookupException",
]

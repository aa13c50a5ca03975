"""
Core Exceptions
================

Exception taxonomy shared by every bounded context.

Evaluators never raise for missing configuration and status lookups never
escape a sweep, so most of these surface only from setup, the stores and
the HTTP layer. ``details`` is echoed in API error bodies.
"""

from typing import Optional


class ApplicationException(Exception):
    """Root of every error the application raises on purpose."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DomainException(ApplicationException):
    """An operation is not allowed in the current state."""


class RepositoryException(ApplicationException):
    """A configuration store could not be read or written."""


class ValidationException(ApplicationException):
    """Caller input or a merged record failed validation."""


class ConfigurationException(ApplicationException):
    """Settings or stored configuration are unusable."""


class ConfigUnavailableException(ConfigurationException):
    """No business hours / SLA record has been loaded for the owner."""

    def __init__(self, config_type: str, owner_id: Optional[str] = None):
        self.config_type = config_type
        self.owner_id = owner_id
        message = f"{config_type} configuration not loaded"
        if owner_id:
            message += f" for owner '{owner_id}'"
        super().__init__(message, {"config_type": config_type, "owner_id": owner_id})


class InvalidScheduleEntryException(DomainException):
    """A day schedule carries a start/end that is not a HH:MM clock time."""

    def __init__(self, value: object, details: Optional[dict] = None):
        self.value = value
        super().__init__(f"Invalid clock time: {value!r}", details or {"value": value})


class ExternalServiceException(ApplicationException):
    """A remote dependency failed; the message is prefixed with its name."""

    def __init__(self, service_name: str, message: str, details: Optional[dict] = None):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class StatusLookupException(ExternalServiceException):
    """A single target's status lookup failed."""

    def __init__(self, target: str, message: str, details: Optional[dict] = None):
        self.target = target
        super().__init__("Status Lookup", message, details or {"target": target})

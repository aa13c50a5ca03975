"""
Policy Infrastructure Layer
============================

Configuration stores for business hours and SLA records.
"""

from src.policy.infrastructure.repositories import (
    InMemoryConfigStore,
    YAMLConfigStore,
    merge_record,
    parse_record,
)

__all__ = [
    "InMemoryConfigStore",
    "YAMLConfigStore",
    "merge_record",
    "parse_record",
]

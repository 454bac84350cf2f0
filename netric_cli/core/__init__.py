"""
Core layer - Types, codecs and HTTP client.

This layer provides:
- Entity, grouping and collection dataclasses with their wire codecs
- Low-level HTTP client with token auth and error handling
"""

from netric_cli.core.client import (
    APIClient,
    APIError,
    AuthenticationError,
    CLIError,
    PreconditionError,
    RequestTimeoutError,
    RetrievalError,
    TransportError,
    ValidationError,
)
from netric_cli.core.types import Condition, Entity, EntityCollection, EntityGrouping

__all__ = [
    "APIClient",
    "APIError",
    "AuthenticationError",
    "CLIError",
    "Condition",
    "Entity",
    "EntityCollection",
    "EntityGrouping",
    "PreconditionError",
    "RequestTimeoutError",
    "RetrievalError",
    "TransportError",
    "ValidationError",
]

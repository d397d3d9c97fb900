"""
Client implementations for external services.

This package contains:
- Status endpoint client for the verification backend
- Session snapshot storage (in-memory, JSON file)
"""

from .snapshot import InMemorySnapshotStorage, JsonFileSnapshotStorage, SnapshotStorage
from .status_api import StatusApiClient

__all__ = [
    "InMemorySnapshotStorage",
    "JsonFileSnapshotStorage",
    "SnapshotStorage",
    "StatusApiClient",
]

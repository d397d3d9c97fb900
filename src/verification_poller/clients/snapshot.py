"""
Polling session snapshot storage.

Provides a protocol-based storage interface used by SessionStore to persist
its sessions between restarts, with in-memory and JSON file implementations.
Timers are never persisted.
"""

import logging
from pathlib import Path
from threading import RLock
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from ..models.session import PollingSession

logger = logging.getLogger(__name__)

_SESSIONS_ADAPTER = TypeAdapter(list[PollingSession])


class SnapshotStorage(Protocol):
    """
    Protocol for session snapshot storage.

    All storage implementations should provide these methods to ensure
    compatibility with SessionStore.
    """

    def load(self) -> list[PollingSession]:
        """
        Load the last saved snapshot.

        Returns:
            Saved sessions, or an empty list if nothing was saved
        """
        ...

    def save(self, sessions: list[PollingSession]) -> None:
        """
        Replace the saved snapshot.

        Args:
            sessions: Sessions to persist
        """
        ...

    def clear(self) -> None:
        """Remove the saved snapshot."""
        ...


class InMemorySnapshotStorage:
    """
    Snapshot storage kept in process memory.

    Useful for tests and for sharing state between stores in one process.
    """

    def __init__(self) -> None:
        self._payload: bytes | None = None
        self._lock = RLock()

    def load(self) -> list[PollingSession]:
        with self._lock:
            if self._payload is None:
                return []
            return _SESSIONS_ADAPTER.validate_json(self._payload)

    def save(self, sessions: list[PollingSession]) -> None:
        with self._lock:
            self._payload = _SESSIONS_ADAPTER.dump_json(sessions)

    def clear(self) -> None:
        with self._lock:
            self._payload = None


class JsonFileSnapshotStorage:
    """
    Snapshot storage backed by a JSON file.

    Attributes:
        path: Location of the snapshot file

    Note:
        Failures are logged and swallowed: persistence is best-effort and
        must never break polling.
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize the storage.

        Args:
            path: Snapshot file path; parent directories are created on save
        """
        self.path = Path(path)
        self._lock = RLock()

    def load(self) -> list[PollingSession]:
        with self._lock:
            if not self.path.exists():
                return []
            try:
                return _SESSIONS_ADAPTER.validate_json(self.path.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Failed to restore polling state from {self.path}: {e}")
                return []

    def save(self, sessions: list[PollingSession]) -> None:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp_path.write_bytes(_SESSIONS_ADAPTER.dump_json(sessions, indent=2))
                tmp_path.replace(self.path)
            except OSError as e:
                logger.warning(f"Failed to persist polling state to {self.path}: {e}")

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)

"""
Ports (interfaces) for history persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import HistoryMap, RemoteRow


class LocalStore(ABC):
    """
    Port for durable, full-snapshot storage of the history map.

    Implementations:
        - JsonFileStore: One JSON blob on disk.
        - InMemoryLocalStore: Process-local dict, for tests and ephemeral sessions.
    """

    @abstractmethod
    def load(self) -> HistoryMap:
        """
        Read the full history map.

        Returns:
            The stored map, or an empty map if nothing has been saved yet.

        Raises:
            LocalStoreError: If stored data exists but cannot be decoded.
        """
        pass

    @abstractmethod
    def save(self, history: HistoryMap) -> None:
        """Replace the stored snapshot with ``history``."""
        pass


class RemoteStore(ABC):
    """
    Port for the remote row-oriented store.

    Implementations:
        - RestRemoteStore: PostgREST-style HTTP table.
        - InMemoryRemoteStore: Dict keyed by (user_id, item_id).
    """

    @abstractmethod
    async def fetch_rows(self, user_id: str) -> list[RemoteRow]:
        """
        Fetch every row belonging to ``user_id``.

        Raises:
            RemoteStoreError: On any transport or server failure.
        """
        pass

    @abstractmethod
    async def upsert_rows(self, rows: list[RemoteRow]) -> None:
        """
        Insert or replace rows keyed by (user_id, item_id).

        Raises:
            RemoteStoreError: On any transport or server failure.
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources. Stores without any keep this no-op."""
        return None

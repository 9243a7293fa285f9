# Store Adapters Package
from .json_store import JsonFileStore
from .memory_store import InMemoryLocalStore, InMemoryRemoteStore
from .rest_remote import RestRemoteStore

__all__ = ["JsonFileStore", "InMemoryLocalStore", "InMemoryRemoteStore", "RestRemoteStore"]

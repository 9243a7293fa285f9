"""
Store Factory
Centralizes the logic for building stores and services from configuration.
"""

from kotoba.application.config import AppConfig
from kotoba.application.history_service import LearningHistory
from kotoba.domain.errors import KotobaError
from kotoba.domain.ports import LocalStore, RemoteStore
from kotoba.infrastructure.adapters.json_store import JsonFileStore
from kotoba.infrastructure.adapters.memory_store import InMemoryRemoteStore
from kotoba.infrastructure.adapters.rest_remote import RestRemoteStore


def get_local_store(config: AppConfig) -> LocalStore:
    return JsonFileStore(config.history_file)


def get_remote_store(config: AppConfig) -> RemoteStore:
    """
    Returns the RemoteStore implementation selected by ``config.backend``.
    """
    if config.backend == "memory":
        return InMemoryRemoteStore()

    if not config.remote_url:
        raise KotobaError(
            "No remote configured. Set KOTOBA_REMOTE_URL or 'remote_url' in the config file."
        )
    return RestRemoteStore(
        url=config.remote_url,
        api_key=config.remote_api_key,
        table=config.remote_table,
        timeout=config.request_timeout,
    )


def open_history(config: AppConfig) -> LearningHistory:
    """Build a LearningHistory backed by the configured local store and load it."""
    return LearningHistory(get_local_store(config)).load()

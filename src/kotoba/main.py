import logging

from kotoba.application.config import AppConfig
from kotoba.application.factory import get_remote_store, open_history
from kotoba.application.history_service import LearningHistory
from kotoba.application.sync_service import SyncEngine, SyncResult
from kotoba.domain.errors import KotobaError

logger = logging.getLogger(__name__)


async def execute_sync(
    config: AppConfig,
    user_id: str | None = None,
    history: LearningHistory | None = None,
) -> SyncResult:
    """
    Run one sync cycle for ``user_id`` (falls back to ``config.user_id``).

    Raises:
        KotobaError: If no user id or remote is configured.
    """
    uid = user_id or config.user_id
    if not uid:
        raise KotobaError("No user id given. Pass --user or set KOTOBA_USER_ID.")

    if history is None:
        history = open_history(config)
    remote = get_remote_store(config)
    engine = SyncEngine(history, remote, chunk_size=config.push_chunk_size)
    try:
        result = await engine.sync(uid)
    finally:
        await engine.aclose()

    logger.info(
        f"Sync finished: status={result.status} pulled={result.pulled} "
        f"adopted={result.adopted} pushed={result.pushed}"
    )
    return result

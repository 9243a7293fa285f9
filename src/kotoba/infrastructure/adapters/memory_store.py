"""In-memory implementations of the LocalStore and RemoteStore ports."""

import copy
import logging

from kotoba.domain.errors import RemoteStoreError
from kotoba.domain.models import HistoryMap, RemoteRow
from kotoba.domain.ports import LocalStore, RemoteStore

logger = logging.getLogger(__name__)


class InMemoryLocalStore(LocalStore):
    """Keeps a deep copy of the last saved snapshot."""

    def __init__(self, history: HistoryMap | None = None):
        self._snapshot: HistoryMap = copy.deepcopy(history or {})
        self.save_count = 0

    def load(self) -> HistoryMap:
        return copy.deepcopy(self._snapshot)

    def save(self, history: HistoryMap) -> None:
        self._snapshot = copy.deepcopy(history)
        self.save_count += 1


class InMemoryRemoteStore(RemoteStore):
    """
    Remote table held in a dict keyed by (user_id, item_id).

    Setting ``fail_pull`` or ``fail_push`` makes the next calls raise
    RemoteStoreError, mimicking an unreachable backend.
    """

    def __init__(self, rows: list[RemoteRow] | None = None):
        self.rows: dict[tuple[str, str], RemoteRow] = {}
        self.fail_pull = False
        self.fail_push = False
        self.upsert_calls = 0
        for row in rows or []:
            self.rows[(row.user_id, row.item_id)] = row

    async def fetch_rows(self, user_id: str) -> list[RemoteRow]:
        if self.fail_pull:
            raise RemoteStoreError("remote unavailable (pull)")
        return [row for (uid, _), row in self.rows.items() if uid == user_id]

    async def upsert_rows(self, rows: list[RemoteRow]) -> None:
        self.upsert_calls += 1
        if self.fail_push:
            raise RemoteStoreError("remote unavailable (push)")
        for row in rows:
            self.rows[(row.user_id, row.item_id)] = row
        logger.debug(f"[memory] upserted {len(rows)} rows")

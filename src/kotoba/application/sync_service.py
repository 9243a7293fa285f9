"""
Sync Engine: reconciles local learning history with the remote store.

Three phases:
1. Pull every remote row for the user (failure aborts with no local change)
2. Merge last-write-wins on ``last_seen_at`` and commit locally
3. Push locally-newer and local-only records (failure keeps the merge)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from kotoba.domain.constants import PUSH_CHUNK_SIZE
from kotoba.domain.errors import RemoteStoreError
from kotoba.domain.models import HistoryMap, HistoryRecord, RemoteRow
from kotoba.domain.ports import RemoteStore

from .history_service import LearningHistory

logger = logging.getLogger(__name__)

SyncStatus = Literal["ok", "pull_failed", "push_failed", "skipped"]


@dataclass
class MergeResult:
    """Outcome of folding remote rows into a local map."""

    merged: HistoryMap
    push_candidates: list[HistoryRecord]
    adopted: list[str] = field(default_factory=list)  # item ids taken from remote
    malformed: int = 0


@dataclass
class SyncResult:
    status: SyncStatus
    pulled: int = 0
    adopted: int = 0
    pushed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def merge_history(local: HistoryMap, remote_rows: list[RemoteRow]) -> MergeResult:
    """
    Last-write-wins merge of remote rows into ``local``.

    Remote wins only when strictly newer; ties keep local. Every local record
    that is kept, plus every local-only record, becomes a push candidate.
    ``local`` is not modified.
    """
    merged: HistoryMap = dict(local)
    adopted: list[str] = []
    candidates: dict[str, HistoryRecord] = {}
    seen_remote: set[str] = set()
    malformed = 0

    for row in remote_rows:
        try:
            remote = HistoryRecord.from_payload(row.data)
        except (KeyError, TypeError, ValueError) as e:
            malformed += 1
            logger.warning(f"[sync] skipping malformed remote row item={row.item_id}: {e}")
            continue

        item_id = remote.item_id
        seen_remote.add(item_id)
        current = local.get(item_id)

        if current is None or remote.last_seen_at > current.last_seen_at:
            merged[item_id] = remote
            adopted.append(item_id)
        else:
            candidates[item_id] = current

    for item_id, record in local.items():
        if item_id not in seen_remote:
            candidates[item_id] = record

    return MergeResult(
        merged=merged,
        push_candidates=list(candidates.values()),
        adopted=adopted,
        malformed=malformed,
    )


def to_remote_row(user_id: str, record: HistoryRecord, updated_at: str) -> RemoteRow:
    return RemoteRow(
        user_id=user_id,
        item_id=record.item_id,
        data=record.to_payload(),
        last_seen_at=record.last_seen_at,
        updated_at=updated_at,
    )


class SyncEngine:
    """
    Application service that runs pull/merge/push for one LearningHistory.

    Only one sync runs at a time; overlapping calls return ``skipped``.
    Transport failures are logged and reported in the SyncResult, never raised.
    """

    def __init__(
        self,
        history: LearningHistory,
        remote: RemoteStore,
        chunk_size: int = PUSH_CHUNK_SIZE,
    ):
        self._history = history
        self._remote = remote
        self._chunk_size = max(1, chunk_size)
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._remote.aclose()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def sync(self, user_id: str) -> SyncResult:
        if self._lock.locked():
            logger.info(f"[sync] already running, skipping sync for user={user_id}")
            return SyncResult(status="skipped")

        async with self._lock:
            return await self._run(user_id)

    async def _run(self, user_id: str) -> SyncResult:
        # 1. Pull
        try:
            rows = await self._remote.fetch_rows(user_id)
        except RemoteStoreError as e:
            logger.error(f"[sync] pull failed for user={user_id}: {e}")
            return SyncResult(status="pull_failed", error=str(e))

        # 2. Merge and commit; no await between reading local state and the commit
        result = merge_history(self._history.snapshot(), rows)
        self._history.replace_all(result.merged)
        logger.info(
            f"[sync] merged user={user_id} pulled={len(rows)} "
            f"adopted={len(result.adopted)} to_push={len(result.push_candidates)}"
        )

        # 3. Push
        updated_at = datetime.now(timezone.utc).isoformat()
        push_rows = [to_remote_row(user_id, r, updated_at) for r in result.push_candidates]
        pushed = 0
        for i in range(0, len(push_rows), self._chunk_size):
            chunk = push_rows[i : i + self._chunk_size]
            try:
                await self._remote.upsert_rows(chunk)
            except RemoteStoreError as e:
                logger.error(
                    f"[sync] push failed for user={user_id} after {pushed} rows: {e}"
                )
                return SyncResult(
                    status="push_failed",
                    pulled=len(rows),
                    adopted=len(result.adopted),
                    pushed=pushed,
                    error=str(e),
                )
            pushed += len(chunk)

        return SyncResult(
            status="ok",
            pulled=len(rows),
            adopted=len(result.adopted),
            pushed=pushed,
        )

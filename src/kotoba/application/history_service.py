"""
Learning history: Application layer repository.

Owns the in-memory history map and is the single entry point for every
mutation: exposures, reviews, and the manual mastery override. Each mutation
is written through to the LocalStore port unless autosave is disabled.
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from kotoba.domain.constants import EXPOSURE_DEBOUNCE_MS
from kotoba.domain.models import HistoryMap, HistoryRecord, HistorySummary, SourceItem
from kotoba.domain.ports import LocalStore

from .scheduler import schedule_review

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class LearningHistory:
    """
    Repository for a single user's learning history.

    Follows Dependency Inversion: depends on the LocalStore abstraction, so
    tests construct one per case with an in-memory store and a fixed clock.
    """

    def __init__(
        self,
        store: LocalStore,
        clock: Clock | None = None,
        autosave: bool = True,
    ):
        """
        Args:
            store: The local persistence port.
            clock: Returns "now" in epoch ms; defaults to the wall clock.
            autosave: Write the full map to the store after every mutation.
        """
        self._store = store
        self._clock = clock or now_ms
        self.autosave = autosave
        self._history: HistoryMap = {}

    # ------------------------------------------------------------------
    # Persistence boundary
    # ------------------------------------------------------------------

    def load(self) -> "LearningHistory":
        self._history = self._store.load()
        logger.debug(f"Loaded {len(self._history)} history records")
        return self

    def save(self) -> None:
        self._store.save(self._history)

    def _commit(self) -> None:
        if self.autosave:
            self.save()

    def snapshot(self) -> HistoryMap:
        """Shallow copy of the current map. Records are replaced, never mutated in place."""
        return dict(self._history)

    def replace_all(self, history: HistoryMap) -> None:
        """Swap in a whole new map (used by sync to commit a merge)."""
        self._history = dict(history)
        self._commit()

    def get(self, item_id: str) -> HistoryRecord | None:
        return self._history.get(item_id)

    def __len__(self) -> int:
        return len(self._history)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._history

    # ------------------------------------------------------------------
    # Exposure Recorder
    # ------------------------------------------------------------------

    def record_exposure(self, item: SourceItem | None) -> None:
        self.record_exposures([item])

    def record_exposures(self, items: Iterable[SourceItem | None]) -> None:
        """
        Record that each item was seen.

        Repeat exposures of a known item within the debounce window are treated
        as the same event. Items without an id are ignored.
        """
        changed = False
        for item in items:
            if item is None or not item.id:
                continue

            now = self._clock()
            current = self._history.get(item.id)

            if current is None:
                self._history[item.id] = HistoryRecord.first_exposure(item, now)
                logger.debug(f"[exposure] new item {item.id}")
                changed = True
                continue

            if now - current.last_seen_at < EXPOSURE_DEBOUNCE_MS:
                continue

            self._history[item.id] = replace(
                current,
                exposure_count=current.exposure_count + 1,
                last_seen_at=now,
            )
            changed = True

        if changed:
            self._commit()

    # ------------------------------------------------------------------
    # SRS
    # ------------------------------------------------------------------

    def review_item(self, item_id: str, quality: int) -> None:
        """
        Apply an SM-2 review. Unknown ids are ignored.

        Raises:
            InvalidQualityError: If quality is not an integer in 0..5.
        """
        current = self._history.get(item_id)
        if current is None:
            logger.debug(f"[review] unknown item {item_id}, ignoring")
            return

        updated = schedule_review(current, quality, self._clock())
        self._history[item_id] = updated
        logger.debug(
            f"[review] {item_id} q={quality} -> interval={updated.interval} "
            f"reps={updated.repetitions} ease={updated.ease_factor:.2f}"
        )
        self._commit()

    def get_due_items(self) -> list[HistoryRecord]:
        """Non-mastered items whose review time has passed, most overdue first."""
        now = self._clock()
        due = [
            record
            for record in self._history.values()
            if not record.is_mastered
            and (not record.next_review_date or record.next_review_date <= now)
        ]
        return sorted(due, key=lambda r: r.next_review_date or 0)

    # ------------------------------------------------------------------
    # Mastery
    # ------------------------------------------------------------------

    def toggle_mastery(self, item_id: str) -> None:
        current = self._history.get(item_id)
        if current is None:
            logger.debug(f"[mastery] unknown item {item_id}, ignoring")
            return

        self._history[item_id] = replace(current, is_mastered=not current.is_mastered)
        self._commit()

    def is_mastered(self, item_id: str) -> bool:
        record = self._history.get(item_id)
        return bool(record and record.is_mastered)

    def should_hide(self, item_id: str) -> bool:
        return self.is_mastered(item_id)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> HistorySummary:
        summary = HistorySummary(
            total=len(self._history),
            mastered=sum(1 for r in self._history.values() if r.is_mastered),
            due=len(self.get_due_items()),
        )
        for record in self._history.values():
            level = record.jlpt.value if record.jlpt else "unknown"
            summary.by_jlpt[level] = summary.by_jlpt.get(level, 0) + 1
        return summary

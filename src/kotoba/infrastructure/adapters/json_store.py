"""
JSON File Store: Infrastructure adapter for the local history blob.

Implements LocalStore as a single namespaced JSON file holding
``{"history": {itemId: record}}``, rewritten in full on every save.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from kotoba.domain.errors import LocalStoreError
from kotoba.domain.models import HistoryMap, HistoryRecord
from kotoba.domain.ports import LocalStore

logger = logging.getLogger(__name__)


class JsonFileStore(LocalStore):
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> HistoryMap:
        if not self.path.exists():
            logger.debug(f"No history file at {self.path}, starting empty")
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise LocalStoreError(f"Failed to read history from {self.path}: {e}") from e

        entries = raw.get("history", {}) if isinstance(raw, dict) else None
        if not isinstance(entries, dict):
            raise LocalStoreError(f"Unexpected history layout in {self.path}")

        history: HistoryMap = {}
        for key, payload in entries.items():
            try:
                record = HistoryRecord.from_payload(payload)
            except (KeyError, TypeError, ValueError) as e:
                raise LocalStoreError(f"Corrupt history record '{key}' in {self.path}: {e}") from e
            history[record.item_id] = record
        return history

    def save(self, history: HistoryMap) -> None:
        blob = {"history": {k: r.to_payload() for k, r in history.items()}}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file and rename so a crash never leaves a torn blob.
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(blob, f, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LocalStoreError(f"Failed to write history to {self.path}: {e}") from e
        logger.debug(f"[write] {self.path}: {len(history)} records")

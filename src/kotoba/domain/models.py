"""
Domain models for learning history.

These are pure data structures with no I/O or external dependencies.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import DEFAULT_EASE_FACTOR


class ItemType(str, Enum):
    GRAMMAR = "grammar"
    VOCAB = "vocab"


class JlptLevel(str, Enum):
    N5 = "N5"
    N4 = "N4"
    N3 = "N3"
    N2 = "N2"
    N1 = "N1"


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Map a raw string onto an enum member, or None if it is not one."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _as_float(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number: {value!r}")
    return number


def _as_int(value: Any) -> int:
    """int() that raises ValueError on NaN or infinity."""
    if isinstance(value, float):
        _as_float(value)
    return int(value)


@dataclass(frozen=True)
class SourceItem:
    """
    A learning item as produced by content generation.

    Attributes:
        id: Stable content-derived identifier (e.g. "vocab-arigatou").
        text: Surface form shown to the learner.
        type: Grammar point or vocabulary entry.
        meaning: Short gloss.
        jlpt: Optional JLPT level.
        reading: Optional kana reading.
    """

    id: str
    text: str | None = None
    type: ItemType | None = None
    meaning: str | None = None
    jlpt: JlptLevel | None = None
    reading: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SourceItem | None":
        """Build a SourceItem from a loosely-typed mapping; None if it has no id."""
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id.strip():
            return None
        return cls(
            id=item_id,
            text=data.get("text"),
            type=_coerce_enum(ItemType, data.get("type")),
            meaning=data.get("meaning"),
            jlpt=_coerce_enum(JlptLevel, data.get("jlpt")),
            reading=data.get("reading"),
        )


@dataclass
class HistoryRecord:
    """
    Learning progress for a single item.

    Timestamps are epoch milliseconds. ``next_review_date`` is None only for
    legacy records written before scheduling existed.
    """

    item_id: str
    last_seen_at: int

    # Display data, copied on first exposure
    text: str | None = None
    type: ItemType | None = None
    meaning: str | None = None
    jlpt: JlptLevel | None = None
    reading: str | None = None

    exposure_count: int = 1
    is_mastered: bool = False

    # SM-2 state
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    next_review_date: int | None = None

    @classmethod
    def first_exposure(cls, item: SourceItem, now: int) -> "HistoryRecord":
        return cls(
            item_id=item.id,
            last_seen_at=now,
            text=item.text,
            type=item.type,
            meaning=item.meaning,
            jlpt=item.jlpt,
            reading=item.reading,
            next_review_date=now,  # due immediately
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase wire/blob shape."""
        return {
            "itemId": self.item_id,
            "text": self.text,
            "type": self.type.value if self.type else None,
            "meaning": self.meaning,
            "jlpt": self.jlpt.value if self.jlpt else None,
            "reading": self.reading,
            "exposureCount": self.exposure_count,
            "lastSeenAt": self.last_seen_at,
            "isMastered": self.is_mastered,
            "easeFactor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "nextReviewDate": self.next_review_date,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "HistoryRecord":
        """
        Deserialize from the camelCase shape.

        Legacy payloads without SRS fields get the first-exposure defaults.
        Raises KeyError/TypeError/ValueError on payloads missing an id or timestamp.
        """
        item_id = data["itemId"]
        if not isinstance(item_id, str) or not item_id:
            raise ValueError(f"invalid itemId: {item_id!r}")

        next_review = data.get("nextReviewDate")
        return cls(
            item_id=item_id,
            last_seen_at=_as_int(data["lastSeenAt"]),
            text=data.get("text"),
            type=_coerce_enum(ItemType, data.get("type")),
            meaning=data.get("meaning"),
            jlpt=_coerce_enum(JlptLevel, data.get("jlpt")),
            reading=data.get("reading"),
            exposure_count=_as_int(data.get("exposureCount") or 1),
            is_mastered=bool(data.get("isMastered")),
            ease_factor=_as_float(data.get("easeFactor") or DEFAULT_EASE_FACTOR),
            interval=_as_int(data.get("interval") or 0),
            repetitions=_as_int(data.get("repetitions") or 0),
            next_review_date=_as_int(next_review) if next_review else None,
        )


HistoryMap = dict[str, HistoryRecord]


@dataclass(frozen=True)
class RemoteRow:
    """
    One row of the remote learning-history table.

    Unique on (user_id, item_id). ``data`` holds the serialized HistoryRecord.
    """

    user_id: str
    item_id: str
    data: dict[str, Any]
    last_seen_at: int
    updated_at: str | None = None


@dataclass
class HistorySummary:
    total: int = 0
    mastered: int = 0
    due: int = 0
    by_jlpt: dict[str, int] = field(default_factory=dict)

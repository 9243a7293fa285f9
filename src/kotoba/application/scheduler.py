"""
SM-2 scheduler for learning-history records.

This is a pure computation module with no I/O.
"""

import math
from dataclasses import replace

from kotoba.domain.constants import (
    FIRST_INTERVAL_DAYS,
    MASTERY_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    MS_PER_DAY,
    PASSING_QUALITY,
    SECOND_INTERVAL_DAYS,
)
from kotoba.domain.errors import InvalidQualityError
from kotoba.domain.models import HistoryRecord


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; review intervals round .5 upward.
    return math.floor(value + 0.5)


def validate_quality(quality: int) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError(
            f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """
    SM-2 ease update.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), never below 1.3.
    """
    miss = MAX_QUALITY - quality
    updated = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return max(MIN_EASE_FACTOR, updated)


def next_interval(
    interval: int, repetitions: int, ease_factor: float, quality: int
) -> tuple[int, int]:
    """
    Returns (interval, repetitions) after a review.

    ``ease_factor`` is the value before this review's ease update.
    """
    if quality < PASSING_QUALITY:
        return FIRST_INTERVAL_DAYS, 0

    if repetitions == 0:
        new_interval = FIRST_INTERVAL_DAYS
    elif repetitions == 1:
        new_interval = SECOND_INTERVAL_DAYS
    else:
        new_interval = round_half_up(interval * ease_factor)
    return new_interval, repetitions + 1


def schedule_review(record: HistoryRecord, quality: int, now: int) -> HistoryRecord:
    """
    Apply one SM-2 review to ``record`` and return the updated copy.

    Deterministic in (record, quality, now); the input record is not mutated.

    Raises:
        InvalidQualityError: If quality is not an integer in 0..5.
    """
    validate_quality(quality)

    interval, repetitions = next_interval(
        record.interval, record.repetitions, record.ease_factor, quality
    )
    return replace(
        record,
        ease_factor=next_ease_factor(record.ease_factor, quality),
        interval=interval,
        repetitions=repetitions,
        next_review_date=now + interval * MS_PER_DAY,
        last_seen_at=now,
        is_mastered=interval > MASTERY_INTERVAL_DAYS,
    )

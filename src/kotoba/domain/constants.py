"""Centralized constants for Kotoba.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
MS_PER_DAY = 86_400_000

# ---------- Exposure Recorder ----------
EXPOSURE_DEBOUNCE_MS = 2000

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
PASSING_QUALITY = 3
MIN_QUALITY = 0
MAX_QUALITY = 5
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
MASTERY_INTERVAL_DAYS = 180  # auto-graduate after roughly six months

# ---------- Local Store ----------
DEFAULT_STORAGE_KEY = "j-learning-history"

# ---------- Remote Store / HTTP ----------
DEFAULT_REMOTE_TABLE = "learning_history"
REQUEST_TIMEOUT = 30.0
PUSH_CHUNK_SIZE = 500
# PostgREST default max-rows; pulls page at this size
PULL_PAGE_SIZE = 1000

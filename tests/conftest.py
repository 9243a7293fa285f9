import pytest

from kotoba.application.history_service import LearningHistory
from kotoba.domain.models import HistoryRecord, ItemType, JlptLevel, SourceItem
from kotoba.infrastructure.adapters.memory_store import InMemoryLocalStore, InMemoryRemoteStore

T0 = 1_700_000_000_000


class FakeClock:
    """Settable epoch-ms clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryLocalStore()


@pytest.fixture
def history(store, clock):
    return LearningHistory(store, clock=clock)


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def vocab_item():
    return SourceItem(
        id="vocab-arigatou",
        text="ありがとう",
        type=ItemType.VOCAB,
        meaning="thank you",
        jlpt=JlptLevel.N5,
        reading="ありがとう",
    )


@pytest.fixture
def make_record():
    def _make(item_id: str, last_seen_at: int, **kwargs) -> HistoryRecord:
        kwargs.setdefault("next_review_date", last_seen_at)
        return HistoryRecord(item_id=item_id, last_seen_at=last_seen_at, **kwargs)

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and the default data dir
    monkeypatch.setenv("HOME", str(home))
    for var in ("KOTOBA_REMOTE_URL", "KOTOBA_USER_ID", "KOTOBA_BACKEND", "KOTOBA_DATA_DIR"):
        monkeypatch.delenv(var, raising=False)
    return home

import threading

import pytest

from securekey.coordinator import Coordinator


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Recorder:
    """Collects coordinator callbacks."""

    def __init__(self):
        self.changes = []
        self.completions = 0
        self._lock = threading.Lock()

    def on_lock_changed(self, index, is_open):
        with self._lock:
            self.changes.append((index, is_open))

    def on_all_locks_opened(self):
        with self._lock:
            self.completions += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def coordinator(recorder):
    return Coordinator(
        on_lock_changed=recorder.on_lock_changed,
        on_all_locks_opened=recorder.on_all_locks_opened,
    )

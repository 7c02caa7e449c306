# securekey/lock_state.py

import threading
from dataclasses import dataclass, field
from typing import List, NamedTuple, Tuple

from .errors import InvalidLockIndex

LOCK_COUNT = 6

# Fixed index -> condition mapping
BATTERY = 0
PHRASE = 1
SHAKE = 2
NETWORK = 3
TIME_OF_DAY = 4
SMILE = 5

LOCK_NAMES = ("battery", "phrase", "shake", "network", "time_of_day", "smile")


class LockUpdate(NamedTuple):
    changed: bool
    completed: bool


@dataclass
class LockStateStore:
    """Six monotonic lock slots plus the once-only completion flag.

    All mutation goes through `apply()` / `set_open()`, which hold `lock` for
    the whole check-set-complete sequence.
    """

    slots: List[bool] = field(default_factory=lambda: [False] * LOCK_COUNT)
    completed: bool = False

    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def apply(self, index: int) -> LockUpdate:
        _check_index(index)
        with self.lock:
            if self.slots[index]:
                return LockUpdate(changed=False, completed=False)
            self.slots[index] = True

            completed_now = False
            if not self.completed and all(self.slots):
                self.completed = True
                completed_now = True
            return LockUpdate(changed=True, completed=completed_now)

    def set_open(self, index: int) -> bool:
        return self.apply(index).changed

    def is_open(self, index: int) -> bool:
        _check_index(index)
        with self.lock:
            return self.slots[index]

    def all_open(self) -> bool:
        with self.lock:
            return all(self.slots)

    def open_count(self) -> int:
        with self.lock:
            return sum(1 for s in self.slots if s)

    def snapshot(self) -> Tuple[bool, ...]:
        with self.lock:
            return tuple(self.slots)

    def to_dict(self) -> dict:
        with self.lock:
            return {
                "locks": list(self.slots),
                "open_count": sum(1 for s in self.slots if s),
                "completed": self.completed,
            }


def _check_index(index: object) -> None:
    # bool is an int subclass; reject it along with anything non-integral.
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < LOCK_COUNT:
        raise InvalidLockIndex(index, LOCK_COUNT)

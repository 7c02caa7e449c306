# securekey/__init__.py

from .coordinator import Coordinator, CoordinatorState
from .errors import InvalidLockIndex, SecureKeyError
from .lock_state import LOCK_COUNT, LOCK_NAMES, LockStateStore

__all__ = [
    "Coordinator",
    "CoordinatorState",
    "InvalidLockIndex",
    "LOCK_COUNT",
    "LOCK_NAMES",
    "LockStateStore",
    "SecureKeyError",
]

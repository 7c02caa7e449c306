# securekey/coordinator.py

import enum
import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from .lock_state import LOCK_NAMES, LockStateStore

log = logging.getLogger(__name__)

LockListener = Callable[[int, bool], None]
CompletionListener = Callable[[], None]


class CoordinatorState(enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"


class Coordinator:
    """Routes unlock reports from every detector into one LockStateStore.

    `report_unlock` is safe to call from any producer thread. Listener
    callbacks run outside the store lock, one at a time, in the order the
    changes were committed; the completion listeners run exactly once.
    """

    def __init__(
        self,
        on_lock_changed: Optional[LockListener] = None,
        on_all_locks_opened: Optional[CompletionListener] = None,
        store: Optional[LockStateStore] = None,
    ):
        self._store = store or LockStateStore()
        self._lock_listeners: List[LockListener] = []
        self._completion_listeners: List[CompletionListener] = []
        if on_lock_changed is not None:
            self._lock_listeners.append(on_lock_changed)
        if on_all_locks_opened is not None:
            self._completion_listeners.append(on_all_locks_opened)

        self._components: list = []
        self._started = False

        # lock index for a lock change, None for completion
        self._pending: Deque[Optional[int]] = deque()
        # True while some thread is draining _pending; guarded by the store lock.
        self._delivering = False

    # ---------------- Listeners / components ----------------
    def add_lock_listener(self, listener: LockListener) -> None:
        self._lock_listeners.append(listener)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    def register(self, component) -> None:
        """Register a detector or poller (anything with start()/stop())."""
        self._components.append(component)
        if self._started:
            component.start()

    # ---------------- Lifecycle ----------------
    def start(self) -> None:
        if self._started:
            return
        self._started = True
        log.info("[LOCKS] Starting %d component(s)", len(self._components))
        for component in list(self._components):
            component.start()

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        for component in reversed(self._components):
            try:
                component.stop()
            except Exception:
                log.exception("[LOCKS] Error stopping %r", component)
        log.info("[LOCKS] Stopped.")

    # ---------------- State ----------------
    @property
    def state(self) -> CoordinatorState:
        with self._store.lock:
            return CoordinatorState.COMPLETED if self._store.completed else CoordinatorState.RUNNING

    @property
    def is_completed(self) -> bool:
        return self.state is CoordinatorState.COMPLETED

    def is_open(self, index: int) -> bool:
        return self._store.is_open(index)

    def all_open(self) -> bool:
        return self._store.all_open()

    def snapshot(self) -> Tuple[bool, ...]:
        return self._store.snapshot()

    def to_dict(self) -> dict:
        return self._store.to_dict()

    # ---------------- Mutation ----------------
    def report_unlock(self, index: int) -> bool:
        """Open lock `index`. Returns True only for the call that opened it.

        Raises InvalidLockIndex for an index outside [0, 6).
        """
        drain = False
        with self._store.lock:
            update = self._store.apply(index)
            if update.changed:
                self._pending.append(index)
                if update.completed:
                    self._pending.append(None)
                drain = not self._delivering
                self._delivering = True

        if not update.changed:
            return False

        log.info("[LOCKS] Lock %d (%s) opened", index, LOCK_NAMES[index])
        if update.completed:
            log.info("[LOCKS] All locks opened")
        if drain:
            self._deliver()
        return True

    def _deliver(self) -> None:
        # Only one thread drains at a time. Reports that arrive meanwhile, from
        # other producers or from a listener, are queued and delivered here, so
        # report_unlock never waits on listener code running elsewhere.
        while True:
            with self._store.lock:
                if not self._pending:
                    self._delivering = False
                    return
                index = self._pending.popleft()

            if index is None:
                for listener in list(self._completion_listeners):
                    self._call(listener)
            else:
                for listener in list(self._lock_listeners):
                    self._call(listener, index, True)

    @staticmethod
    def _call(listener, *args) -> None:
        # A broken listener must not stop the others or the producer thread.
        try:
            listener(*args)
        except Exception:
            log.exception("[LOCKS] Listener %r failed", listener)

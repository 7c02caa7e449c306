# securekey/phrase_listener.py

import enum
import logging
import queue
import threading
import time
from typing import Callable, Optional

from . import config
from .lock_state import PHRASE

log = logging.getLogger(__name__)

# Speech engine error code for "nothing recognised"; an expected outcome.
ERROR_NO_MATCH = 7


class ListenerState(enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    ENDED = "ended"
    ERRORED = "errored"
    STOPPED = "stopped"


class _Event(enum.Enum):
    ENDED = "ended"
    ERROR = "error"
    FINAL = "final"
    RESTART_DUE = "restart_due"
    SHUTDOWN = "shutdown"


class PhraseListener:
    """Keeps a speech session running and watches transcripts for a phrase.

    `session` is the speech-to-text collaborator; it only needs `start()` and
    `stop()`. Its callbacks come back through `on_transcript`,
    `on_session_ended` and `on_session_error`. Session lifecycle events are
    queued and handled by one worker thread:

        IDLE -> LISTENING -> ENDED | ERRORED -> LISTENING ... -> STOPPED

    A restart that finds the session already LISTENING is dropped.
    """

    def __init__(
        self,
        report_unlock: Callable[[int], object],
        session,
        phrase: str = config.MAGIC_PHRASE,
        restart_delay_sec: float = config.SPEECH_RESTART_DELAY_SEC,
        clock: Callable[[], float] = time.monotonic,
        lock_index: int = PHRASE,
    ):
        self._report_unlock = report_unlock
        self._session = session
        self._phrase = phrase.lower()
        self._restart_delay_sec = restart_delay_sec
        self._clock = clock
        self._lock_index = lock_index

        self._state = ListenerState.IDLE
        self._lock = threading.RLock()
        self._events: Optional["queue.Queue"] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ListenerState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._state not in (ListenerState.IDLE, ListenerState.STOPPED)

    # ---------------- Lifecycle ----------------
    def start(self) -> None:
        with self._lock:
            if self.is_active:
                return
            # Fresh queue per run; a previous worker drains its own queue and exits.
            self._events = queue.Queue()
            self._thread = threading.Thread(
                target=self._run, args=(self._events,), name="SPEECH", daemon=True
            )
            self._thread.start()

            if self._start_session():
                log.info("[SPEECH] Started listening")
            else:
                self._post(_Event.ERROR, "start failed")

    def stop(self) -> None:
        with self._lock:
            if not self.is_active:
                return
            self._state = ListenerState.STOPPED
            self._post(_Event.SHUTDOWN, None)
            # Late session callbacks are dropped instead of queued for a dead worker.
            self._events = None
            try:
                self._session.stop()
            except Exception as e:
                log.warning("[SPEECH] Session stop failed: %s", e)
            log.info("[SPEECH] Stopped listening")

    # ---------------- Session callbacks ----------------
    def on_transcript(self, text: str, final: bool = False) -> bool:
        """Feed a partial or final transcript. Returns True on a phrase match."""
        with self._lock:
            if not self.is_active:
                return False

            heard = (text or "").lower()
            log.debug("[SPEECH] Heard: %s", heard)
            matched = self._phrase in heard
            if matched:
                log.info("[SPEECH] Magic phrase detected")
                self._report_unlock(self._lock_index)

        if final:
            self._post(_Event.FINAL, None)
        return matched

    def on_session_ended(self) -> None:
        self._post(_Event.ENDED, None)

    def on_session_error(self, code: Optional[int]) -> None:
        if code == ERROR_NO_MATCH:
            log.debug("[SPEECH] No match")
            return
        self._post(_Event.ERROR, code)

    # ---------------- Worker ----------------
    def _post(self, event: _Event, arg: object) -> None:
        events = self._events
        if events is not None:
            events.put((event, arg))

    def _run(self, events: "queue.Queue") -> None:
        restart_at: Optional[float] = None

        while True:
            timeout = None
            if restart_at is not None:
                timeout = max(0.0, restart_at - self._clock())

            try:
                event, arg = events.get(timeout=timeout)
            except queue.Empty:
                event, arg = _Event.RESTART_DUE, None

            if event is _Event.SHUTDOWN:
                return

            with self._lock:
                if self._events is not events:
                    # Superseded by a newer start().
                    return
                if self._state is ListenerState.STOPPED:
                    continue
                restart_at = self._handle(event, arg, restart_at)

    def _handle(self, event: _Event, arg: object, restart_at: Optional[float]) -> Optional[float]:
        """Apply one event; returns when the next restart is due (None: not pending)."""
        if event is _Event.FINAL or event is _Event.RESTART_DUE:
            if event is _Event.FINAL and self._state is ListenerState.LISTENING:
                self._state = ListenerState.ENDED
            if self._state is ListenerState.LISTENING:
                return None
            if not self._start_session():
                return self._clock() + self._restart_delay_sec
            log.debug("[SPEECH] Session restarted")
            return None

        if event is _Event.ENDED:
            if self._state is ListenerState.LISTENING:
                self._state = ListenerState.ENDED
        else:
            log.warning("[SPEECH] Session error: %s", arg)
            self._state = ListenerState.ERRORED

        if restart_at is None:
            restart_at = self._clock() + self._restart_delay_sec
        return restart_at

    def _start_session(self) -> bool:
        # Called with self._lock held so stop() cannot interleave.
        try:
            self._session.start()
        except Exception as e:
            log.warning("[SPEECH] Session start failed: %s", e)
            self._state = ListenerState.ERRORED
            return False
        self._state = ListenerState.LISTENING
        return True

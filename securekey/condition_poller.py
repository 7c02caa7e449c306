# securekey/condition_poller.py

import logging
import threading
from typing import Callable, Optional

from . import config
from .lock_state import BATTERY, NETWORK, TIME_OF_DAY

log = logging.getLogger(__name__)

_FAILED = object()


class ConditionPoller:
    """Re-evaluates the battery, network and time-of-day locks on a timer.

    start() evaluates once immediately, then every `interval_sec` until
    either stop() is called or every lock is open.
    """

    def __init__(
        self,
        report_unlock: Callable[[int], object],
        all_open: Callable[[], bool],
        environment,
        interval_sec: float = config.POLL_INTERVAL_SEC,
        battery_max_pct: float = config.BATTERY_MAX_PCT,
        hour_start: int = config.UNLOCK_HOUR_START,
        hour_end: int = config.UNLOCK_HOUR_END,
    ):
        self._report_unlock = report_unlock
        self._all_open = all_open
        self._env = environment
        self._interval_sec = interval_sec
        self._battery_max_pct = battery_max_pct
        self._hour_start = hour_start
        self._hour_end = hour_end

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self.check_now()
        if self._all_open():
            return
        self._thread = threading.Thread(target=self._run, name="POLL", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        t = self._thread
        if t and t.is_alive() and t is not threading.current_thread():
            # Wait out an in-flight check so a later start() sees the thread gone.
            t.join()

    def check_now(self) -> None:
        battery = self._query("battery", self._env.battery_percentage, default=_FAILED)
        # No battery to drain: satisfied by default.
        if battery is not _FAILED and (battery is None or battery <= self._battery_max_pct):
            self._report_unlock(BATTERY)

        # A connectivity check that fails counts as connected.
        if self._query("network", self._env.is_network_connected, default=True):
            self._report_unlock(NETWORK)

        hour = self._query("hour", self._env.current_hour_of_day, default=-1)
        if self._hour_start <= hour < self._hour_end:
            self._report_unlock(TIME_OF_DAY)

    def _run(self) -> None:
        while not self._stop.wait(self._interval_sec):
            self.check_now()
            if self._all_open():
                log.info("[POLL] All locks open, poller finished")
                return

    def _query(self, name: str, fn, default=None):
        try:
            return fn()
        except Exception as e:
            # Transient: try again next tick.
            log.warning("[POLL] %s query failed: %s", name, e)
            return default

# securekey/shake_detector.py

import logging
import math
import threading
import time
from typing import Callable, Optional

from . import config
from .lock_state import SHAKE

log = logging.getLogger(__name__)

STANDARD_GRAVITY = 9.80665


def g_force(x: float, y: float, z: float) -> float:
    gx = x / STANDARD_GRAVITY
    gy = y / STANDARD_GRAVITY
    gz = z / STANDARD_GRAVITY
    return math.sqrt(gx * gx + gy * gy + gz * gz)


class ShakeDetector:
    """Counts debounced shakes from raw accelerometer samples (m/s^2).

    A sample above `g_threshold` only counts if it arrives more than
    `debounce_ms` after the previously counted shake. Low samples never reset
    the count, so shakes far apart in time still add up.
    """

    def __init__(
        self,
        report_unlock: Callable[[int], object],
        sensor_available: bool = True,
        g_threshold: float = config.SHAKE_G_THRESHOLD,
        debounce_ms: float = config.SHAKE_DEBOUNCE_MS,
        shakes_required: int = config.SHAKES_REQUIRED,
        clock: Callable[[], float] = time.monotonic,
        lock_index: int = SHAKE,
    ):
        self._report_unlock = report_unlock
        self._sensor_available = sensor_available
        self._g_threshold = g_threshold
        self._debounce_sec = debounce_ms / 1000.0
        self._shakes_required = shakes_required
        self._clock = clock
        self._lock_index = lock_index

        self._last_shake_time: Optional[float] = None
        self._shake_count = 0

        self._active = False
        self._lock = threading.RLock()

    @property
    def shake_count(self) -> int:
        return self._shake_count

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        if not self._sensor_available:
            # Nothing to shake: the condition is satisfied by default.
            log.info("[SHAKE] No motion sensor, opening lock %d", self._lock_index)
            self._report_unlock(self._lock_index)
            return

        with self._lock:
            self._active = True

    def stop(self) -> None:
        with self._lock:
            self._active = False

    def on_sample(self, x: float, y: float, z: float) -> None:
        with self._lock:
            if not self._active:
                return

            g = g_force(x, y, z)
            if g <= self._g_threshold:
                return

            now = self._clock()
            if self._last_shake_time is not None and now - self._last_shake_time <= self._debounce_sec:
                return

            self._last_shake_time = now
            self._shake_count += 1
            log.debug("[SHAKE] Shake %d/%d (%.2fg)", self._shake_count, self._shakes_required, g)

            if self._shake_count < self._shakes_required:
                return

            self._shake_count = 0
            log.info("[SHAKE] %d shakes detected", self._shakes_required)
            self._report_unlock(self._lock_index)

# securekey/smile_detector.py

import logging
import threading
from typing import Callable, Optional

from . import config
from .lock_state import SMILE

log = logging.getLogger(__name__)


class SmileDetector:
    """Opens the smile lock after N consecutive frames above the threshold.

    Frames carry an optional smile probability; None (no face, no
    classification) counts as not smiling. Once unlocked the detector stays
    inert, even across stop()/start().
    """

    def __init__(
        self,
        report_unlock: Callable[[int], object],
        threshold: float = config.SMILE_THRESHOLD,
        smiles_required: int = config.SMILES_REQUIRED,
        lock_index: int = SMILE,
    ):
        self._report_unlock = report_unlock
        self._threshold = threshold
        self._smiles_required = smiles_required
        self._lock_index = lock_index

        self._smile_count = 0
        self._unlocked = False
        self._active = False
        self._lock = threading.RLock()

    @property
    def smile_count(self) -> int:
        return self._smile_count

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        with self._lock:
            if self._unlocked:
                log.debug("[SMILE] Already unlocked, not starting")
                return
            self._active = True

    def stop(self) -> None:
        with self._lock:
            self._active = False

    def on_frame(self, probability: Optional[float]) -> None:
        with self._lock:
            if not self._active:
                return

            if probability is None or probability <= self._threshold:
                if self._smile_count:
                    log.debug("[SMILE] Resetting smile counter")
                self._smile_count = 0
                return

            self._smile_count += 1
            log.debug("[SMILE] Smile %d/%d (p=%.2f)", self._smile_count, self._smiles_required, probability)
            if self._smile_count < self._smiles_required:
                return

            self._unlocked = True
            self._active = False
            log.info("[SMILE] %d consecutive smiles", self._smiles_required)
            self._report_unlock(self._lock_index)

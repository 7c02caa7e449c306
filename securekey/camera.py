# securekey/camera.py

import logging
import threading
from typing import Callable, Optional

import cv2
import numpy as np

log = logging.getLogger(__name__)


class SmileCamera:
    """Grabs frames from a camera and turns each one into a smile probability.

    Faces come from the frontal-face Haar cascade; the smile cascade runs on
    the lower half of the largest face. The strongest smile detection weight
    is squashed through a logistic into [0, 1]. A frame without a face yields
    None.
    """

    def __init__(
        self,
        on_frame: Callable[[Optional[float]], None],
        wants_frames: Callable[[], bool] = lambda: True,
        camera_index: int = 0,
        frame_interval_sec: float = 0.2,
        reopen_delay_sec: float = 3.0,
    ):
        self._on_frame = on_frame
        self._wants_frames = wants_frames
        self._camera_index = camera_index
        self._frame_interval_sec = frame_interval_sec
        self._reopen_delay_sec = reopen_delay_sec

        self.face_cascade = None
        self.smile_cascade = None
        self.load_resources()

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def load_resources(self) -> None:
        face_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        self.face_cascade = cv2.CascadeClassifier(face_path)
        if self.face_cascade.empty():
            raise RuntimeError(f"Failed to load face cascade from {face_path}")

        smile_path = cv2.data.haarcascades + "haarcascade_smile.xml"
        self.smile_cascade = cv2.CascadeClassifier(smile_path)
        if self.smile_cascade.empty():
            raise RuntimeError(f"Failed to load smile cascade from {smile_path}")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="CAMERA", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)

    def smile_probability(self, frame) -> Optional[float]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        gray = cv2.equalizeHist(gray)

        faces = self.face_cascade.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(60, 60),
            flags=cv2.CASCADE_SCALE_IMAGE,
        )
        if len(faces) == 0:
            return None

        x, y, w, h = max(faces, key=lambda f: f[2] * f[3])
        mouth = gray[y + h // 2 : y + h, x : x + w]

        smiles, _levels, weights = self.smile_cascade.detectMultiScale3(
            mouth,
            scaleFactor=1.7,
            minNeighbors=20,
            minSize=(25, 25),
            outputRejectLevels=True,
        )
        if len(smiles) == 0:
            return 0.0

        weight = float(np.max(weights))
        return float(1.0 / (1.0 + np.exp(-weight)))

    def _run(self) -> None:
        while not self._stop.is_set():
            cap = cv2.VideoCapture(self._camera_index)
            if not cap.isOpened():
                log.warning("[CAMERA] Cannot open camera %d, retrying", self._camera_index)
                cap.release()
                self._stop.wait(self._reopen_delay_sec)
                continue

            log.info("[CAMERA] Camera %d opened", self._camera_index)
            try:
                while not self._stop.is_set():
                    if not self._wants_frames():
                        self._stop.wait(self._frame_interval_sec)
                        continue

                    ok, frame = cap.read()
                    if not ok:
                        log.warning("[CAMERA] Frame grab failed")
                        break

                    try:
                        self._on_frame(self.smile_probability(frame))
                    except Exception:
                        log.exception("[CAMERA] Frame handler error")

                    self._stop.wait(self._frame_interval_sec)
            finally:
                cap.release()

            self._stop.wait(self._reopen_delay_sec)

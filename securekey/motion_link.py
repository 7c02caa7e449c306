# securekey/motion_link.py

import json
import os
import threading
from typing import Callable, Optional, Tuple

import serial
from serial import SerialException

Sample = Tuple[float, float, float]


def parse_accel_frame(raw: bytes) -> Optional[Sample]:
    """Decode one `{"x":..,"y":..,"z":..}` line. None for anything else."""
    try:
        text = raw.decode("utf-8").strip()
    except UnicodeDecodeError:
        return None
    if not text:
        return None

    try:
        msg = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(msg, dict):
        return None

    try:
        return float(msg["x"]), float(msg["y"]), float(msg["z"])
    except (KeyError, TypeError, ValueError):
        return None


class SerialMotionSource:
    """Accelerometer samples from a peripheral board over UART.

    Frame: one JSON object per line (UTF-8), values in m/s^2. Reconnects
    after `reconnect_delay_sec` if the port drops.
    """

    def __init__(
        self,
        port: str,
        baudrate: int,
        on_sample: Callable[[float, float, float], None],
        reconnect_delay_sec: float = 2.0,
        logger: Callable[[str], None] = print,
    ):
        self._port = port
        self._baudrate = baudrate
        self._on_sample = on_sample
        self._reconnect_delay_sec = reconnect_delay_sec
        self._log = logger

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def available(self) -> bool:
        return os.path.exists(self._port)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="UART", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)

    def _run(self) -> None:
        while not self._stop.is_set():
            ser = None
            try:
                ser = serial.Serial(self._port, self._baudrate, timeout=0.2)
                self._log(f"[UART] Connected: {self._port} @ {self._baudrate}")

                while not self._stop.is_set():
                    raw = ser.readline()
                    if not raw:
                        continue

                    sample = parse_accel_frame(raw)
                    if sample is None:
                        self._log(f"[UART] Malformed frame: {raw[:200]!r}")
                        continue

                    try:
                        self._on_sample(*sample)
                    except Exception as e:
                        # Never let a callback crash the UART thread.
                        self._log(f"[UART] on_sample error: {e}")

            except (OSError, SerialException) as e:
                self._log(f"[UART] Disconnected: {e}")
            finally:
                if ser is not None:
                    try:
                        ser.close()
                    except (OSError, SerialException):
                        pass

            # Backoff
            self._stop.wait(self._reconnect_delay_sec)

# securekey/indicator.py

import threading
import time

import RPi.GPIO as GPIO


class OutputPin:
    def __init__(self, pin: int):
        self._pin = pin

    def setup(self) -> None:
        GPIO.setup(self._pin, GPIO.OUT, initial=GPIO.LOW)

    def set(self, on: bool) -> None:
        GPIO.output(self._pin, GPIO.HIGH if on else GPIO.LOW)

    def pulse(self, seconds: float) -> None:
        self.set(True)
        time.sleep(seconds)
        self.set(False)


class LockIndicator:
    """Buzzer chirp for every opened lock; LED on plus a long beep when all are open."""

    def __init__(self, led_pin: int, buzzer_pin: int):
        self._led = OutputPin(led_pin)
        self._buzzer = OutputPin(buzzer_pin)
        # Serializes beeps so overlapping chirps don't merge.
        self._buzzer_lock = threading.Lock()

    def setup(self) -> None:
        GPIO.setwarnings(False)
        GPIO.setmode(GPIO.BCM)
        self._led.setup()
        self._buzzer.setup()

    def cleanup(self) -> None:
        self._led.set(False)
        self._buzzer.set(False)
        GPIO.cleanup()

    def on_lock_changed(self, _index: int, is_open: bool) -> None:
        if is_open:
            self._beep(0.1)

    def on_all_locks_opened(self) -> None:
        self._led.set(True)
        self._beep(1.0)

    def _beep(self, seconds: float) -> None:
        def worker() -> None:
            with self._buzzer_lock:
                self._buzzer.pulse(seconds)

        threading.Thread(target=worker, daemon=True).start()

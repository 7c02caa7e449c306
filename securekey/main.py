# securekey/main.py

import argparse
import logging
import threading
import time
from typing import List, Optional

from . import config
from .camera import SmileCamera
from .condition_poller import ConditionPoller
from .coordinator import Coordinator
from .environment import Environment
from .motion_link import SerialMotionSource
from .mqtt_gateway import MqttGateway, MqttSpeechSession, speech_command_router
from .phrase_listener import PhraseListener
from .shake_detector import ShakeDetector
from .smile_detector import SmileDetector
from .web_api import create_app

log = logging.getLogger("securekey")


class _PushSession:
    """Transcripts are pushed in (web API); there is no engine to start."""

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="securekey")
    parser.add_argument("--serial-port", default=config.SERIAL_PORT)
    parser.add_argument("--baudrate", type=int, default=config.SERIAL_BAUDRATE)
    parser.add_argument("--camera", type=int, default=config.CAMERA_INDEX)
    parser.add_argument("--no-camera", action="store_true")
    parser.add_argument("--no-mqtt", action="store_true")
    parser.add_argument("--no-web", action="store_true")
    parser.add_argument("--no-gpio", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    def on_all_locks_opened() -> None:
        log.info("[LOCKS] You did it! All six locks are open.")

    coordinator = Coordinator(on_all_locks_opened=on_all_locks_opened)

    indicator = None
    if not args.no_gpio:
        from .indicator import LockIndicator

        indicator = LockIndicator(config.LED_PIN, config.BUZZER_PIN)
        indicator.setup()
        coordinator.add_lock_listener(indicator.on_lock_changed)
        coordinator.add_completion_listener(indicator.on_all_locks_opened)

    # Battery / network / time of day
    poller = ConditionPoller(coordinator.report_unlock, coordinator.all_open, Environment())
    coordinator.register(poller)

    # Shake
    motion = SerialMotionSource(
        port=args.serial_port,
        baudrate=args.baudrate,
        on_sample=lambda x, y, z: shake.on_sample(x, y, z),
        reconnect_delay_sec=config.SERIAL_RECONNECT_DELAY_SEC,
        logger=log.info,
    )
    motion_available = motion.available()
    if not motion_available:
        log.warning("[UART] %s not found, no motion sensor", args.serial_port)
    shake = ShakeDetector(coordinator.report_unlock, sensor_available=motion_available)
    coordinator.register(shake)
    if motion_available:
        coordinator.register(motion)

    # Smile
    smile = SmileDetector(coordinator.report_unlock)
    coordinator.register(smile)
    if not args.no_camera:
        camera = SmileCamera(
            on_frame=smile.on_frame,
            wants_frames=lambda: smile.is_active,
            camera_index=args.camera,
            frame_interval_sec=config.CAMERA_FRAME_INTERVAL_SEC,
            reopen_delay_sec=config.CAMERA_REOPEN_DELAY_SEC,
        )
        coordinator.register(camera)

    # Phrase
    mqtt = None
    if not args.no_mqtt:
        mqtt = MqttGateway(
            host=config.MQTT_HOST,
            port=config.MQTT_PORT,
            keepalive_sec=config.MQTT_KEEPALIVE_SEC,
            base_topic=config.MQTT_BASE_TOPIC,
            on_command=lambda path, payload: on_command(path, payload),
            logger=log.info,
        )
        phrase = PhraseListener(coordinator.report_unlock, MqttSpeechSession(mqtt))
        on_command = speech_command_router(phrase, logger=log.warning)

        coordinator.add_lock_listener(mqtt.lock_listener(coordinator.to_dict))
        coordinator.add_completion_listener(mqtt.on_all_locks_opened)
        mqtt.start()
    else:
        phrase = PhraseListener(coordinator.report_unlock, _PushSession())
    coordinator.register(phrase)

    if not args.no_web:
        app = create_app(coordinator, phrase_listener=phrase)

        def run_web_server() -> None:
            app.run(host=config.WEB_HOST, port=config.WEB_PORT, debug=False, use_reloader=False)

        threading.Thread(target=run_web_server, name="WEB", daemon=True).start()
        log.info("[WEB] Serving on http://%s:%d", config.WEB_HOST, config.WEB_PORT)

    coordinator.start()
    log.info("[MAIN] Running. %d/6 locks open.", sum(coordinator.snapshot()))

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        coordinator.stop()
        if mqtt is not None:
            mqtt.stop()
        if indicator is not None:
            indicator.cleanup()
        log.info("[MAIN] Stopped.")


if __name__ == "__main__":
    main()

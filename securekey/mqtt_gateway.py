# securekey/mqtt_gateway.py

import json
import threading
import time
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from .lock_state import LOCK_NAMES


def _topic(base: str, suffix: str) -> str:
    base = base.rstrip("/")
    suffix = suffix.lstrip("/")
    return f"{base}/{suffix}" if suffix else base


def _error_code(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class MqttGateway:
    """Publishes lock changes and receives commands under `<base>/cmd/#`.

    Published:
        <base>/locks            retained snapshot {"locks": [...], ...}
        <base>/locks/<index>    retained "open"
        <base>/events           {"ts", "name", "value"}
        <base>/speech/control   "start" | "stop" (see MqttSpeechSession)
    """

    def __init__(
        self,
        host: str,
        port: int,
        keepalive_sec: int,
        base_topic: str,
        on_command: Callable[[str, object], None],
        logger: Callable[[str], None] = print,
    ):
        self._host = host
        self._port = port
        self._keepalive = keepalive_sec
        self._base = base_topic.rstrip("/")
        self._on_command = on_command
        self._log = logger

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"{self._base}-core")
        self._client.enable_logger()

        self._client.will_set(_topic(self._base, "status"), payload="offline", retain=True)
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message
        self._client.on_disconnect = self._on_disconnect
        self._client.reconnect_delay_set(min_delay=1, max_delay=10)

        self._started = False
        self._lock = threading.Lock()

    @property
    def base_topic(self) -> str:
        return self._base

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True

        try:
            self._client.connect(self._host, self._port, self._keepalive)
            self._client.loop_start()
        except (OSError, ValueError) as e:
            self._log(f"[MQTT] Disabled (cannot connect to broker {self._host}:{self._port}): {e}")

    def stop(self) -> None:
        self.publish(_topic(self._base, "status"), "offline", retain=True)
        self._client.loop_stop()
        self._client.disconnect()

    def publish(self, topic: str, payload: str, retain: bool = False) -> None:
        # Fire and forget; paho queues while disconnected.
        info = self._client.publish(topic, payload, qos=0, retain=retain)
        if info.rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
            self._log(f"[MQTT] Publish to {topic} failed rc={info.rc}")

    def publish_locks(self, snapshot: dict) -> None:
        self.publish(_topic(self._base, "locks"), json.dumps(snapshot), retain=True)

    def publish_lock(self, index: int) -> None:
        self.publish(_topic(self._base, f"locks/{index}"), "open", retain=True)

    def publish_event(self, name: str, value: object) -> None:
        msg = {"ts": int(time.time() * 1000), "name": name, "value": value}
        self.publish(_topic(self._base, "events"), json.dumps(msg))

    def lock_listener(self, snapshot: Callable[[], dict]) -> Callable[[int, bool], None]:
        """Coordinator lock listener that mirrors every change to the broker."""

        def on_lock_changed(index: int, is_open: bool) -> None:
            self.publish_lock(index)
            self.publish_event("lock_opened", {"index": index, "name": LOCK_NAMES[index]})
            self.publish_locks(snapshot())

        return on_lock_changed

    def on_all_locks_opened(self) -> None:
        self.publish_event("all_locks_opened", True)

    def _on_connect(self, _client, _userdata, _flags, reason_code, _properties=None):
        if reason_code.is_failure:
            self._log(f"[MQTT] Connect failed: {reason_code}")
            return
        self._log("[MQTT] Connected")
        self._client.publish(_topic(self._base, "status"), payload="online", retain=True)
        self._client.subscribe(_topic(self._base, "cmd/#"))

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None):
        if reason_code.is_failure:
            self._log(f"[MQTT] Disconnected: {reason_code} (will retry)")

    def _on_message(self, _client, _userdata, msg):
        topic = msg.topic
        payload = msg.payload.decode("utf-8", errors="ignore")

        base_cmd = _topic(self._base, "cmd/")
        if not topic.startswith(base_cmd):
            return

        cmd_path = topic[len(base_cmd) :].strip("/")
        if not cmd_path:
            return

        # JSON objects are decoded; any other payload is passed on as plain text.
        parsed: object = payload
        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, dict):
            parsed = decoded

        try:
            self._on_command(cmd_path, parsed)
        except Exception as e:
            self._log(f"[MQTT] Command handler error: {e}")


class MqttSpeechSession:
    """Speech session backed by an external speech-to-text service on MQTT.

    The service listens on `<base>/speech/control` and reports back on
    `<base>/cmd/speech/{transcript,ended,error}`; see `speech_command_router`.
    """

    def __init__(self, gateway: MqttGateway):
        self._gateway = gateway

    def start(self) -> None:
        self._gateway.publish(_topic(self._gateway.base_topic, "speech/control"), "start")

    def stop(self) -> None:
        self._gateway.publish(_topic(self._gateway.base_topic, "speech/control"), "stop")


def speech_command_router(listener, logger: Callable[[str], None] = print) -> Callable[[str, object], None]:
    """Build an `on_command` handler that forwards speech commands to a PhraseListener."""

    def on_command(path: str, payload: object) -> None:
        obj = payload if isinstance(payload, dict) else {}

        if path == "speech/transcript":
            text = obj.get("text") if obj else payload
            if isinstance(text, str):
                listener.on_transcript(text, final=bool(obj.get("final", False)))
            return

        if path == "speech/ended":
            listener.on_session_ended()
            return

        if path == "speech/error":
            code = obj.get("code") if obj else payload
            listener.on_session_error(_error_code(code))
            return

        logger(f"[MQTT] Unknown command: {path}")

    return on_command

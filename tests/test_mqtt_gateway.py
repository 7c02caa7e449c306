import json
from types import SimpleNamespace

from securekey.mqtt_gateway import MqttGateway, MqttSpeechSession, speech_command_router


class FakeListener:
    def __init__(self):
        self.calls = []

    def on_transcript(self, text, final=False):
        self.calls.append(("transcript", text, final))
        return False

    def on_session_ended(self):
        self.calls.append(("ended",))

    def on_session_error(self, code):
        self.calls.append(("error", code))


def make_gateway(on_command=lambda path, payload: None, logs=None):
    return MqttGateway(
        host="localhost",
        port=1883,
        keepalive_sec=30,
        base_topic="securekey/",
        on_command=on_command,
        logger=(logs.append if logs is not None else lambda _msg: None),
    )


def message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload.encode("utf-8"))


def test_commands_routed_with_parsed_payload():
    received = []
    gw = make_gateway(on_command=lambda path, payload: received.append((path, payload)))

    gw._on_message(None, None, message("securekey/cmd/speech/transcript", '{"text": "hi", "final": true}'))
    gw._on_message(None, None, message("securekey/cmd/speech/ended", "on"))
    gw._on_message(None, None, message("securekey/cmd/speech/raw", "hello"))
    gw._on_message(None, None, message("securekey/locks", "{}"))
    gw._on_message(None, None, message("securekey/cmd/", "{}"))

    assert received == [
        ("speech/transcript", {"text": "hi", "final": True}),
        ("speech/ended", "on"),
        ("speech/raw", "hello"),
    ]


def test_plain_text_transcripts_reach_listener():
    listener = FakeListener()
    gw = make_gateway(on_command=speech_command_router(listener, logger=lambda _msg: None))

    for text in ("no", "1", "null", "yes please"):
        gw._on_message(None, None, message("securekey/cmd/speech/transcript", text))
    gw._on_message(None, None, message("securekey/cmd/speech/error", "7"))

    assert listener.calls == [
        ("transcript", "no", False),
        ("transcript", "1", False),
        ("transcript", "null", False),
        ("transcript", "yes please", False),
        ("error", 7),
    ]


def test_handler_errors_are_logged():
    logs = []

    def broken(_path, _payload):
        raise RuntimeError("boom")

    gw = make_gateway(on_command=broken, logs=logs)
    gw._on_message(None, None, message("securekey/cmd/x", "1"))

    assert any("boom" in line for line in logs)


def test_speech_router():
    listener = FakeListener()
    route = speech_command_router(listener, logger=lambda _msg: None)

    route("speech/transcript", {"text": "בבקשה תפתח", "final": True})
    route("speech/transcript", "plain text")
    route("speech/ended", {})
    route("speech/error", {"code": 7})
    route("speech/error", {"code": "bad"})
    route("something/else", {})

    assert listener.calls == [
        ("transcript", "בבקשה תפתח", True),
        ("transcript", "plain text", False),
        ("ended",),
        ("error", 7),
        ("error", None),
    ]


def test_lock_publishing(monkeypatch):
    gw = make_gateway()
    published = []
    monkeypatch.setattr(gw, "publish", lambda topic, payload, retain=False: published.append((topic, payload, retain)))

    gw.lock_listener(lambda: {"locks": [True] + [False] * 5})(0, True)
    gw.on_all_locks_opened()

    topics = [t for t, _, _ in published]
    assert topics == ["securekey/locks/0", "securekey/events", "securekey/locks", "securekey/events"]
    assert published[0][2] is True
    assert json.loads(published[1][1])["value"] == {"index": 0, "name": "battery"}
    assert json.loads(published[2][1]) == {"locks": [True] + [False] * 5}
    assert json.loads(published[3][1])["name"] == "all_locks_opened"


def test_speech_session_publishes_control(monkeypatch):
    gw = make_gateway()
    published = []
    monkeypatch.setattr(gw, "publish", lambda topic, payload, retain=False: published.append((topic, payload)))

    session = MqttSpeechSession(gw)
    session.start()
    session.stop()

    assert published == [("securekey/speech/control", "start"), ("securekey/speech/control", "stop")]

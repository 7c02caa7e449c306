# securekey/web_api.py

import json
import logging
import threading

from flask import Flask, Response, jsonify, request

from .lock_state import LOCK_NAMES

log = logging.getLogger(__name__)


def create_app(coordinator, phrase_listener=None) -> Flask:
    """Flask app exposing the lock table of `coordinator`.

    GET  /api/locks       current snapshot
    GET  /api/stream      server-sent events, one "locks" event per change
    POST /api/transcript  {"text": str, "final": bool} -> phrase listener
    """
    app = Flask(__name__)

    state_changed = threading.Condition()
    version = [0]

    def bump(*_args) -> None:
        with state_changed:
            version[0] += 1
            state_changed.notify_all()

    coordinator.add_lock_listener(bump)
    coordinator.add_completion_listener(bump)

    def locks_payload() -> dict:
        data = coordinator.to_dict()
        data["names"] = list(LOCK_NAMES)
        return data

    @app.route("/api/locks")
    def api_locks():
        return jsonify(locks_payload())

    @app.route("/api/stream")
    def api_stream():
        def gen():
            last_ver = -1
            while True:
                with state_changed:
                    if version[0] == last_ver:
                        state_changed.wait(timeout=15.0)
                    changed = version[0] != last_ver
                    last_ver = version[0]

                if not changed:
                    yield ":keepalive\n\n"
                    continue
                yield f"event: locks\ndata: {json.dumps(locks_payload())}\n\n"

        return Response(gen(), mimetype="text/event-stream")

    @app.route("/api/transcript", methods=["POST"])
    def api_transcript():
        if phrase_listener is None:
            return jsonify({"error": "speech input disabled"}), 404

        body = request.get_json(silent=True) or {}
        text = body.get("text")
        if not isinstance(text, str):
            return jsonify({"error": "missing string 'text'"}), 400

        matched = phrase_listener.on_transcript(text, final=bool(body.get("final", False)))
        log.debug("[WEB] Transcript %r matched=%s", text, matched)
        return jsonify({"matched": matched})

    return app

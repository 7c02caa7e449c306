# securekey/config.py

import os

# Lock conditions
SHAKE_G_THRESHOLD = 2.5
SHAKE_DEBOUNCE_MS = 500
SHAKES_REQUIRED = 3

SMILE_THRESHOLD = 0.8
SMILES_REQUIRED = 5

MAGIC_PHRASE = "בבקשה תפתח"
SPEECH_RESTART_DELAY_SEC = 1.0

BATTERY_MAX_PCT = 75.0
UNLOCK_HOUR_START = 8
UNLOCK_HOUR_END = 18  # exclusive
POLL_INTERVAL_SEC = 2.0

# UART (accelerometer board)
SERIAL_PORT = os.getenv("SECUREKEY_SERIAL_PORT", "/dev/ttyUSB0")
SERIAL_BAUDRATE = int(os.getenv("SECUREKEY_SERIAL_BAUDRATE", "115200"))
SERIAL_RECONNECT_DELAY_SEC = 2.0

# Camera
CAMERA_INDEX = int(os.getenv("SECUREKEY_CAMERA_INDEX", "0"))
CAMERA_FRAME_INTERVAL_SEC = 0.2
CAMERA_REOPEN_DELAY_SEC = 3.0

# GPIO (BCM numbering)
LED_PIN = 21
BUZZER_PIN = 23

MQTT_HOST = os.getenv("SECUREKEY_MQTT_HOST", "localhost")
MQTT_PORT = int(os.getenv("SECUREKEY_MQTT_PORT", "1883"))
MQTT_KEEPALIVE_SEC = 30
MQTT_BASE_TOPIC = os.getenv("SECUREKEY_MQTT_BASE_TOPIC", "securekey").rstrip("/")

WEB_HOST = os.getenv("SECUREKEY_WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("SECUREKEY_WEB_PORT", "5000"))

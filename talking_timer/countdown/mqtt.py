"""MQTT link for one countdown.

Topics hang off ``topic_base``:

- ``<base>/state``: retained JSON snapshot, republished on every state change
- ``<base>/announcement``: one JSON message per spoken announcement
- ``<base>/command``: remote control payloads (``start``, ``pause``, JSON ``configure``)
- ``<base>/availability``: retained ``online``/``offline``, with ``offline`` as the will

paho runs its network loop on its own thread. Commands are handed back to the
asyncio loop that called :meth:`TimerMqtt.listen_for_commands`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any

import paho.mqtt.client as mqtt

from .config import MqttConfig

CommandHandler = Callable[[str], Awaitable[None]]

AVAILABLE = "online"
UNAVAILABLE = "offline"


class TimerMqtt:
    def __init__(self, config: MqttConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._lock = threading.Lock()
        self._command_handler: CommandHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state_topic(self) -> str:
        return f"{self.config.topic_base}/state"

    @property
    def announcement_topic(self) -> str:
        return f"{self.config.topic_base}/announcement"

    @property
    def command_topic(self) -> str:
        return f"{self.config.topic_base}/command"

    @property
    def availability_topic(self) -> str:
        return f"{self.config.topic_base}/availability"

    @property
    def client_id(self) -> str:
        return "talking-timer-" + self.config.topic_base.replace("/", "-")

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """Open the broker connection; returns False when MQTT is unconfigured or unreachable."""
        if not self.config.host:
            self._logger.debug("[mqtt] MQTT host not configured; remote control disabled")
            return False
        with self._lock:
            if self._client is not None:
                return True
            client = self._build_client()
            try:
                client.connect(self.config.host, self.config.port, keepalive=30)
            except OSError as exc:
                self._logger.warning("[mqtt] Failed to connect to %s:%s: %s", self.config.host, self.config.port, exc)
                return False
            client.loop_start()
            self._client = client
        self._logger.info("[mqtt] Connected to %s:%s as %s", self.config.host, self.config.port, self.client_id)
        return True

    def disconnect(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if not client:
            return
        try:
            client.publish(self.availability_topic, payload=UNAVAILABLE, qos=1, retain=True)
            client.disconnect()
        finally:
            client.loop_stop()

    def is_connected(self) -> bool:
        client = self._client
        try:
            return bool(client and client.is_connected())
        except Exception:
            return False

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
        )
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or "")
        if self.config.tls_enabled:
            client.tls_set(**self._tls_kwargs())
        client.will_set(self.availability_topic, payload=UNAVAILABLE, qos=1, retain=True)
        client.on_connect = self._on_connect
        client.message_callback_add(self.command_topic, self._on_command)
        return client

    def _tls_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"tls_version": ssl.PROTOCOL_TLS_CLIENT}
        if self.config.ca_cert:
            kwargs["ca_certs"] = self.config.ca_cert
        if self.config.cert:
            kwargs["certfile"] = self.config.cert
        if self.config.key:
            kwargs["keyfile"] = self.config.key
        return kwargs

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        if reason_code.is_failure:
            self._logger.warning("[mqtt] Broker refused connection: %s", reason_code)
            return
        # Runs again after every reconnect, so the command subscription survives broker restarts.
        client.publish(self.availability_topic, payload=AVAILABLE, qos=1, retain=True)
        if self._command_handler is not None:
            client.subscribe(self.command_topic, qos=1)

    # ------------------------------------------------------------------
    # Countdown traffic
    # ------------------------------------------------------------------

    def publish_state(self, snapshot: dict[str, Any]) -> None:
        self._publish(self.state_topic, json.dumps(snapshot), retain=True)

    def publish_announcement(self, text: str) -> None:
        payload = json.dumps({"text": text, "timestamp": int(time.time())})
        self._publish(self.announcement_topic, payload)

    def listen_for_commands(self, handler: CommandHandler) -> None:
        """Run ``handler(payload)`` on the calling event loop for each command message."""
        self._loop = asyncio.get_running_loop()
        self._command_handler = handler
        client = self._client
        if client is None:
            return
        result, _mid = client.subscribe(self.command_topic, qos=1)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("[mqtt] Failed to subscribe to %s (rc=%s)", self.command_topic, result)

    def _on_command(self, _client, _userdata, message) -> None:  # type: ignore[no-untyped-def]
        handler = self._command_handler
        loop = self._loop
        if handler is None or loop is None or loop.is_closed():
            return
        payload = message.payload.decode("utf-8", errors="ignore")
        self._logger.debug("[mqtt] Command received: %r", payload)
        try:
            asyncio.run_coroutine_threadsafe(handler(payload), loop)
        except RuntimeError as exc:
            self._logger.warning("[mqtt] Dropping command %r: %s", payload, exc)

    def _publish(self, topic: str, payload: str, retain: bool = False, qos: int = 0) -> None:
        client = self._client
        if not client:
            return
        try:
            client.publish(topic, payload=payload, qos=qos, retain=retain)
        except Exception as exc:
            self._logger.debug("[mqtt] Failed to publish to %s: %s", topic, exc)

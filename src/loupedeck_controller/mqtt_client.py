"""Async MQTT subscriber feeding desktop notifications to the device."""

import asyncio
import logging
import ssl
import uuid
from collections.abc import Awaitable, Callable

import aiomqtt
from pydantic import ValidationError

from loupedeck_controller.config import MQTTConfig
from loupedeck_controller.exceptions import CommunicationError
from loupedeck_controller.models import Notification

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Awaitable[None]]


class NotificationSubscriber:
    """Subscribes to the notification topic and forwards each message.

    Handles connection management and auto-reconnection.
    """

    def __init__(self, config: MQTTConfig, on_notification: NotificationCallback) -> None:
        """Initialize the subscriber.

        Args:
            config: MQTT connection configuration.
            on_notification: Callback for every valid notification.
        """
        self._config = config
        self._on_notification = on_notification
        self._client: aiomqtt.Client | None = None
        self._connected = asyncio.Event()

    @property
    def topic(self) -> str:
        """Topic carrying notifications."""
        return self._config.notification_topic

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    async def wait_connected(self, timeout: float) -> None:
        """Wait until the subscription is live.

        Raises:
            CommunicationError: If the broker is not reached within timeout.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except TimeoutError as e:
            raise CommunicationError(f"Not connected to MQTT broker after {timeout:.1f}s") from e

    async def run(self) -> None:
        """Main MQTT loop with automatic reconnection.

        Runs until cancelled.
        """
        reconnect_interval = 5
        max_reconnect_interval = 60

        while True:
            try:
                password = self._config.password.get_secret_value() if self._config.password else None
                tls_context = ssl.create_default_context() if self._config.tls else None
                async with aiomqtt.Client(
                    hostname=self._config.host,
                    port=self._config.port,
                    username=self._config.username,
                    password=password,
                    identifier=self._config.client_id or f"loupedeck-{uuid.uuid4().hex[:8]}",
                    transport=self._config.transport,
                    websocket_path=self._config.websocket_path,
                    tls_context=tls_context,
                ) as client:
                    self._client = client
                    self._connected.set()
                    logger.info("Connected to MQTT broker at %s:%d", self._config.host, self._config.port)

                    await client.subscribe(self.topic, qos=1)
                    logger.info("Subscribed to notification topic: %s", self.topic)

                    # Reset reconnect interval on successful connection
                    reconnect_interval = 5

                    async for message in client.messages:
                        await self._handle_message(message)

            except aiomqtt.MqttError as e:
                self._connected.clear()
                self._client = None
                logger.warning("MQTT connection error: %s. Reconnecting in %d seconds...", e, reconnect_interval)
                await asyncio.sleep(reconnect_interval)
                # Exponential backoff with cap
                reconnect_interval = min(reconnect_interval * 2, max_reconnect_interval)

    async def _handle_message(self, message: aiomqtt.Message) -> None:
        """Decode a message and hand it to the callback.

        Args:
            message: MQTT message to process.
        """
        raw_payload = message.payload
        if isinstance(raw_payload, (bytes, bytearray)):
            payload = raw_payload.decode("utf-8", errors="replace")
        elif isinstance(raw_payload, str):
            payload = raw_payload
        else:
            payload = "{}"

        logger.debug("Received message on topic %s: %s", message.topic, payload[:200])

        try:
            notification = Notification.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Ignoring invalid notification payload: %s", e)
            return

        try:
            await self._on_notification(notification)
        except Exception:
            logger.exception("Error handling notification from %s", notification.app_name or "unknown app")

    async def disconnect(self) -> None:
        """Signal that we want to disconnect."""
        self._connected.clear()
        self._client = None

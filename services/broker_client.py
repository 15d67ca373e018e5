import asyncio
import json
import logging
import ssl
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Union
from urllib.parse import urlsplit

import aiomqtt

from core.config import settings
from schemas.events import ChatEvent, RawFrame

logger = logging.getLogger(__name__)

PUBLISH_QOS = 1
SUBSCRIBE_QOS = 1


class BrokerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


_TRANSITIONS = {
    BrokerState.DISCONNECTED: {BrokerState.CONNECTING},
    BrokerState.CONNECTING: {BrokerState.CONNECTED, BrokerState.RECONNECTING, BrokerState.DISCONNECTED},
    BrokerState.CONNECTED: {BrokerState.RECONNECTING, BrokerState.DISCONNECTED},
    BrokerState.RECONNECTING: {BrokerState.CONNECTING, BrokerState.DISCONNECTED},
}


class BrokerStateError(RuntimeError):
    pass


class FrameProcessor(Protocol):
    def process(self, frame: RawFrame) -> Optional[ChatEvent]:
        ...


EventCallback = Callable[[ChatEvent], Awaitable[None]]
TerminatedCallback = Callable[[Exception], Any]


class BrokerClient:
    """Long-lived MQTT subscription to the vendor broker.

    A single supervisor task owns the connection: it connects, subscribes to
    the shop topic, feeds every delivered frame through the processor and
    reconnects after a fixed delay when the transport drops. Once more than
    ``max_reconnect_attempts`` reconnects fail in a row the client stops for
    good and reports the last error through ``terminal_error`` and
    ``on_terminated``; only a fresh ``connect()`` starts it again.
    """

    def __init__(
        self,
        topic: str,
        processor: FrameProcessor,
        on_event: Optional[EventCallback] = None,
        on_terminated: Optional[TerminatedCallback] = None,
        company_id: Optional[str] = None,
        url: Optional[str] = None,
        reconnect_period: Optional[float] = None,
        max_reconnect_attempts: Optional[int] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.topic = topic
        self.url = url or settings.hitoko_ws_url
        self.company_id = company_id or settings.company_id
        self.reconnect_period = (
            settings.mqtt_reconnect_period if reconnect_period is None else reconnect_period
        )
        self.max_reconnect_attempts = (
            settings.mqtt_max_reconnect_attempts
            if max_reconnect_attempts is None
            else max_reconnect_attempts
        )
        self.client_id = f"user_{self.company_id}_{int(time.time() * 1000)}"
        self.reconnect_attempts = 0
        self.terminal_error: Optional[Exception] = None

        self._processor = processor
        self._on_event = on_event
        self._on_terminated = on_terminated
        self._client_factory = client_factory or self._build_client
        self._state = BrokerState.DISCONNECTED
        self._client: Any = None
        self._supervisor: Optional[asyncio.Task] = None
        self._publish_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> BrokerState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is BrokerState.CONNECTED and self._client is not None

    def _set_state(self, new_state: BrokerState) -> None:
        if new_state is self._state:
            return
        if new_state not in _TRANSITIONS[self._state]:
            raise BrokerStateError(f"Illegal broker transition {self._state.value} -> {new_state.value}")
        logger.info(
            "Broker state changed",
            extra={"from_state": self._state.value, "to_state": new_state.value},
        )
        self._state = new_state

    def _build_client(self) -> aiomqtt.Client:
        url = urlsplit(self.url)
        secure = url.scheme in ("wss", "mqtts", "ssl")
        websockets = url.scheme in ("ws", "wss")
        if websockets:
            default_port = 443 if secure else 80
        else:
            default_port = 8883 if secure else 1883

        tls_context = None
        if secure:
            tls_context = ssl.create_default_context()
            if settings.mqtt_tls_insecure:
                tls_context.check_hostname = False
                tls_context.verify_mode = ssl.CERT_NONE

        return aiomqtt.Client(
            hostname=url.hostname,
            port=url.port or default_port,
            identifier=self.client_id,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            protocol=aiomqtt.ProtocolVersion.V311,
            clean_session=True,
            keepalive=settings.mqtt_keepalive,
            timeout=settings.mqtt_connect_timeout,
            transport="websockets" if websockets else "tcp",
            websocket_path=(url.path or "/mqtt") if websockets else None,
            websocket_headers={
                "Origin": settings.mqtt_origin,
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
            } if websockets else None,
            tls_context=tls_context,
        )

    def connect(self) -> None:
        if self._state is not BrokerState.DISCONNECTED:
            logger.warning("Broker connect ignored", extra={"state": self._state.value})
            return
        self.reconnect_attempts = 0
        self.terminal_error = None
        self._set_state(BrokerState.CONNECTING)
        logger.info("Connecting to Hitoko MQTT broker", extra={"url": self.url, "client_id": self.client_id})
        self._supervisor = asyncio.create_task(self._supervise(), name="hitoko-broker")

    async def wait_closed(self) -> None:
        if self._supervisor is not None:
            await asyncio.shield(self._supervisor)

    async def _supervise(self) -> None:
        last_error: Optional[Exception] = None
        while True:
            try:
                async with self._client_factory() as client:
                    await client.subscribe(self.topic, qos=SUBSCRIBE_QOS)
                    self._client = client
                    self._set_state(BrokerState.CONNECTED)
                    self.reconnect_attempts = 0
                    logger.info("Subscribed to shop topic", extra={"subscribed_topic": self.topic})
                    async for message in client.messages:
                        await self.handle_message(str(message.topic), message.payload)
                last_error = ConnectionError("Broker closed the message stream")
            except (aiomqtt.MqttError, OSError) as exc:
                last_error = exc
                logger.warning("MQTT connection lost", extra={"error": str(exc)})
            except Exception as exc:
                last_error = exc
                logger.exception("Broker connection attempt failed")
            finally:
                self._client = None

            self.reconnect_attempts += 1
            if self.reconnect_attempts > self.max_reconnect_attempts:
                break
            self._set_state(BrokerState.RECONNECTING)
            logger.info(
                "Reconnecting to broker",
                extra={
                    "attempt": self.reconnect_attempts,
                    "max_attempts": self.max_reconnect_attempts,
                },
            )
            await asyncio.sleep(self.reconnect_period)
            self._set_state(BrokerState.CONNECTING)

        logger.error(
            "Max reconnection attempts reached, closing broker connection",
            extra={"max_attempts": self.max_reconnect_attempts, "error": str(last_error)},
        )
        self.terminal_error = last_error
        self._set_state(BrokerState.DISCONNECTED)
        if self._on_terminated is not None:
            try:
                result = self._on_terminated(last_error)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Broker on_terminated callback failed")

    async def handle_message(self, topic: str, payload: Union[bytes, str]) -> Optional[ChatEvent]:
        """Run one delivered frame through the processor and callback.

        Failures are contained to this frame so the subscription keeps going.
        """
        try:
            frame = RawFrame(topic=topic, payload=payload)
            event = self._processor.process(frame)
            if event is not None and self._on_event is not None:
                await self._on_event(event)
            return event
        except Exception:
            logger.exception("Failed to process broker message", extra={"frame_topic": topic})
            return None

    async def disconnect(self) -> None:
        supervisor = self._supervisor
        self._supervisor = None
        if supervisor is None or supervisor.done():
            if self._state is not BrokerState.DISCONNECTED:
                self._set_state(BrokerState.DISCONNECTED)
            return

        logger.info("Disconnecting from MQTT broker")
        supervisor.cancel()
        try:
            await supervisor
        except asyncio.CancelledError:
            pass
        self._client = None
        self._set_state(BrokerState.DISCONNECTED)

    def publish(self, topic: str, message: Union[str, bytes, dict]) -> bool:
        """Fire a QoS 1 publish if connected. Never queues while offline."""
        if not self.connected:
            logger.warning("MQTT client is not connected, dropping publish", extra={"publish_topic": topic})
            return False

        payload = json.dumps(message) if isinstance(message, dict) else message
        task = asyncio.create_task(self._client.publish(topic, payload, qos=PUBLISH_QOS))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_done(topic))
        return True

    def _publish_done(self, topic: str) -> Callable[[asyncio.Task], None]:
        def _callback(task: asyncio.Task) -> None:
            self._publish_tasks.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.error("Error publishing message", extra={"publish_topic": topic, "error": str(exc)})
            else:
                logger.info("Message published", extra={"publish_topic": topic})

        return _callback

import asyncio
import logging
from typing import Optional

from adapters.frame_decoder import decode
from adapters.hitoko import HitokoAdapter
from core.logging import clear_event_context, set_event_context
from schemas.events import ChatEvent, FrameMeta, ImageContent, RawFrame, TextContent
from schemas.forwarding import ForwardOutcome
from services.dedup_service import DedupService
from services.webhook_forwarder import WebhookForwarder


class RelayService:
    def __init__(
        self,
        adapter: HitokoAdapter,
        forwarder: WebhookForwarder,
        dedup_service: DedupService,
        shop_id: Optional[str],
        marketplace_code: str = "00",
    ):
        self.adapter = adapter
        self.forwarder = forwarder
        self.dedup_service = dedup_service
        self.shop_id = shop_id
        self.marketplace_code = marketplace_code
        self.logger = logging.getLogger(__name__)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def process(self, frame: RawFrame) -> Optional[ChatEvent]:
        """Decode, normalize and dedup one broker frame.

        Returns the event to forward, or None when the frame is not a chat
        event or was already relayed inside the dedup window.
        """
        clear_event_context()
        decoded = decode(frame.payload)
        meta = FrameMeta(
            topic=frame.topic,
            received_at=frame.received_at,
            prefix_id=decoded.prefix_id,
            shop_id=self.shop_id,
            marketplace_code=self.marketplace_code,
        )
        event = self.adapter.parse(decoded, meta)
        if event is None:
            self.logger.debug("Ignored non-chat broker notification", extra={"frame_topic": frame.topic})
            return None

        set_event_context(event.topic, event.message_id)
        if not self.dedup_service.should_process(event.message_id):
            self.logger.info("Duplicate message skipped")
            return None

        self._log_event(event)
        return event

    def _log_event(self, event: ChatEvent) -> None:
        content = event.content
        extra = {
            "shop_id": event.shop_id,
            "session_id": event.session_id,
            "buyer_id": event.buyer_id,
            "from_buyer": event.from_buyer,
            "content_type": content.type,
        }
        if isinstance(content, TextContent):
            extra["text"] = content.text
        elif isinstance(content, ImageContent):
            extra["image_url"] = content.url
        self.logger.info("New chat event received", extra=extra)

    async def dispatch(self, event: ChatEvent) -> None:
        # Forward in the background so a slow destination never stalls the
        # broker's message loop.
        task = asyncio.create_task(self.forward(event))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def forward(self, event: ChatEvent) -> ForwardOutcome:
        try:
            outcome = await self.forwarder.forward(event)
        except Exception as exc:
            self.logger.exception("Forwarding raised unexpectedly")
            return ForwardOutcome(success=False, error=str(exc))

        if outcome.success:
            self.logger.info("Message successfully forwarded to webhook")
        else:
            self.logger.error(
                "Failed to forward message to webhook",
                extra={"error": outcome.error, "failed": outcome.failed},
            )
        return outcome

    async def drain(self, timeout: Optional[float] = None) -> None:
        if not self._in_flight:
            return
        pending = list(self._in_flight)
        self.logger.info("Draining in-flight forwards", extra={"pending": len(pending)})
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            self.logger.warning(
                "Forwards still pending after drain timeout",
                extra={"pending": len(still_pending)},
            )

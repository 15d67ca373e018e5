from abc import ABC, abstractmethod
from typing import Optional

from schemas.events import ChatEvent, DecodedPayload, FrameMeta, ReplyContext
from schemas.reply import ReplyMessage, ReplyResult

class BaseAdapter(ABC):

    @abstractmethod
    def parse(self, decoded: DecodedPayload, meta: FrameMeta) -> Optional[ChatEvent]:
        """Turn a decoded broker frame into a ChatEvent, or None for non-chat traffic."""

    @abstractmethod
    def send_reply(self, context: ReplyContext, reply: ReplyMessage) -> ReplyResult:
        """Deliver a reply back to the originating marketplace."""

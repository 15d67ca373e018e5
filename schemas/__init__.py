from .events import (
    ChatEvent,
    DecodedPayload,
    FrameMeta,
    ImageContent,
    MessageRecord,
    RawFrame,
    ReplyContext,
    SessionRecord,
    SessionSummary,
    TextContent,
    UnknownContent,
)
from .forwarding import BatchOutcome, ForwardOutcome, ForwardResult
from .reply import ReplyMessage, ReplyResult

__all__ = [
    "ChatEvent",
    "DecodedPayload",
    "FrameMeta",
    "ImageContent",
    "MessageRecord",
    "RawFrame",
    "ReplyContext",
    "SessionRecord",
    "SessionSummary",
    "TextContent",
    "UnknownContent",
    "BatchOutcome",
    "ForwardOutcome",
    "ForwardResult",
    "ReplyMessage",
    "ReplyResult",
]

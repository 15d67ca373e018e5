from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# fromAccountType sentinels used by the vendor chat system
CUSTOMER_ACCOUNT_TYPE = "1"
SELLER_ACCOUNT_TYPE = "2"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawFrame(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str
    payload: Union[bytes, str]
    received_at: datetime = Field(default_factory=_utcnow)


class DecodedPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix_id: Optional[str] = None
    body: Any = None
    error: Optional[str] = None

    @property
    def is_json(self) -> bool:
        return self.error is None and not isinstance(self.body, str)


class FrameMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str
    received_at: datetime = Field(default_factory=_utcnow)
    prefix_id: Optional[str] = None
    shop_id: Optional[str] = None
    marketplace_code: str = "00"


class _VendorRecord(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class MessageRecord(_VendorRecord):
    """compChatMessageVO: one chat message as sent by the vendor."""

    message_id: Optional[str] = Field(None, alias="messageId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    from_account_id: Optional[str] = Field(None, alias="fromAccountId")
    from_account_type: Optional[str] = Field(None, alias="fromAccountType")
    to_account_id: Optional[str] = Field(None, alias="toAccountId")
    to_account_type: Optional[str] = Field(None, alias="toAccountType")
    send_time: Any = Field(None, alias="sendTime")
    template_id: Optional[str] = Field(None, alias="templateId")
    content: Optional[str] = None

    @property
    def from_buyer(self) -> bool:
        return self.from_account_type == CUSTOMER_ACCOUNT_TYPE


class SessionRecord(_VendorRecord):
    """compChatSessionVO: the conversation the message belongs to."""

    session_id: Optional[str] = Field(None, alias="sessionId")
    buyer_id: Optional[str] = Field(None, alias="buyerId")
    buyer_nick_name: Optional[str] = Field(None, alias="buyerNickName")
    buyer_head_url: Optional[str] = Field(None, alias="buyerHeadUrl")
    shop_id: Optional[str] = Field(None, alias="shopId")
    marketplace_shop_name: Optional[str] = Field(None, alias="marketplaceShopName")
    marketplace_code: Optional[str] = Field(None, alias="marketplaceCode")
    session_status: Any = Field(None, alias="sessionStatus")
    unread_count: Optional[int] = Field(None, alias="unreadCount")
    last_message_id: Optional[str] = Field(None, alias="lastMessageId")
    last_message_time: Any = Field(None, alias="lastMessageTime")
    summary: Optional[str] = None


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class UnknownContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["unknown"] = "unknown"
    raw: Optional[str] = None


ChatContent = Union[TextContent, ImageContent, UnknownContent]


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    unread_count: Optional[int] = None
    last_message_id: Optional[str] = None
    summary: Optional[str] = None


class ReplyContext(BaseModel):
    """Everything the vendor reply endpoint needs to answer a conversation."""

    model_config = ConfigDict(frozen=True)

    session_id: Optional[str] = None
    shop_id: Optional[str] = None
    buyer_id: Optional[str] = None
    marketplace_code: str = "00"


class ChatEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str
    timestamp: datetime
    shop_id: Optional[str] = None
    from_buyer: bool = False
    content: ChatContent = Field(default_factory=UnknownContent, discriminator="type")
    message_id: Optional[str] = None
    session_id: Optional[str] = None
    buyer_id: Optional[str] = None
    buyer_nick_name: Optional[str] = None
    marketplace_code: str = "00"
    session_summary: SessionSummary = Field(default_factory=SessionSummary)
    message: Optional[MessageRecord] = None
    session: Optional[SessionRecord] = None
    raw: Any = None

    @property
    def is_chat(self) -> bool:
        return self.message is not None or self.session is not None

    @property
    def reply_context(self) -> ReplyContext:
        return ReplyContext(
            session_id=self.session_id,
            shop_id=self.shop_id,
            buyer_id=self.buyer_id,
            marketplace_code=self.marketplace_code,
        )

    def to_webhook_payload(self) -> Dict[str, Any]:
        """Render the clean JSON body delivered to webhook destinations."""
        message = self.message
        session = self.session
        content = self.content
        event = {
            "type": "chat_message" if self.is_chat else "unknown",
            "timestamp": self.timestamp.isoformat(),
            "topic": self.topic,
        }
        if not self.is_chat:
            return {
                "event": event,
                "shop": {"id": self.shop_id, "marketplaceCode": self.marketplace_code},
                "error": "Failed to parse message",
                "raw": self.raw,
            }

        return {
            "event": event,
            "shop": {
                "id": self.shop_id,
                "name": session.marketplace_shop_name if session else None,
                "marketplaceCode": self.marketplace_code,
            },
            "message": {
                "id": self.message_id,
                "sessionId": self.session_id,
                "sentTime": message.send_time if message else None,
                "templateId": message.template_id if message else None,
                "content": {
                    "type": content.type,
                    "text": content.text if isinstance(content, TextContent) else None,
                    "image": (
                        {"url": content.url, "width": content.width, "height": content.height}
                        if isinstance(content, ImageContent)
                        else None
                    ),
                },
                "from": {
                    "accountId": message.from_account_id if message else None,
                    "accountType": message.from_account_type if message else None,
                    "isCustomer": self.from_buyer,
                },
                "to": {
                    "accountId": message.to_account_id if message else None,
                    "accountType": message.to_account_type if message else None,
                },
            },
            "customer": {
                "id": self.buyer_id,
                "nickname": self.buyer_nick_name,
                "avatar": session.buyer_head_url if session else None,
            },
            "session": {
                "id": session.session_id if session else None,
                "status": session.session_status if session else None,
                "unreadCount": self.session_summary.unread_count,
                "lastMessageId": self.session_summary.last_message_id,
                "lastMessageTime": session.last_message_time if session else None,
                "summary": self.session_summary.summary,
            },
            "replyWith": {
                "sessionId": self.session_id,
                "shopId": self.shop_id,
                "buyerId": self.buyer_id,
                "marketplaceCode": self.marketplace_code,
            },
        }

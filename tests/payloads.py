from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from schemas.events import FrameMeta

RECEIVED_AT = datetime(2025, 1, 1, 8, 30, tzinfo=timezone.utc)


def chat_message(
    *,
    message_id: Optional[str] = "m-1",
    from_account_type: str = "1",
    content: Optional[dict] = None,
    session_id: Optional[str] = "s-1",
) -> dict:
    return {
        "messageId": message_id,
        "sessionId": session_id,
        "fromAccountId": 555 if from_account_type == "1" else 1640619651,
        "fromAccountType": from_account_type,
        "toAccountId": 1640619651 if from_account_type == "1" else 555,
        "toAccountType": "2" if from_account_type == "1" else "1",
        "sendTime": 1735720200000,
        "templateId": "00",
        "content": json.dumps(content if content is not None else {"text": "hi"}),
    }


def chat_session(**overrides: Any) -> dict:
    session = {
        "sessionId": "s-session",
        "buyerId": 777,
        "buyerNickName": "budi",
        "buyerHeadUrl": "https://cdn.example/budi.png",
        "shopId": 1640619651,
        "marketplaceShopName": "Toko Budi",
        "marketplaceCode": "00",
        "sessionStatus": 3,
        "unreadCount": 2,
        "lastMessageId": "m-0",
        "lastMessageTime": 1735720100000,
        "summary": "hi",
    }
    session.update(overrides)
    return session


def envelope(message: Optional[dict] = None, session: Optional[dict] = None, **inner: Any) -> dict:
    if message is not None:
        inner["compChatMessageVO"] = message
    if session is not None:
        inner["compChatSessionVO"] = session
    return {"type": "chat", "extras": {"message": json.dumps(inner)}}


def frame_text(body: dict, prefix: str = "") -> str:
    return f"{prefix}{json.dumps(body)}"


def frame_meta(prefix_id: Optional[str] = None, shop_id: Optional[str] = "1640619651") -> FrameMeta:
    return FrameMeta(
        topic="001640619651",
        received_at=RECEIVED_AT,
        prefix_id=prefix_id,
        shop_id=shop_id,
        marketplace_code="00",
    )

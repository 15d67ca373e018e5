import json
import logging
import time
from typing import Any, Optional

import requests
from pydantic import ValidationError

from adapters.base import BaseAdapter
from core.config import settings
from core.hitoko_constants import (
    IMAGE_TEMPLATE_ID,
    REPLY_MESSAGE_PATH,
    TEXT_TEMPLATE_ID,
    api_headers,
)
from schemas.events import (
    SELLER_ACCOUNT_TYPE,
    ChatContent,
    ChatEvent,
    DecodedPayload,
    FrameMeta,
    ImageContent,
    MessageRecord,
    ReplyContext,
    SessionRecord,
    SessionSummary,
    TextContent,
    UnknownContent,
)
from schemas.reply import ReplyMessage, ReplyResult

logger = logging.getLogger(__name__)


def _first(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if candidate is not None and candidate != "":
            return str(candidate)
    return None


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def classify_content(raw_content: Optional[str]) -> ChatContent:
    """Classify the message's JSON-encoded content. Text wins over image."""
    if raw_content is None:
        return UnknownContent()
    try:
        data = json.loads(raw_content)
    except (TypeError, ValueError):
        return UnknownContent(raw=raw_content)
    if not isinstance(data, dict):
        return UnknownContent(raw=raw_content)

    if data.get("text") is not None:
        return TextContent(text=str(data["text"]))
    if data.get("imgUrl") is not None:
        return ImageContent(
            url=str(data["imgUrl"]),
            width=_int_or_none(data.get("width")),
            height=_int_or_none(data.get("height")),
        )
    return UnknownContent(raw=raw_content)


class HitokoAdapter(BaseAdapter):

    def __init__(self, api_base: Optional[str] = None, auth_token: Optional[str] = None):
        self.api_base = api_base or settings.hitoko_api_base
        self.auth_token = auth_token or settings.hitoko_auth_token

    def parse(self, decoded: DecodedPayload, meta: FrameMeta) -> Optional[ChatEvent]:
        body = decoded.body
        if not decoded.is_json or not isinstance(body, dict):
            logger.warning(
                "Hitoko frame is not a JSON object",
                extra={"decode_error": decoded.error, "prefix_id": decoded.prefix_id},
            )
            return self._unknown_event(meta, body)

        # The real chat payload is JSON encoded a second time inside extras.message
        extras = body.get("extras")
        nested = extras.get("message") if isinstance(extras, dict) else None
        if nested is None:
            return None
        try:
            inner = json.loads(nested) if isinstance(nested, str) else nested
        except ValueError as exc:
            logger.warning("Hitoko nested message is not valid JSON", extra={"error": str(exc)})
            return self._unknown_event(meta, body)
        if not isinstance(inner, dict):
            logger.warning("Hitoko nested message is not a JSON object")
            return self._unknown_event(meta, body)

        raw_message = inner.get("compChatMessageVO")
        raw_session = inner.get("compChatSessionVO")
        if not raw_message and not raw_session:
            return None

        try:
            message = MessageRecord.model_validate(raw_message) if raw_message else None
            session = SessionRecord.model_validate(raw_session) if raw_session else None
        except ValidationError as exc:
            logger.warning(
                "Hitoko chat records failed validation",
                extra={"errors": exc.errors(include_url=False)},
            )
            return self._unknown_event(meta, body)

        return self._build_event(meta, body, inner, message, session)

    def _build_event(
        self,
        meta: FrameMeta,
        body: dict,
        inner: dict,
        message: Optional[MessageRecord],
        session: Optional[SessionRecord],
    ) -> ChatEvent:
        # Precedence for every shared field: message record, then session
        # record, then whatever the frame itself tells us.
        message_buyer_id = None
        if message:
            message_buyer_id = (
                message.from_account_id if message.from_buyer else message.to_account_id
            )

        return ChatEvent(
            topic=meta.topic,
            timestamp=meta.received_at,
            shop_id=_first(
                session.shop_id if session else None,
                meta.prefix_id,
                meta.shop_id,
            ),
            from_buyer=message.from_buyer if message else False,
            content=classify_content(message.content) if message else UnknownContent(),
            message_id=message.message_id if message else None,
            session_id=_first(
                message.session_id if message else None,
                session.session_id if session else None,
            ),
            buyer_id=_first(message_buyer_id, session.buyer_id if session else None),
            buyer_nick_name=session.buyer_nick_name if session else None,
            marketplace_code=_first(
                session.marketplace_code if session else None,
                inner.get("marketplaceCode"),
                body.get("marketplaceCode"),
                meta.marketplace_code,
            ),
            session_summary=SessionSummary(
                unread_count=session.unread_count if session else None,
                last_message_id=session.last_message_id if session else None,
                summary=session.summary if session else None,
            ),
            message=message,
            session=session,
        )

    def _unknown_event(self, meta: FrameMeta, raw: Any) -> ChatEvent:
        return ChatEvent(
            topic=meta.topic,
            timestamp=meta.received_at,
            shop_id=_first(meta.prefix_id, meta.shop_id),
            content=UnknownContent(raw=raw if isinstance(raw, str) else None),
            marketplace_code=meta.marketplace_code,
            raw=raw,
        )

    def build_reply_payload(self, context: ReplyContext, reply: ReplyMessage) -> dict:
        if reply.text:
            template_id = TEXT_TEMPLATE_ID
            content = json.dumps({"text": reply.text})
        elif reply.img_url:
            template_id = IMAGE_TEMPLATE_ID
            content = json.dumps(
                {"imgUrl": reply.img_url, "width": reply.width, "height": reply.height}
            )
        else:
            raise ValueError("Message must contain either text or imgUrl")

        try:
            shop_id = int(context.shop_id)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid shopId: {context.shop_id!r}") from None

        return {
            "marketplaceCode": context.marketplace_code or "00",
            "sessionId": context.session_id,
            "shopId": shop_id,
            "fromAccountType": SELLER_ACCOUNT_TYPE,
            "content": content,
            "templateId": template_id,
            "buyerId": context.buyer_id,
            "messageId": "",
            "messageStatus": 0,
        }

    def send_reply(self, context: ReplyContext, reply: ReplyMessage) -> ReplyResult:
        if not self.api_base or not self.auth_token:
            raise RuntimeError("Hitoko API base or auth token is not configured.")

        payload = self.build_reply_payload(context, reply)
        url = f"{self.api_base.rstrip('/')}{REPLY_MESSAGE_PATH}"
        start = time.perf_counter()
        try:
            response = requests.post(
                url,
                json=payload,
                headers=api_headers(self.auth_token),
                timeout=10,
            )
        except requests.exceptions.RequestException as exc:
            logger.exception(
                "Hitoko send_reply failed",
                extra={
                    "session_id": context.session_id,
                    "elapsed_s": round(time.perf_counter() - start, 3),
                },
            )
            return ReplyResult(success=False, status=500, error=str(exc))

        logger.info(
            "Hitoko send_reply completed",
            extra={
                "session_id": context.session_id,
                "template_id": payload["templateId"],
                "status_code": response.status_code,
                "elapsed_s": round(time.perf_counter() - start, 3),
            },
        )
        try:
            data = response.json()
        except ValueError:
            data = response.text

        if response.status_code != 200:
            return ReplyResult(
                success=False,
                status=response.status_code,
                data=data,
                error=f"Hitoko reply failed with status {response.status_code}",
            )
        return ReplyResult(success=True, status=response.status_code, data=data)

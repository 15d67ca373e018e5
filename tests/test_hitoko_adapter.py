from __future__ import annotations

import json

import pytest
import requests

from adapters.frame_decoder import decode
from adapters.hitoko import HitokoAdapter, classify_content
from schemas.events import ImageContent, ReplyContext, TextContent, UnknownContent
from schemas.reply import ReplyMessage
from tests.payloads import chat_message, chat_session, envelope, frame_meta, frame_text


def _parse(body, prefix: str = "", shop_id: str | None = "1640619651"):
    decoded = decode(frame_text(body, prefix) if isinstance(body, dict) else body)
    return HitokoAdapter().parse(decoded, frame_meta(decoded.prefix_id, shop_id=shop_id))


def test_message_from_customer_is_from_buyer() -> None:
    event = _parse(envelope(chat_message(from_account_type="1")))
    assert event.from_buyer is True
    assert event.buyer_id == "555"


def test_message_from_seller_is_not_from_buyer() -> None:
    event = _parse(envelope(chat_message(from_account_type="2")))
    assert event.from_buyer is False
    # The buyer is on the receiving side of a seller message.
    assert event.buyer_id == "555"


def test_classify_text() -> None:
    assert classify_content(json.dumps({"text": "hi"})) == TextContent(text="hi")


def test_classify_image() -> None:
    content = classify_content(json.dumps({"imgUrl": "u", "width": 10, "height": 20}))
    assert content == ImageContent(url="u", width=10, height=20)


def test_classify_empty_object_is_unknown() -> None:
    assert isinstance(classify_content("{}"), UnknownContent)


def test_text_wins_over_image() -> None:
    content = classify_content(json.dumps({"text": "caption", "imgUrl": "u"}))
    assert content == TextContent(text="caption")


def test_classify_non_json_content_is_unknown() -> None:
    content = classify_content("plain words")
    assert isinstance(content, UnknownContent)
    assert content.raw == "plain words"


def test_message_record_wins_over_session_record() -> None:
    event = _parse(envelope(chat_message(session_id="s-msg"), chat_session(sessionId="s-session")))
    assert event.session_id == "s-msg"
    assert event.message_id == "m-1"


def test_session_record_fills_missing_message_fields() -> None:
    event = _parse(envelope(chat_message(session_id=None), chat_session()))
    assert event.session_id == "s-session"
    assert event.shop_id == "1640619651"
    assert event.buyer_nick_name == "budi"
    assert event.session_summary.unread_count == 2
    assert event.session_summary.summary == "hi"


def test_shop_id_falls_back_to_frame_prefix() -> None:
    event = _parse(envelope(chat_message()), prefix="998877", shop_id="111")
    assert event.shop_id == "998877"


def test_shop_id_falls_back_to_configured_shop() -> None:
    event = _parse(envelope(chat_message()), shop_id="111")
    assert event.shop_id == "111"


def test_session_only_notification_builds_event() -> None:
    event = _parse(envelope(session=chat_session()))
    assert event.message_id is None
    assert event.session_id == "s-session"
    assert event.buyer_id == "777"
    assert isinstance(event.content, UnknownContent)


def test_reply_context_matches_event() -> None:
    event = _parse(envelope(chat_message(), chat_session()))
    context = event.reply_context
    assert context.session_id == event.session_id
    assert context.shop_id == event.shop_id
    assert context.buyer_id == event.buyer_id
    assert context.marketplace_code == "00"


def test_non_chat_notification_returns_none() -> None:
    assert _parse({"type": "heartbeat"}) is None
    assert _parse({"extras": {"message": json.dumps({"other": 1})}}) is None


def test_opaque_text_becomes_unknown_event() -> None:
    event = _parse("not json at all")
    assert event is not None
    assert event.content == UnknownContent(raw="not json at all")
    assert event.to_webhook_payload()["event"]["type"] == "unknown"
    assert event.to_webhook_payload()["raw"] == "not json at all"


def test_broken_nested_json_becomes_unknown_event() -> None:
    body = {"extras": {"message": "{broken"}}
    event = _parse(body)
    assert event is not None
    assert event.raw == body
    assert not event.is_chat


def test_webhook_payload_shape() -> None:
    event = _parse(envelope(chat_message(content={"imgUrl": "u", "width": 10, "height": 20}), chat_session()))
    payload = event.to_webhook_payload()
    assert payload["event"]["type"] == "chat_message"
    assert payload["shop"] == {"id": "1640619651", "name": "Toko Budi", "marketplaceCode": "00"}
    assert payload["message"]["content"] == {
        "type": "image",
        "text": None,
        "image": {"url": "u", "width": 10, "height": 20},
    }
    assert payload["message"]["from"]["isCustomer"] is True
    assert payload["customer"]["nickname"] == "budi"
    assert payload["replyWith"]["sessionId"] == event.session_id
    json.dumps(payload)


class _FakeResponse:
    def __init__(self, status_code: int, data) -> None:
        self.status_code = status_code
        self._data = data
        self.text = json.dumps(data)

    def json(self):
        return self._data


def test_send_reply_posts_text_template(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers))
        return _FakeResponse(200, {"code": 0})

    monkeypatch.setattr(requests, "post", fake_post)
    adapter = HitokoAdapter(api_base="https://api.example/", auth_token="token")
    context = ReplyContext(session_id="s-1", shop_id="1640619651", buyer_id="555")

    result = adapter.send_reply(context, ReplyMessage(text="thanks"))

    assert result.success
    url, payload, headers = calls[0]
    assert url == "https://api.example/chat/api/comp/chat-process/reply-message"
    assert payload["templateId"] == "00"
    assert payload["content"] == '{"text": "thanks"}'
    assert payload["shopId"] == 1640619651
    assert payload["fromAccountType"] == "2"
    assert headers["authorization"] == "Bearer token"


def test_send_reply_reports_vendor_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: _FakeResponse(401, {"msg": "no"}))
    adapter = HitokoAdapter(api_base="https://api.example", auth_token="token")
    context = ReplyContext(session_id="s-1", shop_id="1", buyer_id="555")

    result = adapter.send_reply(context, ReplyMessage(img_url="u", width=1, height=2))

    assert not result.success
    assert result.status == 401


def test_send_reply_requires_text_or_image() -> None:
    adapter = HitokoAdapter(api_base="https://api.example", auth_token="token")
    with pytest.raises(ValueError):
        adapter.send_reply(ReplyContext(session_id="s", shop_id="1", buyer_id="b"), ReplyMessage())
